"""
Shor's factoring algorithm for N=15.

Shor's algorithm factors integers in polynomial time on a quantum computer
by using phase estimation to find the period of modular exponentiation.
This module builds the order-finding circuit for a=7 and runs it on any
Backend.

Register layout (9 qubits):
    qubits 0-3  control register C0..C3 (C0 = least significant bit)
    qubits 4-7  work register W0..W3 (W0 = least significant bit)
    qubit  8    ancilla, returned to |0⟩ after every use
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .backend import Backend
from .circuit import Circuit, empty
from .errors import DomainError, Result, ValidationError
from .qft import append_inverse_qft
from .utils import extract_period, gcd

logger = logging.getLogger(__name__)

N = 15
A = 7
N_CONTROL = 4
CONTROL_QUBITS = [0, 1, 2, 3]
WORK_QUBITS = [4, 5, 6, 7]
ANCILLA = 8
NUM_QUBITS = 9


# =============================================================================
# Controlled modular multiplication for N=15
# =============================================================================

def controlled_swap_basis_states(circuit: Circuit, control: int, work_qubits: Sequence[int],
                                 a: int, b: int, ancilla: int = ANCILLA) -> Circuit:
    """
    Swap basis states |a⟩ and |b⟩ of the work register when control is |1⟩.

    Implements a transposition (a, b) in the permutation. a and b must
    differ in exactly 2 bits; the ancilla must be |0⟩ and is left there.

    Args:
        circuit: Circuit to extend
        control: Control qubit
        work_qubits: 4 work qubits [W0, W1, W2, W3] (LSB first)
        a, b: Basis states to swap (integers 0-15)
    """
    W = list(work_qubits)
    diff = a ^ b
    diff_bits = [i for i in range(4) if (diff >> i) & 1]
    if len(diff_bits) != 2:
        raise ValidationError("basis_states", f"{a} and {b} must differ in exactly 2 bits")

    # Matching bits must equal their value in a
    match_bits = [i for i in range(4) if not (diff >> i) & 1]
    flips = [W[i] for i in match_bits if not (a >> i) & 1]

    m0, m1 = match_bits
    d0, d1 = diff_bits

    out = circuit
    for q in flips:
        out = out.x(q)
    out = (out.ccx(control, W[m0], ancilla)
              .ccx(ancilla, W[m1], W[d0])
              .ccx(ancilla, W[m1], W[d1])
              .ccx(control, W[m0], ancilla))
    for q in flips:
        out = out.x(q)
    return out


def controlled_multiply_7_mod15(circuit: Circuit, control: int,
                                work_qubits: Sequence[int] = WORK_QUBITS,
                                ancilla: int = ANCILLA) -> Circuit:
    """
    Controlled multiplication by 7 mod 15.

    Implements the permutation on the multiplicative group mod 15:
    Cycle 1: 1 → 7 → 4 → 13 → 1
    Cycle 2: 2 → 14 → 8 → 11 → 2

    Correct only for inputs in {1, 2, 4, 7, 8, 11, 13, 14}; starting the work
    register at |1⟩ keeps it there.
    """
    out = circuit
    for a, b in ((1, 7), (1, 4), (1, 13), (2, 14), (2, 8), (2, 11)):
        out = controlled_swap_basis_states(out, control, work_qubits, a, b, ancilla)
    return out


def controlled_multiply_4_mod15(circuit: Circuit, control: int,
                                work_qubits: Sequence[int] = WORK_QUBITS) -> Circuit:
    """
    Controlled multiplication by 4 mod 15.

    Multiplication by 4 = 2² is a 2-bit left rotation mod 15:
    (w3, w2, w1, w0) → (w1, w0, w3, w2), i.e. controlled swaps W0↔W2, W1↔W3.
    """
    W0, W1, W2, W3 = work_qubits
    out = circuit
    for p, q in ((W0, W2), (W1, W3)):
        out = out.ccx(control, p, q).ccx(control, q, p).ccx(control, p, q)
    return out


def order_finding_circuit() -> Circuit:
    """
    Phase estimation of x → 7x mod 15.

    C0 controls ×7 and C1 controls ×7² = ×4; ×7⁴ and ×7⁸ are the identity
    mod 15 and are skipped.
    """
    circuit = empty(NUM_QUBITS).x(WORK_QUBITS[0])  # work register = |1⟩
    for q in CONTROL_QUBITS:
        circuit = circuit.h(q)
    circuit = controlled_multiply_7_mod15(circuit, CONTROL_QUBITS[0])
    circuit = controlled_multiply_4_mod15(circuit, CONTROL_QUBITS[1])
    # Inverse QFT expects MSB first
    circuit = append_inverse_qft(circuit, CONTROL_QUBITS[::-1])
    for q in CONTROL_QUBITS:
        circuit = circuit.measure(q)
    return circuit


# =============================================================================
# Shor's algorithm
# =============================================================================

@dataclass(frozen=True)
class ShorResult:
    """
    Outcome of shor_factor_15.

    Attributes:
        factors: Non-trivial factor pair (p, q) with p * q == 15
        period: Period r of 7^x mod 15 used for the factors
        measurement: Control register value that yielded the period
        counts: Control register histogram over all attempts
    """

    factors: Tuple[int, int]
    period: int
    measurement: int
    counts: Dict[str, int]


def factors_from_period(r: Optional[int], a: int = A, n: int = N) -> Optional[Tuple[int, int]]:
    """Non-trivial factors from gcd(a^(r/2) ± 1, N), or None."""
    if r is None or r % 2 == 1:
        return None
    x = pow(a, r // 2, n)
    for candidate in (gcd(x - 1, n), gcd(x + 1, n)):
        if candidate not in (1, n):
            return (min(candidate, n // candidate), max(candidate, n // candidate))
    return None


def _interpret(counts: Dict[str, int], attempts: int) -> ShorResult:
    # Try outcomes from most to least frequent
    ordered: List[Tuple[str, int]] = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    for bits, _ in ordered:
        measurement = int(bits, 2)
        r = extract_period(measurement, N_CONTROL, N, A)
        factors = factors_from_period(r)
        logger.debug("measurement %d -> period %s -> factors %s", measurement, r, factors)
        if factors is not None:
            return ShorResult(factors=factors, period=r, measurement=measurement, counts=dict(counts))
    raise DomainError("shor_factor_15", f"no non-trivial factors found in {attempts} attempt(s)")


def shor_factor_15(backend: Backend, seed: Optional[int] = None,
                   attempts: int = 10) -> Result[ShorResult]:
    """
    Factor 15 with a=7 on a backend.

    The circuit runs once with attempts shots; each shot is one run of the
    quantum subroutine. Outcomes are tried until one yields a period with
    non-trivial factors (3/4 of the outcomes do).

    Args:
        backend: Backend with at least 9 qubits
        seed: Sampling seed
        attempts: Number of shots

    Returns:
        Ok(ShorResult) or Err(DomainError) when every attempt failed
    """
    executed = backend.execute(order_finding_circuit(), attempts, seed=seed)
    return (executed
            .map(lambda result: result.marginal(CONTROL_QUBITS))
            .map(lambda counts: _interpret(counts, attempts)))
