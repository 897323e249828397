"""
BB84 quantum key distribution.

Protocol:
1. Alice picks random bits and random bases (rectilinear + or diagonal x)
2. She prepares each bit as a qubit: |0⟩/|1⟩ in +, |+⟩/|-⟩ in x
3. Bob measures each qubit in a random basis of his own
4. They publicly compare bases and keep only matching positions (sifting)
5. A random sample of the sifted key is revealed to estimate the quantum
   bit error rate (QBER); above the threshold they assume an eavesdropper
6. The unrevealed sifted bits form the final key

An intercept-resend eavesdropper measures every qubit in a random basis and
re-prepares her result, which introduces about 25% QBER.

This is a protocol simulation only; nothing here is a cryptographic
implementation.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from . import gates as g
from .backend import Backend
from .errors import Result, ValidationError, capture
from .measurement import qubit_probabilities, seed_sequence
from .state import QuantumState

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATIO = 0.15
DEFAULT_QBER_THRESHOLD = 0.11


class Basis(Enum):
    RECTILINEAR = "+"
    DIAGONAL = "x"


@dataclass(frozen=True)
class AliceState:
    bits: Tuple[int, ...]
    bases: Tuple[Basis, ...]

    @property
    def num_qubits(self) -> int:
        return len(self.bits)


@dataclass(frozen=True)
class SiftedKey:
    """Bits kept at positions where Alice's and Bob's bases agree."""

    alice_bits: Tuple[int, ...]
    bob_bits: Tuple[int, ...]
    indices: Tuple[int, ...]
    efficiency: float

    @property
    def length(self) -> int:
        return len(self.indices)


@dataclass(frozen=True)
class EavesdropCheck:
    sample_size: int
    errors: int
    error_rate: float
    eavesdrop_detected: bool
    threshold: float
    sample_indices: Tuple[int, ...]


@dataclass(frozen=True)
class BB84Result:
    """
    Attributes:
        final_key: Shared key bits after sifting and sampling
        initial_qubits: Qubits Alice sent
        sifted_key_length: Bits left after basis comparison
        eavesdrop_check: QBER estimate from the revealed sample
        eve_present: Whether an intercept-resend attacker was simulated
        success: No eavesdropping detected and a non-empty key
        efficiency: len(final_key) / initial_qubits
    """

    final_key: Tuple[int, ...]
    initial_qubits: int
    sifted_key_length: int
    eavesdrop_check: EavesdropCheck
    eve_present: bool
    success: bool
    efficiency: float


# =============================================================================
# Quantum steps
# =============================================================================

def prepare_qubit(bit: int, basis: Basis, backend: Backend) -> QuantumState:
    """
    Encode one bit: X for 1, then H for the diagonal basis.

    Raises:
        QuantumError: If the backend rejects the operation
    """
    ops = []
    if bit:
        ops.append(g.x(0))
    if basis is Basis.DIAGONAL:
        ops.append(g.h(0))
    state = backend.initialize_state(1).unwrap()
    return backend.apply_operation(ops, state).unwrap()


def measure_qubit(state: QuantumState, basis: Basis, backend: Backend) -> int:
    """
    Measure in the given basis; the outcome comes from the backend's generator.
    """
    ops = [g.h(0)] if basis is Basis.DIAGONAL else []
    ops.append(g.measure(0))
    collapsed = backend.apply_operation(ops, state).unwrap()
    _, p1 = qubit_probabilities(0, collapsed)
    return int(p1 > 0.5)


def eve_intercept_resend(state: QuantumState, backend: Backend,
                         rng: np.random.Generator) -> QuantumState:
    """Eve measures in a random basis and resends what she saw in that basis."""
    eve_basis = Basis.RECTILINEAR if rng.integers(2) == 0 else Basis.DIAGONAL
    bit = measure_qubit(state, eve_basis, backend)
    return prepare_qubit(bit, eve_basis, backend)


# =============================================================================
# Classical steps
# =============================================================================

def _random_bases(n: int, rng: np.random.Generator) -> Tuple[Basis, ...]:
    return tuple(Basis.RECTILINEAR if b == 0 else Basis.DIAGONAL for b in rng.integers(0, 2, size=n))


def create_alice_state(key_length: int, rng: np.random.Generator) -> AliceState:
    bits = tuple(int(b) for b in rng.integers(0, 2, size=key_length))
    return AliceState(bits=bits, bases=_random_bases(key_length, rng))


def create_bob_bases(key_length: int, rng: np.random.Generator) -> Tuple[Basis, ...]:
    return _random_bases(key_length, rng)


def sift_key(alice: AliceState, bob_bases: Tuple[Basis, ...], bob_results: List[int]) -> SiftedKey:
    """Keep positions where both parties used the same basis."""
    indices = tuple(i for i, (a, b) in enumerate(zip(alice.bases, bob_bases)) if a is b)
    return SiftedKey(
        alice_bits=tuple(alice.bits[i] for i in indices),
        bob_bits=tuple(bob_results[i] for i in indices),
        indices=indices,
        efficiency=len(indices) / alice.num_qubits if alice.num_qubits else 0.0,
    )


def check_eavesdropping(sifted: SiftedKey, sample_size: int, threshold: float,
                        rng: np.random.Generator) -> EavesdropCheck:
    """
    Compare a random sample of sifted bits publicly.

    The error rate is errors / sample size (0.0 for an empty sample);
    eavesdropping is flagged when it exceeds the threshold.
    """
    size = max(0, min(sample_size, sifted.length))
    sample = tuple(sorted(int(i) for i in rng.permutation(sifted.length)[:size]))
    errors = sum(1 for i in sample if sifted.alice_bits[i] != sifted.bob_bits[i])
    rate = errors / size if size else 0.0
    return EavesdropCheck(
        sample_size=size,
        errors=errors,
        error_rate=rate,
        eavesdrop_detected=rate > threshold,
        threshold=threshold,
        sample_indices=sample,
    )


def extract_final_key(sifted: SiftedKey, sample_indices: Tuple[int, ...]) -> Tuple[int, ...]:
    """Drop the publicly revealed bits."""
    revealed = set(sample_indices)
    return tuple(bit for i, bit in enumerate(sifted.alice_bits) if i not in revealed)


# =============================================================================
# Protocol
# =============================================================================

def _run_bb84(key_length: int, backend: Backend, sample_ratio: float, qber_threshold: float,
              seed: Optional[int], eavesdropper: bool) -> BB84Result:
    if key_length <= 0:
        raise ValidationError("key_length", f"must be positive, got {key_length}")
    if not 0.0 <= sample_ratio < 1.0:
        raise ValidationError("sample_ratio", f"must be in [0, 1), got {sample_ratio}")
    if not 0.0 <= qber_threshold <= 1.0:
        raise ValidationError("qber_threshold", f"must be in [0, 1], got {qber_threshold}")

    rng = np.random.default_rng(seed_sequence(seed))
    # Half the bits survive sifting, then the sample is removed
    initial_qubits = int(key_length / (0.5 * (1.0 - sample_ratio))) + 10

    alice = create_alice_state(initial_qubits, rng)
    bob_bases = create_bob_bases(initial_qubits, rng)

    bob_results = []
    for bit, basis, bob_basis in zip(alice.bits, alice.bases, bob_bases):
        state = prepare_qubit(bit, basis, backend)
        if eavesdropper:
            state = eve_intercept_resend(state, backend, rng)
        bob_results.append(measure_qubit(state, bob_basis, backend))

    sifted = sift_key(alice, bob_bases, bob_results)
    check = check_eavesdropping(sifted, int(sifted.length * sample_ratio), qber_threshold, rng)
    final_key = extract_final_key(sifted, check.sample_indices)

    success = not check.eavesdrop_detected and len(final_key) > 0
    logger.info(
        "BB84: %d qubits, %d sifted, QBER %.3f, %d key bits%s",
        initial_qubits, sifted.length, check.error_rate, len(final_key),
        " (eavesdropping detected)" if check.eavesdrop_detected else "",
    )
    return BB84Result(
        final_key=final_key,
        initial_qubits=initial_qubits,
        sifted_key_length=sifted.length,
        eavesdrop_check=check,
        eve_present=eavesdropper,
        success=success,
        efficiency=len(final_key) / initial_qubits,
    )


def run_bb84(key_length: int, backend: Backend,
             sample_ratio: float = DEFAULT_SAMPLE_RATIO,
             qber_threshold: float = DEFAULT_QBER_THRESHOLD,
             seed: Optional[int] = None,
             eavesdropper: bool = False) -> Result[BB84Result]:
    """
    Run BB84 aiming for roughly key_length final key bits.

    Args:
        key_length: Target key size
        backend: Backend preparing and measuring the qubits
        sample_ratio: Fraction of the sifted key revealed for the QBER check
        qber_threshold: Error rate above which eavesdropping is assumed
        seed: Seed for bits, bases and sampling (measurement randomness
            comes from the backend's own seed)
        eavesdropper: Simulate an intercept-resend attacker

    Returns:
        Ok(BB84Result) or Err(ValidationError) for bad parameters
    """
    return capture(_run_bb84, key_length, backend, sample_ratio, qber_threshold, seed,
                   eavesdropper, source="bb84")
