"""
Draper QFT Adder - Addition using the Quantum Fourier Transform.

The Draper adder performs quantum addition by working in the "phase basis"
(Fourier basis) where addition reduces to simple phase rotations. This is
more efficient than ripple-carry adders for certain applications.

Algorithm:
1. Apply QFT to transform the target register into phase basis
2. Apply controlled phase rotations to add the value
3. Apply inverse QFT to return to computational basis

References:
- T. G. Draper, "Addition on a Quantum Computer", 2000. arXiv:quant-ph/0008033
- Ruiz-Perez et al., "Quantum arithmetic with the QFT", 2017. arXiv:1411.5949

Complexity:
- Adding constant to n-qubit register: O(n²) gates
- Adding two n-qubit registers: O(n²) gates
- No ancilla qubits required!

Registers are lists of qubit indices ordered [MSB, ..., LSB].
"""

from typing import List, Sequence

import numpy as np

from . import gates as g
from .circuit import Circuit
from .errors import ValidationError
from .qft import append_inverse_qft, append_qft


def phi_add_constant(circuit: Circuit, qubits: Sequence[int], constant: int,
                     inverse: bool = False) -> Circuit:
    """
    Add a classical constant to a register already in Fourier basis.

    This is the core operation: given |φ(a)⟩ in phase encoding,
    produces |φ(a + constant)⟩.

    After QFT (which includes swaps to reverse order), the j-th qubit
    receives a phase rotation of:
        θ_j = 2π · constant / 2^(j+1)

    where j is 0-indexed from MSB. So MSB gets largest rotation (π·const),
    LSB gets smallest (2π·const/2^n).

    Args:
        circuit: Circuit to extend
        qubits: Register [MSB, ..., LSB] (already in Fourier basis)
        constant: Classical integer to add
        inverse: If True, subtract instead of add
    """
    sign = -1 if inverse else 1
    out = circuit
    for j, q in enumerate(qubits):
        theta = sign * 2 * np.pi * constant / 2 ** (j + 1)
        out = out.p(q, theta)
    return out


def draper_add_constant(circuit: Circuit, qubits: Sequence[int], constant: int,
                        inverse: bool = False) -> Circuit:
    """
    Add a classical constant to a quantum register using QFT.

    Computes: |a⟩ → |a + constant⟩ (mod 2^n)

    Args:
        circuit: Circuit to extend
        qubits: Register [MSB, ..., LSB]
        constant: Classical integer to add (can be negative for subtraction)
        inverse: If True, subtract instead of add

    Example:
        # Add 3 to a 4-qubit register initialized to |5⟩
        reg = [3, 2, 1, 0]
        c = prepare_register(empty(4), reg, 5)
        c = draper_add_constant(c, reg, 3)
        # Register now holds |8⟩
    """
    out = append_qft(circuit, qubits)
    out = phi_add_constant(out, qubits, constant, inverse=inverse)
    return append_inverse_qft(out, qubits)


def phi_add_register(circuit: Circuit, a_qubits: Sequence[int], b_qubits: Sequence[int],
                     inverse: bool = False) -> Circuit:
    """
    Add register b to register a, where a is already in Fourier basis.

    Given |φ(a)⟩|b⟩, produces |φ(a + b)⟩|b⟩.

    After QFT's swap, a[j] has phase contribution from 2^(j+1) in the sum.
    When b[k]=1 (meaning 2^(n_b-1-k) contribution), we need to rotate a[j]
    by 2π * 2^(n_b-1-k) / 2^(j+1).

    Args:
        circuit: Circuit to extend
        a_qubits: Target register [MSB, ..., LSB] (in Fourier basis)
        b_qubits: Source register [MSB, ..., LSB] (computational basis)
        inverse: If True, subtract b from a
    """
    n_b = len(b_qubits)
    sign = -1 if inverse else 1
    out = circuit
    for j, a in enumerate(a_qubits):
        for k, b in enumerate(b_qubits):
            # 2π * 2^(n_b-1-k) / 2^(j+1) = 2π / 2^(j - n_b + k + 2)
            exponent = j - n_b + k + 2
            # Otherwise the rotation is a multiple of 2π
            if exponent > 0:
                out = out.cp(b, a, sign * 2 * np.pi / 2 ** exponent)
    return out


def draper_add(circuit: Circuit, a_qubits: Sequence[int], b_qubits: Sequence[int],
               inverse: bool = False) -> Circuit:
    """
    Add register b to register a using QFT (result in a, b unchanged).

    Computes: |a⟩|b⟩ → |a + b⟩|b⟩ (mod 2^n where n = len(a))

    Raises:
        ValidationError: If the registers overlap
    """
    overlap = set(a_qubits) & set(b_qubits)
    if overlap:
        raise ValidationError("registers", f"a and b share qubit(s) {sorted(overlap)}")
    out = append_qft(circuit, a_qubits)
    out = phi_add_register(out, a_qubits, b_qubits, inverse=inverse)
    return append_inverse_qft(out, a_qubits)


def draper_subtract(circuit: Circuit, a_qubits: Sequence[int], b_qubits: Sequence[int]) -> Circuit:
    """
    Subtract register b from register a: |a⟩|b⟩ → |a - b⟩|b⟩.

    Result is modulo 2^n (wraps around for negative results).
    """
    return draper_add(circuit, a_qubits, b_qubits, inverse=True)


def draper_subtract_constant(circuit: Circuit, qubits: Sequence[int], constant: int) -> Circuit:
    """Subtract a classical constant from a register: |a⟩ → |a - constant⟩."""
    return draper_add_constant(circuit, qubits, constant, inverse=True)


# =============================================================================
# Register helpers
# =============================================================================

def register(offset: int, n_bits: int) -> List[int]:
    """MSB-first register over qubits offset .. offset+n_bits-1 (offset is the LSB)."""
    return list(range(offset + n_bits - 1, offset - 1, -1))


def prepare_register(circuit: Circuit, qubits: Sequence[int], value: int) -> Circuit:
    """
    Load a classical value into a register with X gates.

    Raises:
        ValidationError: If value does not fit in the register
    """
    n_bits = len(qubits)
    if not 0 <= value < 2 ** n_bits:
        raise ValidationError("value", f"{value} does not fit in {n_bits} bit(s)")
    out = circuit
    for i, q in enumerate(qubits):
        if (value >> (n_bits - 1 - i)) & 1:  # MSB first
            out = out.x(q)
    return out


def read_register(index: int, qubits: Sequence[int]) -> int:
    """Integer held by a register inside a full basis index."""
    value = 0
    for q in qubits:
        value = value * 2 + ((index >> q) & 1)
    return value
