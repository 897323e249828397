"""
Quantum Fourier Transform (QFT) circuits.

The QFT is the quantum analog of the discrete Fourier transform and is a key
component of many quantum algorithms including Shor's factoring algorithm
and quantum phase estimation.

Qubit lists passed to append_qft/append_inverse_qft are ordered from most
significant to least significant bit. qft_circuit(n) uses the package's
convention (qubit 0 = least significant bit), so for the integer basis
index j it maps |j⟩ → (1/√N) Σₖ exp(2πijk/N) |k⟩.
"""

from typing import List, Optional, Sequence

import numpy as np

from . import gates as g
from .circuit import Circuit, empty
from .errors import ValidationError
from .gates import Gate


def _check_qubits(qubits: Sequence[int], circuit: Circuit) -> List[int]:
    qubits = list(qubits)
    if len(set(qubits)) != len(qubits):
        raise ValidationError("qubits", f"repeated qubit in {qubits}")
    for q in qubits:
        if not 0 <= q < circuit.num_qubits:
            raise ValidationError("qubits", f"{q} out of range for {circuit.num_qubits} qubit(s)")
    return qubits


def qft_gates(qubits: Sequence[int], swaps: bool = True) -> List[Gate]:
    """
    Gate list of the QFT on an MSB-first qubit list.

    Args:
        qubits: Qubit indices, most significant first
        swaps: Append the final bit-reversal swaps (Draper adders skip them)
    """
    n = len(qubits)
    out: List[Gate] = []

    # Hadamard and controlled rotations
    for i in range(n):
        out.append(g.h(qubits[i]))
        for j in range(i + 1, n):
            # Rotation angle: π/2^(j-i)
            theta = np.pi / (2 ** (j - i))
            out.append(g.cp(qubits[j], qubits[i], theta))

    # Swap qubits to reverse order
    if swaps:
        for i in range(n // 2):
            out.append(g.swap(qubits[i], qubits[n - 1 - i]))
    return out


def inverse_qft_gates(qubits: Sequence[int], swaps: bool = True) -> List[Gate]:
    """
    Gate list of the inverse QFT: reversed order, negated phases.
    """
    return [gate.inverse() for gate in reversed(qft_gates(qubits, swaps))]


def append_qft(circuit: Circuit, qubits: Sequence[int], swaps: bool = True) -> Circuit:
    """
    Append the QFT on qubits (MSB first) to a circuit.

    Raises:
        ValidationError: If a qubit is repeated or out of range
    """
    qubits = _check_qubits(qubits, circuit)
    return circuit.add_gates(qft_gates(qubits, swaps))


def append_inverse_qft(circuit: Circuit, qubits: Sequence[int], swaps: bool = True) -> Circuit:
    """
    Append the inverse QFT on qubits (MSB first) to a circuit.

    Raises:
        ValidationError: If a qubit is repeated or out of range
    """
    qubits = _check_qubits(qubits, circuit)
    return circuit.add_gates(inverse_qft_gates(qubits, swaps))


def _msb_first(n: int) -> List[int]:
    return list(range(n - 1, -1, -1))


def qft_circuit(n: int, circuit: Optional[Circuit] = None) -> Circuit:
    """QFT over all n qubits of the integer register."""
    base = circuit if circuit is not None else empty(n)
    return append_qft(base, _msb_first(n))


def inverse_qft_circuit(n: int, circuit: Optional[Circuit] = None) -> Circuit:
    """Inverse QFT over all n qubits of the integer register."""
    base = circuit if circuit is not None else empty(n)
    return append_inverse_qft(base, _msb_first(n))


def qft_matrix(n: int) -> np.ndarray:
    """Reference DFT matrix F[k, j] = ω^{jk}/√N with ω = e^{2πi/N}."""
    N = 2 ** n
    j = np.arange(N)
    return np.exp(2j * np.pi * np.outer(j, j) / N) / np.sqrt(N)
