"""
Gate application engine.

Applies one gate at a time to a dense StateVector using index arithmetic on
the amplitude array instead of building 2^n x 2^n matrices. Qubit q is bit q
of the basis index (qubit 0 = least significant bit).

Every function returns a new StateVector; the input is never modified.
"""

import logging
from typing import Callable, Dict, Iterable, Optional, Sequence

import numpy as np

from .cancellation import CancellationToken
from .errors import ValidationError
from .gates import Gate, GateKind
from .state import StateVector, check_finite

logger = logging.getLogger(__name__)


# =============================================================================
# Index helpers
# =============================================================================

def _indices(dim: int) -> np.ndarray:
    return np.arange(dim, dtype=np.int64)


def _bit_set(idx: np.ndarray, q: int) -> np.ndarray:
    return ((idx >> q) & 1).astype(bool)


def _control_mask(idx: np.ndarray, controls: Iterable[int]) -> np.ndarray:
    """True where every control bit is 1."""
    mask = np.ones(idx.size, dtype=bool)
    for c in controls:
        mask &= _bit_set(idx, c)
    return mask


def _pairs(dim: int, target: int, controls: Sequence[int] = ()):
    """
    Index pairs (i0, i1) differing only in the target bit.

    i0 has the target bit 0, i1 = i0 | (1 << target). Only pairs whose
    control bits are all 1 are returned.
    """
    idx = _indices(dim)
    mask = ~_bit_set(idx, target)
    if controls:
        mask &= _control_mask(idx, controls)
    i0 = idx[mask]
    return i0, i0 | (1 << target)


# =============================================================================
# Primitive kernels
# =============================================================================

def apply_matrix(state: StateVector, target: int, matrix: np.ndarray,
                 controls: Sequence[int] = ()) -> StateVector:
    """
    Apply a 2x2 matrix [[a, b], [c, d]] to the target qubit.

    For every pair (α at i0, β at i1): α' = aα + bβ, β' = cα + dβ.
    When controls are given, only pairs with all control bits set change.
    """
    amps = state.amplitudes
    i0, i1 = _pairs(amps.size, target, controls)
    a0 = amps[i0]
    a1 = amps[i1]
    out = amps.copy()
    out[i0] = matrix[0, 0] * a0 + matrix[0, 1] * a1
    out[i1] = matrix[1, 0] * a0 + matrix[1, 1] * a1
    return StateVector._wrap(out)


def apply_bit_flip(state: StateVector, target: int, controls: Sequence[int] = ()) -> StateVector:
    """X on the target (when all controls are 1): swap each amplitude pair."""
    amps = state.amplitudes
    i0, i1 = _pairs(amps.size, target, controls)
    out = amps.copy()
    out[i0] = amps[i1]
    out[i1] = amps[i0]
    return StateVector._wrap(out)


def apply_phase(state: StateVector, qubits: Sequence[int], phase: complex) -> StateVector:
    """Multiply every amplitude whose listed qubit bits are all 1 by phase."""
    amps = state.amplitudes
    idx = _indices(amps.size)
    mask = _control_mask(idx, qubits)
    out = amps.copy()
    out[mask] *= phase
    return StateVector._wrap(out)


def apply_swap(state: StateVector, q1: int, q2: int) -> StateVector:
    """Exchange amplitudes of indices that differ by swapping bits q1 and q2."""
    amps = state.amplitudes
    idx = _indices(amps.size)
    # Indices with q1=1, q2=0 pair with q1=0, q2=1
    mask = _bit_set(idx, q1) & ~_bit_set(idx, q2)
    src = idx[mask]
    dst = src ^ ((1 << q1) | (1 << q2))
    out = amps.copy()
    out[src] = amps[dst]
    out[dst] = amps[src]
    return StateVector._wrap(out)


def apply_rz(state: StateVector, target: int, theta: float,
             controls: Sequence[int] = ()) -> StateVector:
    """RZ(θ) = diag(e^{-iθ/2}, e^{iθ/2}); no mixing between the pair."""
    amps = state.amplitudes
    i0, i1 = _pairs(amps.size, target, controls)
    out = amps.copy()
    out[i0] *= np.exp(-0.5j * theta)
    out[i1] *= np.exp(0.5j * theta)
    return StateVector._wrap(out)


# =============================================================================
# Dispatch
# =============================================================================

_PHASES = {
    GateKind.Z: -1.0 + 0j,
    GateKind.S: 1j,
    GateKind.SDG: -1j,
    GateKind.T: np.exp(1j * np.pi / 4),
    GateKind.TDG: np.exp(-1j * np.pi / 4),
}


def _apply_phase_gate(gate: Gate, state: StateVector) -> StateVector:
    return apply_phase(state, gate.qubits, _PHASES[gate.kind])


def _apply_param_phase(gate: Gate, state: StateVector) -> StateVector:
    # P(θ) on one qubit, CP(θ) on control+target
    return apply_phase(state, gate.qubits, np.exp(1j * gate.params[0]))


def _apply_mixing(gate: Gate, state: StateVector) -> StateVector:
    return apply_matrix(state, gate.qubits[-1], gate.matrix(), gate.qubits[:-1])


def _apply_flip(gate: Gate, state: StateVector) -> StateVector:
    return apply_bit_flip(state, gate.qubits[-1], gate.qubits[:-1])


def _apply_rz(gate: Gate, state: StateVector) -> StateVector:
    return apply_rz(state, gate.qubits[-1], gate.params[0], gate.qubits[:-1])


def _apply_controlled_z(gate: Gate, state: StateVector) -> StateVector:
    return apply_phase(state, gate.qubits, -1.0 + 0j)


def _apply_swap(gate: Gate, state: StateVector) -> StateVector:
    return apply_swap(state, gate.qubits[0], gate.qubits[1])


def _no_op(gate: Gate, state: StateVector) -> StateVector:
    # MEASURE is sampled by the executor; BARRIER only orders gates
    return state


_DISPATCH: Dict[GateKind, Callable[[Gate, StateVector], StateVector]] = {
    GateKind.H: _apply_mixing,
    GateKind.X: _apply_flip,
    GateKind.Y: _apply_mixing,
    GateKind.Z: _apply_phase_gate,
    GateKind.S: _apply_phase_gate,
    GateKind.SDG: _apply_phase_gate,
    GateKind.T: _apply_phase_gate,
    GateKind.TDG: _apply_phase_gate,
    GateKind.P: _apply_param_phase,
    GateKind.RX: _apply_mixing,
    GateKind.RY: _apply_mixing,
    GateKind.RZ: _apply_rz,
    GateKind.U3: _apply_mixing,
    GateKind.CNOT: _apply_flip,
    GateKind.CZ: _apply_controlled_z,
    GateKind.CP: _apply_param_phase,
    GateKind.CRX: _apply_mixing,
    GateKind.CRY: _apply_mixing,
    GateKind.CRZ: _apply_rz,
    GateKind.SWAP: _apply_swap,
    GateKind.CCX: _apply_flip,
    GateKind.MCZ: _apply_controlled_z,
    GateKind.MEASURE: _no_op,
    GateKind.BARRIER: _no_op,
}

_missing = set(GateKind) - set(_DISPATCH)
if _missing:
    raise RuntimeError(f"No engine handler for {sorted(k.value for k in _missing)}")


def validate_gate(gate: Gate, num_qubits: int) -> None:
    """
    Check that every qubit the gate touches exists.

    Raises:
        ValidationError: If any index is >= num_qubits
    """
    bad = [q for q in gate.qubits if q >= num_qubits]
    if bad:
        raise ValidationError(
            "qubits",
            f"{gate.name} references qubit(s) {bad} but the state has {num_qubits} qubit(s)",
        )


def apply_gate(gate: Gate, state: StateVector) -> StateVector:
    """
    Apply one gate to a dense state.

    Args:
        gate: Gate to apply
        state: Input state (left untouched)

    Returns:
        New StateVector after the gate

    Raises:
        ValidationError: If the gate references a qubit outside the state
    """
    validate_gate(gate, state.num_qubits)
    return _DISPATCH[gate.kind](gate, state)


def apply_gates(gates: Iterable[Gate], state: StateVector,
                cancel: Optional[CancellationToken] = None) -> StateVector:
    """
    Left fold of apply_gate over a gate sequence.

    The cancellation token, if given, is checked before every gate.
    """
    for gate in gates:
        if cancel is not None:
            cancel.raise_if_cancelled()
        state = apply_gate(gate, state)
    return check_finite(state, "apply_gates")


