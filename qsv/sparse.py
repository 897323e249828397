"""
Sparse state simulation and conversions between representations.

A SparseState keeps only nonzero amplitudes, which suits circuits that stay
close to a few basis states (classical reversible logic, GHZ preparation,
arithmetic on basis-state inputs). Gates are applied directly on the
index -> amplitude map, with the same LSB qubit convention as the dense
engine.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, Optional

import numpy as np

from .cancellation import CancellationToken
from .errors import CapacityError, DomainError, NotImplementedFeatureError, ValidationError
from .gates import Gate, GateKind
from .state import (
    TOPOLOGICAL_HINT,
    QuantumState,
    SparseState,
    StateType,
    StateVector,
    TopologicalState,
)

logger = logging.getLogger(__name__)

# Amplitudes below this magnitude are dropped after each gate
PRUNE_THRESHOLD = 1e-14


# =============================================================================
# Conversions
# =============================================================================

def init_sparse(n: int, max_qubits: int) -> SparseState:
    """|0...0⟩ as a sparse state."""
    if n < 0:
        raise ValidationError("num_qubits", f"must be non-negative, got {n}")
    if n > max_qubits:
        raise CapacityError("num_qubits", n, max_qubits)
    return SparseState({0: 1.0 + 0j}, n)


def to_sparse(state: StateVector, threshold: float = 0.0) -> SparseState:
    """Keep the amplitudes of a dense state whose magnitude exceeds threshold."""
    amps = state.amplitudes
    nonzero = np.flatnonzero(np.abs(amps) > threshold)
    return SparseState({int(i): complex(amps[i]) for i in nonzero}, state.num_qubits)


def to_dense(state: SparseState) -> StateVector:
    arr = np.zeros(state.dimension, dtype=np.complex128)
    for index, amp in state.items():
        arr[index] = amp
    return StateVector._wrap(arr)


def convert(state: QuantumState, target: StateType) -> QuantumState:
    """
    Convert a state to the target representation.

    Raises:
        NotImplementedFeatureError: When either side is topological
    """
    if state.state_type is target:
        return state
    if isinstance(state, TopologicalState) or target is StateType.TOPOLOGICAL:
        raise NotImplementedFeatureError(
            f"conversion from {state.state_type.value} to {target.value}", TOPOLOGICAL_HINT
        )
    if target is StateType.SPARSE:
        return to_sparse(state)
    return to_dense(state)


# =============================================================================
# Gate application on sparse states
# =============================================================================

def _controls_set(index: int, controls: Iterable[int]) -> bool:
    return all((index >> c) & 1 for c in controls)


def _prune(amps: Dict[int, complex], n: int) -> SparseState:
    return SparseState({i: a for i, a in amps.items() if abs(a) > PRUNE_THRESHOLD}, n)


def _apply_matrix(state: SparseState, target: int, matrix: np.ndarray, controls) -> SparseState:
    bit = 1 << target
    out: Dict[int, complex] = defaultdict(complex)
    for index, amp in state.items():
        if not _controls_set(index, controls):
            out[index] += amp
            continue
        b = (index >> target) & 1
        i0 = index & ~bit
        # Column b of the matrix spreads this amplitude over the pair
        out[i0] += matrix[0, b] * amp
        out[i0 | bit] += matrix[1, b] * amp
    return _prune(out, state.num_qubits)


def _apply_permutation(state: SparseState, fn) -> SparseState:
    return SparseState({fn(i): a for i, a in state.items()}, state.num_qubits)


def _apply_phase(state: SparseState, qubits, phase: complex) -> SparseState:
    return SparseState(
        {i: (a * phase if _controls_set(i, qubits) else a) for i, a in state.items()},
        state.num_qubits,
    )


def apply_gate_sparse(gate: Gate, state: SparseState) -> SparseState:
    """
    Apply one gate to a sparse state.

    Raises:
        ValidationError: If the gate references a qubit outside the state
    """
    n = state.num_qubits
    bad = [q for q in gate.qubits if q >= n]
    if bad:
        raise ValidationError(
            "qubits", f"{gate.name} references qubit(s) {bad} but the state has {n} qubit(s)"
        )
    kind = gate.kind
    if kind in (GateKind.MEASURE, GateKind.BARRIER):
        return state
    if kind in (GateKind.X, GateKind.CNOT, GateKind.CCX):
        controls, bit = gate.qubits[:-1], 1 << gate.qubits[-1]
        return _apply_permutation(state, lambda i: i ^ bit if _controls_set(i, controls) else i)
    if kind is GateKind.SWAP:
        a, b = gate.qubits
        mask = (1 << a) | (1 << b)
        return _apply_permutation(
            state, lambda i: i ^ mask if ((i >> a) & 1) != ((i >> b) & 1) else i
        )
    if kind in (GateKind.CZ, GateKind.MCZ):
        return _apply_phase(state, gate.qubits, -1.0 + 0j)
    if kind in (GateKind.P, GateKind.CP):
        return _apply_phase(state, gate.qubits, complex(np.exp(1j * gate.params[0])))
    if kind in (GateKind.Z, GateKind.S, GateKind.SDG, GateKind.T, GateKind.TDG):
        return _apply_phase(state, gate.qubits, complex(gate.matrix()[1, 1]))
    return _apply_matrix(state, gate.qubits[-1], gate.matrix(), gate.qubits[:-1])


def apply_gates_sparse(gates: Iterable[Gate], state: SparseState,
                       cancel: Optional[CancellationToken] = None) -> SparseState:
    for gate in gates:
        if cancel is not None:
            cancel.raise_if_cancelled()
        state = apply_gate_sparse(gate, state)
    if any(not np.isfinite(a) for _, a in state.items()):
        raise DomainError("apply_gates_sparse", "produced non-finite amplitudes")
    return state


def collapse_sparse(qubit: int, outcome: int, state: SparseState) -> SparseState:
    """Project a qubit of a sparse state onto |outcome⟩ and renormalize."""
    kept = {i: a for i, a in state.items() if ((i >> qubit) & 1) == outcome}
    weight = sum(abs(a) ** 2 for a in kept.values())
    if weight <= 0.0:
        raise DomainError("collapse", f"outcome {outcome} on qubit {qubit} has zero probability")
    scale = 1.0 / np.sqrt(weight)
    return SparseState({i: a * scale for i, a in kept.items()}, state.num_qubits)
