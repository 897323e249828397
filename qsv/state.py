"""
Quantum state representations and the complex amplitude store.

A dense state of n qubits is a vector of 2^n complex amplitudes indexed by
the basis state read as an integer. Qubit 0 is the least significant bit
of that integer, so for 3 qubits index 6 = 0b110 means q2=1, q1=1, q0=0.

States are values: every operation returns a new state and the wrapped
numpy array is read-only, so no two states ever share writable amplitudes.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Union

import numpy as np

from .errors import CapacityError, DomainError, NotImplementedFeatureError, ValidationError

logger = logging.getLogger(__name__)

# Exact dense simulation ceiling (2^16 = 65536 amplitudes)
MAX_QUBITS = 16

# Amplitude-wise tolerance for state equality
EQUALITY_TOLERANCE = 1e-10

# Tolerance on total probability for a state to count as normalized
NORMALIZATION_TOLERANCE = 1e-9


class StateType(Enum):
    """Native representation a state (or backend) uses."""

    GATE_BASED = "gate_based"  # Dense state vector
    SPARSE = "sparse"
    TOPOLOGICAL = "topological"


# =============================================================================
# Representations
# =============================================================================

def _num_qubits_for(dim: int, field: str = "amplitudes") -> int:
    if dim < 1 or dim & (dim - 1):
        raise ValidationError(field, f"length must be a power of two, got {dim}")
    return dim.bit_length() - 1


class StateVector:
    """
    Dense state vector over num_qubits qubits.

    Attributes:
        num_qubits: Number of qubits n
        amplitudes: Read-only complex128 array of length 2^n
    """

    state_type = StateType.GATE_BASED
    __slots__ = ("_amplitudes", "num_qubits")

    def __init__(self, amplitudes: Iterable[complex]):
        arr = np.array(amplitudes, dtype=np.complex128).reshape(-1)
        self.num_qubits = _num_qubits_for(arr.size)
        arr.setflags(write=False)
        self._amplitudes = arr

    @classmethod
    def _wrap(cls, arr: np.ndarray) -> "StateVector":
        """Take ownership of a freshly computed array without copying it."""
        state = cls.__new__(cls)
        state.num_qubits = _num_qubits_for(arr.size)
        arr.setflags(write=False)
        state._amplitudes = arr
        return state

    @property
    def amplitudes(self) -> np.ndarray:
        return self._amplitudes

    @property
    def dimension(self) -> int:
        return self._amplitudes.size

    def to_array(self) -> np.ndarray:
        """Return a writable copy of the amplitudes."""
        return self._amplitudes.copy()

    def __len__(self) -> int:
        return self._amplitudes.size

    def __eq__(self, other) -> bool:
        if not isinstance(other, StateVector):
            return NotImplemented
        return equals(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"StateVector(num_qubits={self.num_qubits}, amplitudes={self._amplitudes!r})"


class SparseState:
    """
    Sparse state: only nonzero amplitudes are stored.

    Attributes:
        num_qubits: Number of qubits n
        amplitudes: Mapping from basis index to amplitude
    """

    state_type = StateType.SPARSE
    __slots__ = ("_amplitudes", "num_qubits")

    def __init__(self, amplitudes: Mapping[int, complex], num_qubits: int):
        if num_qubits < 0:
            raise ValidationError("num_qubits", f"must be non-negative, got {num_qubits}")
        dim = 1 << num_qubits
        cleaned: Dict[int, complex] = {}
        for index, amp in amplitudes.items():
            if not 0 <= index < dim:
                raise ValidationError("index", f"{index} out of range for {num_qubits} qubits")
            if amp != 0:
                cleaned[int(index)] = complex(amp)
        self._amplitudes = cleaned
        self.num_qubits = num_qubits

    @property
    def amplitudes(self) -> Dict[int, complex]:
        return dict(self._amplitudes)

    @property
    def dimension(self) -> int:
        return 1 << self.num_qubits

    def items(self):
        return self._amplitudes.items()

    def __len__(self) -> int:
        return len(self._amplitudes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SparseState):
            return NotImplemented
        return equals(self, other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"SparseState(num_qubits={self.num_qubits}, nonzero={len(self._amplitudes)})"


class TopologicalState:
    """Placeholder for braiding-based representations; not simulated here."""

    state_type = StateType.TOPOLOGICAL
    __slots__ = ("num_qubits",)

    def __init__(self, num_qubits: int):
        self.num_qubits = num_qubits

    @property
    def dimension(self) -> int:
        return 1 << self.num_qubits

    def __repr__(self) -> str:
        return f"TopologicalState(num_qubits={self.num_qubits})"


QuantumState = Union[StateVector, SparseState, TopologicalState]

TOPOLOGICAL_HINT = "Convert the circuit to gates and run it on a gate-based backend"


def _dense(state: QuantumState, operation: str) -> np.ndarray:
    """Amplitude array for any supported representation."""
    if isinstance(state, StateVector):
        return state.amplitudes
    if isinstance(state, SparseState):
        arr = np.zeros(state.dimension, dtype=np.complex128)
        for index, amp in state.items():
            arr[index] = amp
        return arr
    if isinstance(state, TopologicalState):
        raise NotImplementedFeatureError(f"{operation} on topological states", TOPOLOGICAL_HINT)
    raise ValidationError("state", f"unsupported state type {type(state).__name__}")


# =============================================================================
# Construction
# =============================================================================

def init_state(n: int, max_qubits: int = MAX_QUBITS) -> StateVector:
    """
    Create the computational basis state |0...0⟩.

    Args:
        n: Number of qubits
        max_qubits: Dense simulation ceiling

    Returns:
        StateVector with amplitude 1 at index 0

    Raises:
        ValidationError: If n < 0
        CapacityError: If n > max_qubits
    """
    if n < 0:
        raise ValidationError("num_qubits", f"must be non-negative, got {n}")
    if n > max_qubits:
        raise CapacityError("num_qubits", n, max_qubits)
    arr = np.zeros(1 << n, dtype=np.complex128)
    arr[0] = 1.0
    return StateVector._wrap(arr)


def create_state(amplitudes: Iterable[complex]) -> StateVector:
    """
    Create a state from explicit amplitudes.

    The amplitudes are NOT normalized; call normalize() for that.

    Raises:
        ValidationError: If the length is not a power of two
    """
    return StateVector(amplitudes)


def basis_state(index: int, n: int) -> StateVector:
    """Computational basis state |index⟩ over n qubits."""
    state = init_state(n)
    if not 0 <= index < state.dimension:
        raise ValidationError("index", f"{index} out of range for {n} qubits")
    arr = np.zeros(state.dimension, dtype=np.complex128)
    arr[index] = 1.0
    return StateVector._wrap(arr)


# =============================================================================
# Accessors
# =============================================================================

def dimension(state: QuantumState) -> int:
    """Return 2^n for an n-qubit state."""
    return 1 << state.num_qubits


def num_qubits(state: QuantumState) -> int:
    return state.num_qubits


def get_amplitude(index: int, state: QuantumState) -> complex:
    """
    Amplitude of basis state |index⟩.

    Raises:
        ValidationError: If index < 0 or index >= dimension
    """
    if isinstance(index, bool) or not isinstance(index, (int, np.integer)):
        raise ValidationError("index", f"must be an integer, got {type(index).__name__}")
    dim = dimension(state)
    if not 0 <= index < dim:
        raise ValidationError("index", f"{index} out of range [0, {dim})")
    if isinstance(state, SparseState):
        return state._amplitudes.get(int(index), 0j)
    return complex(_dense(state, "get_amplitude")[index])


# =============================================================================
# Linear algebra
# =============================================================================

def norm(state: QuantumState) -> float:
    """L2 norm sqrt(Σ|a|²)."""
    if isinstance(state, SparseState):
        return float(np.sqrt(sum(abs(a) ** 2 for _, a in state.items())))
    return float(np.linalg.norm(_dense(state, "norm")))


def normalize(state: QuantumState) -> QuantumState:
    """
    Divide every amplitude by the L2 norm.

    Raises:
        DomainError: If the state is all zeros
    """
    n = norm(state)
    if n == 0.0 or not np.isfinite(n):
        raise DomainError("normalize", f"state norm is {n}")
    if isinstance(state, SparseState):
        return SparseState({i: a / n for i, a in state.items()}, state.num_qubits)
    return StateVector._wrap(_dense(state, "normalize") / n)


def is_normalized(state: QuantumState, tol: float = NORMALIZATION_TOLERANCE) -> bool:
    return abs(norm(state) ** 2 - 1.0) <= tol


def inner_product(a: QuantumState, b: QuantumState) -> complex:
    """
    ⟨a|b⟩, conjugating the first argument.

    Raises:
        DomainError: If the states have different dimensions
    """
    if dimension(a) != dimension(b):
        raise DomainError(
            "inner_product",
            f"dimension mismatch {dimension(a)} vs {dimension(b)}",
        )
    return complex(np.vdot(_dense(a, "inner_product"), _dense(b, "inner_product")))


def tensor_product(a: QuantumState, b: QuantumState) -> StateVector:
    """
    Kronecker product over a.num_qubits + b.num_qubits qubits.

    a occupies the low qubits: the combined index is i_a + (i_b << a.num_qubits).
    """
    combined = a.num_qubits + b.num_qubits
    if combined > MAX_QUBITS:
        raise CapacityError("num_qubits", combined, MAX_QUBITS)
    # np.kron puts its first argument in the high bits
    arr = np.kron(_dense(b, "tensor_product"), _dense(a, "tensor_product"))
    return StateVector._wrap(arr)


def equals(a: QuantumState, b: QuantumState, tol: float = EQUALITY_TOLERANCE) -> bool:
    """Amplitude-wise comparison; differently sized states are not equal."""
    if dimension(a) != dimension(b):
        return False
    return bool(np.allclose(_dense(a, "equals"), _dense(b, "equals"), rtol=0.0, atol=tol))


def probabilities(state: QuantumState) -> np.ndarray:
    """Per-index probabilities |a_i|² as a float array."""
    arr = _dense(state, "probabilities")
    return arr.real ** 2 + arr.imag ** 2


def state_type(state: QuantumState) -> StateType:
    return state.state_type


def check_finite(state: StateVector, operation: str) -> StateVector:
    """Raise DomainError instead of letting NaN or inf amplitudes escape."""
    if not np.all(np.isfinite(state.amplitudes)):
        raise DomainError(operation, "produced non-finite amplitudes")
    return state


def describe(state: QuantumState, threshold: float = 1e-10, max_terms: Optional[int] = 16) -> str:
    """Human-readable ket expansion, e.g. '0.7071|00⟩ + 0.7071|11⟩'."""
    if isinstance(state, TopologicalState):
        return repr(state)
    arr = _dense(state, "describe")
    n = state.num_qubits
    terms = []
    for index in np.flatnonzero(np.abs(arr) > threshold):
        amp = arr[index]
        ket = format(int(index), f"0{n}b") if n else ""
        if abs(amp.imag) < threshold:
            coeff = f"{amp.real:.4f}"
        else:
            coeff = f"({amp.real:.4f}{amp.imag:+.4f}j)"
        terms.append(f"{coeff}|{ket}⟩")
        if max_terms is not None and len(terms) >= max_terms:
            terms.append("...")
            break
    return " + ".join(terms) if terms else "0"
