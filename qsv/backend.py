"""
Backend abstraction and the local simulators.

A Backend runs circuits and hands back Result values: every operation that
can fail returns Ok(value) or Err(QuantumError) instead of raising, so the
caller decides how to react to a validation failure or a cancelled run.

Two implementations ship with the package:

    LocalBackend  - dense state vectors, every gate kind supported
    SparseBackend - index -> amplitude maps, for circuits that stay sparse

Randomness:
    A backend owns a SeedSequence built from its seed. Each execute() call
    without an explicit seed spawns the next child under a lock, so two
    backends created with the same seed and given the same calls produce
    identical histograms. Mid-circuit MEASURE operations draw from a
    generator seeded by the first child.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Union

import numpy as np

from .cancellation import CancellationToken
from .circuit import Circuit
from .config import DEFAULT_CONFIG, SimulatorConfig
from .engine import apply_gates
from .errors import CapacityError, Result, ValidationError, capture
from .executor import CircuitExecutor, ExecutionResult
from .gates import ALL_GATE_NAMES, Gate, GateKind
from .measurement import collapse, qubit_probabilities, seed_sequence
from .sparse import apply_gates_sparse, collapse_sparse, convert, init_sparse, to_sparse
from .state import QuantumState, SparseState, StateType, StateVector, init_state
from .transpile import decompose_gate

logger = logging.getLogger(__name__)

Operation = Union[Gate, Sequence[Gate], Circuit]


@dataclass(frozen=True)
class BackendCapabilities:
    """What a backend can run."""

    max_qubits: int
    native_state_type: StateType
    supported_gates: FrozenSet[str]
    supports_mid_circuit_measurement: bool = True
    is_simulator: bool = True


class Backend(ABC):
    """
    Common surface of every backend.

    Subclasses provide the native representation through a handful of
    hooks; validation, seeding, Result wrapping and the async twins live
    here.
    """

    def __init__(self, seed: Optional[int] = None, max_qubits: int = DEFAULT_CONFIG.max_qubits,
                 config: Optional[SimulatorConfig] = None):
        if max_qubits < 0:
            raise ValidationError("max_qubits", f"must be non-negative, got {max_qubits}")
        self._config = config or DEFAULT_CONFIG
        self._max_qubits = max_qubits
        self._seed = seed
        self._seed_sequence = seed_sequence(seed)
        self._lock = threading.Lock()
        self._measure_rng = np.random.default_rng(self._seed_sequence.spawn(1)[0])

    # -------------------------------------------------------------------------
    # Description
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def native_state_type(self) -> StateType:
        ...

    @property
    def supported_gates(self) -> FrozenSet[str]:
        return ALL_GATE_NAMES

    @property
    def max_qubits(self) -> int:
        return self._max_qubits

    @property
    def config(self) -> SimulatorConfig:
        return self._config

    def capabilities(self) -> BackendCapabilities:
        return BackendCapabilities(
            max_qubits=self.max_qubits,
            native_state_type=self.native_state_type,
            supported_gates=self.supported_gates,
        )

    def supports(self, gate: Union[Gate, GateKind, str]) -> bool:
        """True when the gate runs natively without decomposition."""
        if isinstance(gate, Gate):
            name = gate.name
        elif isinstance(gate, GateKind):
            name = gate.value
        else:
            name = str(gate).upper()
        return name in self.supported_gates

    def __repr__(self) -> str:
        return f"{type(self).__name__}(seed={self._seed}, max_qubits={self.max_qubits})"

    # -------------------------------------------------------------------------
    # Representation hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _initial_state(self, n: int) -> QuantumState:
        ...

    @abstractmethod
    def _apply_unitaries(self, gates: Sequence[Gate], state: QuantumState,
                         cancel: Optional[CancellationToken]) -> QuantumState:
        ...

    @abstractmethod
    def _collapse(self, qubit: int, outcome: int, state: QuantumState) -> QuantumState:
        ...

    def _to_native(self, state: QuantumState) -> QuantumState:
        return convert(state, self.native_state_type)

    def _executor(self) -> CircuitExecutor:
        return CircuitExecutor(
            max_qubits=self.max_qubits,
            supported_gates=self.supported_gates,
            config=self._config,
            state_type=self.native_state_type,
            backend_name=self.name,
        )

    def _next_seed(self) -> np.random.SeedSequence:
        with self._lock:
            return self._seed_sequence.spawn(1)[0]

    # -------------------------------------------------------------------------
    # Operations (raising versions)
    # -------------------------------------------------------------------------

    def _measure(self, qubit: int, state: QuantumState) -> QuantumState:
        if not 0 <= qubit < state.num_qubits:
            raise ValidationError("qubit", f"{qubit} out of range for {state.num_qubits} qubit(s)")
        p0, p1 = qubit_probabilities(qubit, state)
        with self._lock:
            draw = self._measure_rng.random()
        outcome = int(draw * (p0 + p1) < p1)
        logger.debug("[%s] MEASURE q%d -> %d", self.name, qubit, outcome)
        return self._collapse(qubit, outcome, state)

    def _apply(self, op: Operation, state: QuantumState,
               cancel: Optional[CancellationToken] = None) -> QuantumState:
        if state.num_qubits > self.max_qubits:
            raise CapacityError("num_qubits", state.num_qubits, self.max_qubits)
        state = self._to_native(state)
        if isinstance(op, Circuit):
            op = op.gates
        gates = (op,) if isinstance(op, Gate) else tuple(op)
        pending = []
        for gate in gates:
            if not isinstance(gate, Gate):
                raise ValidationError("operation", f"expected Gate, got {type(gate).__name__}")
            if gate.kind is GateKind.MEASURE:
                state = self._apply_unitaries(pending, state, cancel)
                pending = []
                state = self._measure(gate.qubits[0], state)
            elif gate.is_unitary:
                pending.extend(decompose_gate(gate, self.supported_gates))
            else:
                pending.append(gate)
        return self._apply_unitaries(pending, state, cancel)

    def _initialize(self, n: int) -> QuantumState:
        state = self._initial_state(n)
        logger.debug("[%s] initialized %d qubit(s)", self.name, n)
        return state

    # -------------------------------------------------------------------------
    # Public API: every method returns a Result
    # -------------------------------------------------------------------------

    def initialize_state(self, num_qubits: int) -> Result[QuantumState]:
        """|0...0⟩ in the native representation."""
        return capture(self._initialize, num_qubits, source=self.name)

    def apply_operation(self, op: Operation, state: QuantumState,
                        cancel: Optional[CancellationToken] = None) -> Result[QuantumState]:
        """
        Apply a gate, a gate sequence or a circuit's gates to a state.

        MEASURE collapses its qubit using the backend's generator; states of
        another representation are converted to the native one first.
        """
        return capture(self._apply, op, state, cancel, source=self.name)

    def execute_to_state(self, circuit: Circuit,
                         cancel: Optional[CancellationToken] = None) -> Result[QuantumState]:
        """Final state of a circuit started from |0...0⟩ (MEASURE gates skipped)."""
        return capture(self._executor().run_to_state, circuit, cancel, source=self.name)

    def execute(self, circuit: Circuit, shots: int, seed: Optional[int] = None,
                cancel: Optional[CancellationToken] = None) -> Result[ExecutionResult]:
        """
        Run a circuit and sample every qubit.

        Args:
            circuit: Circuit to run
            shots: Number of samples, must be positive
            seed: Per-call seed; None uses the backend's next child seed
            cancel: Optional cancellation token

        Returns:
            Ok(ExecutionResult) or Err(ValidationError | CapacityError |
            CancellationError | NotImplementedFeatureError | DomainError)
        """
        sampling_seed = seed if seed is not None else self._next_seed()
        return capture(self._executor().run, circuit, shots, sampling_seed, cancel, source=self.name)

    # -------------------------------------------------------------------------
    # Async twins
    # -------------------------------------------------------------------------

    async def initialize_state_async(self, num_qubits: int) -> Result[QuantumState]:
        return await asyncio.to_thread(self.initialize_state, num_qubits)

    async def apply_operation_async(self, op: Operation, state: QuantumState,
                                    cancel: Optional[CancellationToken] = None) -> Result[QuantumState]:
        return await asyncio.to_thread(self.apply_operation, op, state, cancel)

    async def execute_to_state_async(self, circuit: Circuit,
                                     cancel: Optional[CancellationToken] = None) -> Result[QuantumState]:
        return await asyncio.to_thread(self.execute_to_state, circuit, cancel)

    async def execute_async(self, circuit: Circuit, shots: int, seed: Optional[int] = None,
                            cancel: Optional[CancellationToken] = None) -> Result[ExecutionResult]:
        # Spawn the child seed before leaving the event loop so call order fixes it
        sampling_seed = seed if seed is not None else self._next_seed()
        return await asyncio.to_thread(
            capture, self._executor().run, circuit, shots, sampling_seed, cancel, source=self.name
        )


# =============================================================================
# Implementations
# =============================================================================

class LocalBackend(Backend):
    """
    Dense state-vector simulator.

    Args:
        seed: Seed for sampling and mid-circuit measurement
        max_qubits: Largest register accepted (default config.max_qubits, 16)
        config: Simulator settings
        gate_set: Restrict the natively supported gates; anything else is
            decomposed before execution
    """

    def __init__(self, seed: Optional[int] = None, max_qubits: Optional[int] = None,
                 config: Optional[SimulatorConfig] = None,
                 gate_set: Optional[Iterable[str]] = None):
        config = config or DEFAULT_CONFIG
        if max_qubits is None:
            max_qubits = config.max_qubits
        super().__init__(seed=seed, max_qubits=max_qubits, config=config)
        if gate_set is None:
            self._gates = ALL_GATE_NAMES
        else:
            self._gates = frozenset(name.upper() for name in gate_set) | {"MEASURE", "BARRIER"}
            unknown = self._gates - ALL_GATE_NAMES
            if unknown:
                raise ValidationError("gate_set", f"unknown gate name(s) {sorted(unknown)}")

    @property
    def name(self) -> str:
        return "local"

    @property
    def native_state_type(self) -> StateType:
        return StateType.GATE_BASED

    @property
    def supported_gates(self) -> FrozenSet[str]:
        return self._gates

    def _initial_state(self, n: int) -> StateVector:
        return init_state(n, self.max_qubits)

    def _apply_unitaries(self, gates, state, cancel):
        return apply_gates(gates, state, cancel)

    def _collapse(self, qubit, outcome, state):
        return collapse(qubit, outcome, state)


class SparseBackend(Backend):
    """Simulator keeping only the nonzero amplitudes."""

    def __init__(self, seed: Optional[int] = None, max_qubits: Optional[int] = None,
                 config: Optional[SimulatorConfig] = None):
        config = config or DEFAULT_CONFIG
        if max_qubits is None:
            max_qubits = config.sparse_max_qubits
        super().__init__(seed=seed, max_qubits=max_qubits, config=config)

    @property
    def name(self) -> str:
        return "sparse"

    @property
    def native_state_type(self) -> StateType:
        return StateType.SPARSE

    def _initial_state(self, n: int) -> SparseState:
        return init_sparse(n, self.max_qubits)

    def _to_native(self, state: QuantumState) -> QuantumState:
        if isinstance(state, StateVector):
            return to_sparse(state, threshold=self._config.tolerance)
        return super()._to_native(state)

    def _apply_unitaries(self, gates, state, cancel):
        return apply_gates_sparse(gates, state, cancel)

    def _collapse(self, qubit, outcome, state):
        return collapse_sparse(qubit, outcome, state)
