"""
Circuit execution: validate, expand, apply gates, sample.

CircuitExecutor is the shared pipeline behind every backend. It owns no
randomness of its own; callers pass the seed (an int or a SeedSequence)
that drives sampling.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence

from .cancellation import CancellationToken
from .circuit import Circuit, validate
from .config import DEFAULT_CONFIG, SimulatorConfig
from .engine import apply_gates
from .errors import CancellationError, QuantumError, ValidationError
from .gates import ALL_GATE_NAMES
from .measurement import Seed, validate_shots, format_bitstring, histogram, parse_bitstring, sample_indices
from .sparse import apply_gates_sparse, init_sparse
from .state import QuantumState, StateType, init_state
from .transpile import decompose, needs_decomposition

logger = logging.getLogger(__name__)


class ExecutionStage(Enum):
    """Where an execution currently is."""
    NOT_STARTED = "not_started"
    INITIALIZING = "initializing"
    APPLYING_GATES = "applying_gates"
    SAMPLING = "sampling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Legal stage transitions
_TRANSITIONS = {
    ExecutionStage.NOT_STARTED: {ExecutionStage.INITIALIZING},
    ExecutionStage.INITIALIZING: {ExecutionStage.APPLYING_GATES},
    ExecutionStage.APPLYING_GATES: {ExecutionStage.SAMPLING, ExecutionStage.COMPLETED},
    ExecutionStage.SAMPLING: {ExecutionStage.COMPLETED},
}


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of running a circuit for a number of shots.

    Attributes:
        counts: {bitstring: count}, qubit 0 rightmost, nonzero buckets only
        shots: Total number of shots (equals sum of counts)
        num_qubits: Width of every bitstring
        gate_count: Unitary gates applied, after decomposition
        backend_name: Backend that produced the result
        seed: Explicit per-call seed, or None when drawn from the backend
        duration_seconds: Wall-clock time of the run
    """

    counts: Mapping[str, int]
    shots: int
    num_qubits: int
    gate_count: int
    backend_name: str
    seed: Optional[int] = None
    duration_seconds: float = 0.0

    def __post_init__(self):
        # Read-only view over a private copy
        object.__setattr__(self, "counts", MappingProxyType(dict(self.counts)))

    def most_frequent(self) -> str:
        """Bitstring with the highest count (lowest bitstring on ties)."""
        return min(self.counts, key=lambda bits: (-self.counts[bits], bits))

    def probabilities(self) -> Dict[str, float]:
        return {bits: count / self.shots for bits, count in self.counts.items()}

    def marginal(self, qubits: Sequence[int]) -> Dict[str, int]:
        """
        Counts restricted to some qubits.

        The marginal bitstring keeps the same convention: qubits[0] is its
        rightmost character.

        Raises:
            ValidationError: If a qubit is out of range
        """
        for q in qubits:
            if not 0 <= q < self.num_qubits:
                raise ValidationError("qubits", f"{q} out of range for {self.num_qubits} qubit(s)")
        out: Dict[str, int] = {}
        for bits, count in self.counts.items():
            index = parse_bitstring(bits)
            sub = sum(((index >> q) & 1) << k for k, q in enumerate(qubits))
            key = format_bitstring(sub, len(qubits))
            out[key] = out.get(key, 0) + count
        return dict(sorted(out.items()))


class CircuitExecutor:
    """
    Runs circuits on a chosen state representation.

    Args:
        max_qubits: Largest circuit accepted
        supported_gates: Gate names applied natively; others are decomposed
        config: Numerical and sampling settings
        state_type: GATE_BASED (dense) or SPARSE
        backend_name: Name recorded in results and logs
    """

    def __init__(self, max_qubits: int, supported_gates: Iterable[str] = ALL_GATE_NAMES,
                 config: Optional[SimulatorConfig] = None,
                 state_type: StateType = StateType.GATE_BASED,
                 backend_name: str = "local"):
        if state_type is StateType.TOPOLOGICAL:
            raise ValidationError("state_type", "the executor runs gate-based or sparse states only")
        self.max_qubits = max_qubits
        self.supported_gates = frozenset(supported_gates)
        self.config = config or DEFAULT_CONFIG
        self.state_type = state_type
        self.backend_name = backend_name
        self.stage = ExecutionStage.NOT_STARTED

    def _enter(self, stage: ExecutionStage) -> None:
        allowed = _TRANSITIONS.get(self.stage, set())
        if stage not in allowed and stage not in (ExecutionStage.FAILED, ExecutionStage.CANCELLED):
            raise RuntimeError(f"illegal stage transition {self.stage.value} -> {stage.value}")
        logger.debug("[%s] %s -> %s", self.backend_name, self.stage.value, stage.value)
        self.stage = stage

    def prepare(self, circuit: Circuit) -> Circuit:
        """
        Validate a circuit and expand unsupported gates.

        Raises:
            CapacityError: If the circuit is wider than max_qubits
            ValidationError: If a gate index is out of range
            NotImplementedFeatureError: If a gate cannot be decomposed
        """
        validate(circuit, self.max_qubits)
        if needs_decomposition(circuit, self.supported_gates):
            circuit = decompose(circuit, self.supported_gates)
        return circuit

    def _initial_state(self, n: int) -> QuantumState:
        if self.state_type is StateType.SPARSE:
            return init_sparse(n, self.max_qubits)
        return init_state(n, self.max_qubits)

    def _apply(self, circuit: Circuit, state: QuantumState,
               cancel: Optional[CancellationToken]) -> QuantumState:
        unitary = circuit.unitary_gates()
        if self.state_type is StateType.SPARSE:
            return apply_gates_sparse(unitary, state, cancel)
        return apply_gates(unitary, state, cancel)

    def _run(self, circuit: Circuit, cancel: Optional[CancellationToken]):
        self.stage = ExecutionStage.NOT_STARTED
        self._enter(ExecutionStage.INITIALIZING)
        prepared = self.prepare(circuit)
        state = self._initial_state(prepared.num_qubits)
        self._enter(ExecutionStage.APPLYING_GATES)
        state = self._apply(prepared, state, cancel)
        return prepared, state

    def _fail(self, exc: Exception) -> None:
        if isinstance(exc, CancellationError):
            self._enter(ExecutionStage.CANCELLED)
            logger.info("[%s] execution cancelled", self.backend_name)
        else:
            self._enter(ExecutionStage.FAILED)

    def run_to_state(self, circuit: Circuit,
                     cancel: Optional[CancellationToken] = None) -> QuantumState:
        """
        Apply a circuit to |0...0⟩ and return the final state.

        MEASURE gates are skipped; use Backend.apply_operation for
        collapsing mid-circuit measurement.
        """
        try:
            _, state = self._run(circuit, cancel)
        except QuantumError as exc:
            self._fail(exc)
            raise
        self._enter(ExecutionStage.COMPLETED)
        return state

    def run(self, circuit: Circuit, shots: int, seed: Seed = None,
            cancel: Optional[CancellationToken] = None) -> ExecutionResult:
        """
        Execute a circuit and sample every qubit shots times.

        Args:
            circuit: Circuit to run
            shots: Number of samples, must be positive
            seed: Integer seed or SeedSequence for sampling
            cancel: Optional token checked between gates and shot chunks

        Returns:
            ExecutionResult with counts summing to shots

        Raises:
            ValidationError: If shots <= 0 or the circuit is invalid
            CapacityError: If the circuit is too wide
            CancellationError: If cancelled
        """
        start = time.perf_counter()
        try:
            validate_shots(shots)
            prepared, state = self._run(circuit, cancel)
            self._enter(ExecutionStage.SAMPLING)
            indices = sample_indices(
                state,
                shots,
                seed=seed,
                chunk_size=self.config.shot_chunk_size,
                max_workers=self.config.sampling_workers,
                cancel=cancel,
                tol=self.config.normalization_tolerance,
            )
        except QuantumError as exc:
            self._fail(exc)
            raise
        self._enter(ExecutionStage.COMPLETED)

        gate_count = len(prepared.unitary_gates())
        elapsed = time.perf_counter() - start
        result = ExecutionResult(
            counts=histogram(indices, prepared.num_qubits),
            shots=int(shots),
            num_qubits=prepared.num_qubits,
            gate_count=gate_count,
            backend_name=self.backend_name,
            seed=seed if isinstance(seed, int) else None,
            duration_seconds=elapsed,
        )
        logger.info(
            "[%s] %d qubits, %d gates, %d shots in %.3fs",
            self.backend_name, prepared.num_qubits, gate_count, shots, elapsed,
        )
        return result
