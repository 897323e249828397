"""
Grover's search algorithm.

Grover's algorithm provides quadratic speedup for unstructured search problems.
Given a set of marked values among N = 2^n, it finds one of them in
O(√(N/M)) oracle calls instead of O(N).

Bit ordering convention:
    qubit i holds bit i of the searched value (qubit 0 = least significant),
    so a target t is reported as the histogram bitstring format(t, "0nb").

The oracle and the diffusion operator use the native multi-controlled Z,
so no ancilla qubits are needed.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .backend import Backend
from .circuit import Circuit, empty
from .errors import Result, ValidationError, capture
from .measurement import parse_bitstring

logger = logging.getLogger(__name__)


def _phase_flip_all_ones(circuit: Circuit, qubits: Sequence[int]) -> Circuit:
    """Multiply |1...1⟩ on qubits by -1."""
    if len(qubits) == 1:
        return circuit.z(qubits[0])
    return circuit.mcz(qubits[:-1], qubits[-1])


def _flip_zero_bits(circuit: Circuit, qubits: Sequence[int], value: int) -> Circuit:
    # X on every qubit whose bit in value is 0
    for i, q in enumerate(qubits):
        if not (value >> i) & 1:
            circuit = circuit.x(q)
    return circuit


def single_target_oracle(circuit: Circuit, qubits: Sequence[int], target: int) -> Circuit:
    """
    Phase oracle marking one value: |target⟩ → -|target⟩.

    Args:
        circuit: Circuit to extend
        qubits: Search register, LSB first
        target: Marked value (0 to 2^n - 1)
    """
    out = _flip_zero_bits(circuit, qubits, target)
    out = _phase_flip_all_ones(out, qubits)
    return _flip_zero_bits(out, qubits, target)


def phase_oracle(circuit: Circuit, qubits: Sequence[int], targets: Iterable[int]) -> Circuit:
    """Phase oracle marking every value in targets."""
    for target in targets:
        circuit = single_target_oracle(circuit, qubits, target)
    return circuit


def zero_phase_oracle(circuit: Circuit, qubits: Sequence[int]) -> Circuit:
    """
    Phase oracle that marks the all-zeros state.

    Applies a phase flip (-1) to the |00...0⟩ state only; used by the
    diffusion operator.
    """
    return single_target_oracle(circuit, qubits, 0)


def diffusion_operator(circuit: Circuit, qubits: Sequence[int]) -> Circuit:
    """
    Grover diffusion operator (inversion about average).

    D = 2|ψ⟩⟨ψ| - I where |ψ⟩ is the uniform superposition, implemented
    as H⊗n · (phase flip of |0...0⟩) · H⊗n (equal to D up to global phase).
    """
    for q in qubits:
        circuit = circuit.h(q)
    circuit = zero_phase_oracle(circuit, qubits)
    for q in qubits:
        circuit = circuit.h(q)
    return circuit


def optimal_iterations(n: int, num_targets: int = 1) -> int:
    """
    Iteration count ⌊π/4 · √(N/M)⌋ for N = 2^n items and M marked ones.

    Raises:
        ValidationError: If n < 1 or num_targets is outside 1..N
    """
    if n < 1:
        raise ValidationError("n", f"must be >= 1, got {n}")
    N = 2 ** n
    if not 1 <= num_targets <= N:
        raise ValidationError("targets", f"need between 1 and {N} targets, got {num_targets}")
    return int(np.pi / 4 * np.sqrt(N / num_targets))


def _check_targets(n: int, targets: Iterable[int]) -> Tuple[int, ...]:
    if isinstance(targets, (int, np.integer)):
        targets = [targets]
    unique = tuple(sorted(set(int(t) for t in targets)))
    if not unique:
        raise ValidationError("targets", "at least one target is required")
    for t in unique:
        if not 0 <= t < 2 ** n:
            raise ValidationError("targets", f"target must be in [0, {2 ** n - 1}], got {t}")
    return unique


def grover_circuit(n: int, targets: Iterable[int],
                   iterations: Optional[int] = None, measure: bool = True) -> Circuit:
    """
    Full Grover circuit: uniform superposition, iterations of oracle and
    diffusion, then measurement of every qubit.

    Args:
        n: Number of qubits (searches 2^n items). Must be >= 1.
        targets: Marked value or values
        iterations: Grover iterations (default: optimal_iterations)
        measure: Append MEASURE on every qubit

    Raises:
        ValidationError: If n < 1 or a target is out of range
    """
    if n < 1:
        raise ValidationError("n", f"must be >= 1, got {n}")
    marked = _check_targets(n, targets)
    if iterations is None:
        iterations = optimal_iterations(n, len(marked))
    if iterations < 0:
        raise ValidationError("iterations", f"must be non-negative, got {iterations}")

    qubits: List[int] = list(range(n))
    circuit = empty(n)
    for q in qubits:
        circuit = circuit.h(q)
    for _ in range(iterations):
        circuit = phase_oracle(circuit, qubits, marked)
        circuit = diffusion_operator(circuit, qubits)
    logger.debug("Grover circuit: n=%d, targets=%s, %d iteration(s)", n, marked, iterations)
    return circuit.measure_all() if measure else circuit


@dataclass(frozen=True)
class GroverResult:
    """
    Outcome of grover_search.

    Attributes:
        found: Most frequently measured value
        is_target: Whether found is one of the marked values
        success_probability: Fraction of shots that hit a marked value
        iterations: Grover iterations used
        targets: Marked values
        counts: Full histogram
    """

    found: int
    is_target: bool
    success_probability: float
    iterations: int
    targets: Tuple[int, ...]
    counts: Dict[str, int]


def grover_search(n: int, targets: Iterable[int], backend: Backend, shots: int = 1024,
                  seed: Optional[int] = None,
                  iterations: Optional[int] = None) -> Result[GroverResult]:
    """
    Run Grover's search on a backend.

    Args:
        n: Number of qubits. Must be >= 1.
        targets: Value or values to search for
        backend: Where to run the circuit
        shots: Number of samples
        seed: Sampling seed
        iterations: Override the optimal iteration count

    Returns:
        Ok(GroverResult) or Err with the validation/execution error
    """
    marked_result = capture(_check_targets, n, targets, source="grover")
    if marked_result.is_err:
        return marked_result
    marked = marked_result.value

    built = capture(grover_circuit, n, marked, iterations, source="grover")
    if built.is_err:
        return built
    if iterations is None:
        iterations = optimal_iterations(n, len(marked))

    def summarize(result) -> GroverResult:
        hits = sum(count for bits, count in result.counts.items() if parse_bitstring(bits) in marked)
        found = parse_bitstring(result.most_frequent())
        return GroverResult(
            found=found,
            is_target=found in marked,
            success_probability=hits / result.shots,
            iterations=iterations,
            targets=marked,
            counts=dict(result.counts),
        )

    return backend.execute(built.value, shots, seed=seed).map(summarize)
