"""
Measurement and sampling.

Turns a state into classical outcomes. Sampling N shots draws N independent
outcomes from the fixed distribution |a_i|^2 and never collapses the input
state; each shot models a fresh run of the same circuit.

Bit ordering convention:
    measure() returns one row per shot with column k holding qubit k
    (column 0 = qubit 0 = least significant bit of the basis index).
    Histogram bitstrings put qubit 0 RIGHTMOST, so the bitstring of a
    basis index is simply its binary form: index 6 on 3 qubits -> "110".

Determinism:
    Shots are drawn in fixed-size chunks. Chunk k uses child k of
    np.random.SeedSequence(seed), so the output for a given seed does not
    depend on how many worker threads sample the chunks.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .cancellation import CancellationToken
from .errors import DomainError, ValidationError
from .state import (
    NORMALIZATION_TOLERANCE,
    QuantumState,
    SparseState,
    StateVector,
    get_amplitude,
    probabilities,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096

Seed = Union[None, int, np.random.SeedSequence]


# =============================================================================
# Probabilities
# =============================================================================

def probability(index: int, state: QuantumState) -> float:
    """
    Probability |a|² = re² + im² of basis state |index⟩.

    Raises:
        ValidationError: If index is out of range
    """
    amp = get_amplitude(index, state)
    return amp.real ** 2 + amp.imag ** 2


def probability_distribution(state: QuantumState) -> np.ndarray:
    """Array of all 2^n basis-state probabilities."""
    return probabilities(state)


def qubit_probabilities(qubit: int, state: QuantumState) -> Tuple[float, float]:
    """
    Marginal probabilities (P(qubit=0), P(qubit=1)).

    Raises:
        ValidationError: If the qubit does not exist
    """
    if not 0 <= qubit < state.num_qubits:
        raise ValidationError("qubit", f"{qubit} out of range for {state.num_qubits} qubit(s)")
    outcomes, probs = _support(state)
    p1 = float(probs[((outcomes >> qubit) & 1).astype(bool)].sum())
    total = float(probs.sum())
    return total - p1, p1


def _support(state: QuantumState) -> Tuple[np.ndarray, np.ndarray]:
    """Basis indices with their probabilities (only nonzero ones for sparse states)."""
    if isinstance(state, SparseState):
        items = sorted(state.items())
        outcomes = np.array([i for i, _ in items], dtype=np.int64)
        amps = np.array([a for _, a in items], dtype=np.complex128)
        return outcomes, amps.real ** 2 + amps.imag ** 2
    probs = probabilities(state)
    return np.arange(probs.size, dtype=np.int64), probs


def _checked_support(state: QuantumState, tol: float) -> Tuple[np.ndarray, np.ndarray]:
    outcomes, probs = _support(state)
    total = float(probs.sum())
    if not np.isfinite(total):
        raise DomainError("measure", "state has non-finite amplitudes")
    if abs(total - 1.0) > tol:
        raise ValidationError("state", f"must be normalized before measurement (total probability {total:.12g})")
    return outcomes, probs / total


# =============================================================================
# Sampling
# =============================================================================

def seed_sequence(seed: Seed) -> np.random.SeedSequence:
    """
    SeedSequence for a seed argument; None draws fresh OS entropy.

    Raises:
        ValidationError: If seed is not None, a SeedSequence or a non-negative integer
    """
    if isinstance(seed, np.random.SeedSequence):
        return seed
    if seed is not None:
        if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
            raise ValidationError("seed", f"must be a non-negative integer, got {type(seed).__name__}")
        if seed < 0:
            raise ValidationError("seed", f"must be non-negative, got {seed}")
    return np.random.SeedSequence(seed)


def validate_shots(shots: int) -> None:
    if isinstance(shots, bool) or not isinstance(shots, (int, np.integer)):
        raise ValidationError("shots", f"must be an integer, got {type(shots).__name__}")
    if shots <= 0:
        raise ValidationError("shots", f"must be positive, got {shots}")


def sample_indices(
    state: QuantumState,
    shots: int,
    seed: Seed = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_workers: int = 1,
    cancel: Optional[CancellationToken] = None,
    tol: float = NORMALIZATION_TOLERANCE,
) -> np.ndarray:
    """
    Draw shots independent basis indices from the state's distribution.

    Args:
        state: Normalized state (not modified)
        shots: Number of samples, must be positive
        seed: Integer seed or SeedSequence; None draws fresh entropy
        chunk_size: Shots per independently seeded chunk
        max_workers: Threads used to sample chunks (output is identical for any value)
        cancel: Optional token checked between chunks
        tol: Allowed deviation of total probability from 1

    Returns:
        int64 array of length shots

    Raises:
        ValidationError: If shots <= 0 or the state is not normalized
        CancellationError: If cancelled between chunks
    """
    validate_shots(shots)
    if chunk_size <= 0:
        raise ValidationError("chunk_size", f"must be positive, got {chunk_size}")
    outcomes, probs = _checked_support(state, tol)

    n_chunks = -(-shots // chunk_size)
    children = seed_sequence(seed).spawn(n_chunks)
    sizes = [chunk_size] * (n_chunks - 1) + [shots - chunk_size * (n_chunks - 1)]

    def draw(k: int) -> np.ndarray:
        if cancel is not None:
            cancel.raise_if_cancelled("sampling")
        rng = np.random.default_rng(children[k])
        return outcomes[rng.choice(outcomes.size, size=sizes[k], p=probs)]

    if max_workers > 1 and n_chunks > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            chunks = list(pool.map(draw, range(n_chunks)))
    else:
        chunks = [draw(k) for k in range(n_chunks)]

    logger.debug("Sampled %d shots in %d chunk(s)", shots, n_chunks)
    return np.concatenate(chunks)


def indices_to_bits(indices: np.ndarray, num_qubits: int) -> np.ndarray:
    """Rows of bits per index, column k = qubit k."""
    indices = np.asarray(indices, dtype=np.int64)
    shifts = np.arange(num_qubits, dtype=np.int64)
    return ((indices[:, None] >> shifts) & 1).astype(np.uint8)


def measure(state: QuantumState, shots: int, seed: Seed = None, **kwargs) -> np.ndarray:
    """
    Measure all qubits shots times without collapsing the state.

    Returns:
        uint8 array of shape (shots, num_qubits); column k is qubit k

    Raises:
        ValidationError: If shots <= 0 or the state is not normalized
    """
    indices = sample_indices(state, shots, seed=seed, **kwargs)
    return indices_to_bits(indices, state.num_qubits)


# =============================================================================
# Histograms and bitstrings
# =============================================================================

def format_bitstring(index: int, num_qubits: int) -> str:
    """Bitstring with qubit 0 rightmost (the binary form of index)."""
    return format(int(index), f"0{num_qubits}b") if num_qubits else ""


def parse_bitstring(bits: str) -> int:
    """Inverse of format_bitstring."""
    if bits and any(ch not in "01" for ch in bits):
        raise ValidationError("bitstring", f"expected only '0' and '1', got {bits!r}")
    return int(bits, 2) if bits else 0


def histogram(indices: np.ndarray, num_qubits: int) -> Dict[str, int]:
    """
    Count occurrences of each sampled index.

    Returns:
        {bitstring: count} for nonzero buckets, sorted by bitstring
    """
    values, counts = np.unique(np.asarray(indices, dtype=np.int64), return_counts=True)
    return {format_bitstring(v, num_qubits): int(c) for v, c in zip(values, counts)}


def counts_from_bits(bits: np.ndarray) -> Dict[str, int]:
    """Histogram from per-shot bit rows as returned by measure()."""
    bits = np.asarray(bits, dtype=np.int64)
    num_qubits = bits.shape[1]
    indices = (bits << np.arange(num_qubits, dtype=np.int64)).sum(axis=1)
    return histogram(indices, num_qubits)


# =============================================================================
# Single-qubit measurement with collapse
# =============================================================================

def collapse(qubit: int, outcome: int, state: StateVector) -> StateVector:
    """
    Project a qubit onto |outcome⟩ and renormalize.

    Raises:
        ValidationError: If qubit is out of range or outcome is not 0/1
        DomainError: If the outcome has zero probability
    """
    if outcome not in (0, 1):
        raise ValidationError("outcome", f"must be 0 or 1, got {outcome}")
    if not 0 <= qubit < state.num_qubits:
        raise ValidationError("qubit", f"{qubit} out of range for {state.num_qubits} qubit(s)")
    amps = state.amplitudes
    keep = ((np.arange(amps.size) >> qubit) & 1) == outcome
    out = np.where(keep, amps, 0)
    weight = float(np.sum(np.abs(out) ** 2))
    if weight <= 0.0:
        raise DomainError("collapse", f"outcome {outcome} on qubit {qubit} has zero probability")
    return StateVector._wrap(out / np.sqrt(weight))


def measure_qubit(qubit: int, state: StateVector,
                  rng: Optional[np.random.Generator] = None) -> Tuple[int, StateVector]:
    """
    Projectively measure one qubit.

    Returns:
        (outcome, collapsed state)
    """
    rng = rng if rng is not None else np.random.default_rng()
    p0, p1 = qubit_probabilities(qubit, state)
    total = p0 + p1
    if total <= 0.0:
        raise DomainError("measure_qubit", "state has zero norm")
    outcome = int(rng.random() < p1 / total)
    return outcome, collapse(qubit, outcome, state)


def measure_register(qubits: List[int], state: StateVector,
                     rng: Optional[np.random.Generator] = None) -> Tuple[List[int], StateVector]:
    """Measure several qubits in order, collapsing after each."""
    results = []
    for q in qubits:
        bit, state = measure_qubit(q, state, rng)
        results.append(bit)
    return results, state
