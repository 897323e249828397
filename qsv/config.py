"""
Configuration for the state-vector simulator.
"""

import logging
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class SimulatorConfig:
    """Configuration shared by the executor, samplers and backends."""

    # Capacity
    max_qubits: int = 16  # Dense ceiling: 2^16 = 65536 amplitudes
    sparse_max_qubits: int = 24

    # Numerics
    tolerance: float = 1e-10  # State equality; dense amplitudes below it are dropped when going sparse
    normalization_tolerance: float = 1e-9  # States entering measurement

    # Sampling
    shot_chunk_size: int = 4096  # Shots per independently seeded chunk
    sampling_workers: int = 1  # >1 samples chunks on a thread pool

    # Logging
    log_level: int = logging.WARNING

    def with_overrides(self, **changes) -> "SimulatorConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


# Default configuration instance
DEFAULT_CONFIG = SimulatorConfig()
