"""
qsv - A state-vector quantum simulator in Python.

This package simulates gate-model quantum circuits on dense (or sparse)
state vectors, samples measurement histograms reproducibly, and ships
implementations of fundamental quantum algorithms on top of its Backend
interface.

Modules:
    state        - Amplitude store (StateVector, SparseState) and state algebra
    gates        - Gate kinds, Gate values and their 2x2 matrices
    engine       - Gate application by index arithmetic
    measurement  - Probabilities, seeded sampling, histograms, collapse
    sparse       - Sparse simulation and representation conversions
    circuit      - Immutable circuits and builders
    transpile    - Decomposition into a backend's gate set
    qasm         - OpenQASM 2.0 import/export
    executor     - Validate, apply and sample pipeline
    backend      - Backend interface, LocalBackend, SparseBackend
    errors       - Error hierarchy and Result values
    config, log  - Settings and logging setup
    qft, grover, draper, shor, teleportation, qkd - Algorithms

Bit ordering:
    Qubit 0 is the least significant bit of a basis index and the
    rightmost character of a histogram bitstring.

Quick Start:
    >>> from qsv import LocalBackend, empty
    >>> bell = empty(2).h(0).cnot(0, 1)
    >>> result = LocalBackend(seed=7).execute(bell, shots=1000).unwrap()
    >>> sorted(result.counts)
    ['00', '11']
"""

import logging

from .log import ROOT_LOGGER, get_logger, setup_logging

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())

# Errors and configuration
from .errors import (
    QuantumError,
    ValidationError,
    CapacityError,
    DomainError,
    NotImplementedFeatureError,
    CancellationError,
    BackendError,
    Result,
    capture,
)
from .config import SimulatorConfig, DEFAULT_CONFIG

# States
from .state import (
    StateType,
    StateVector,
    SparseState,
    TopologicalState,
    init_state,
    create_state,
    basis_state,
    dimension,
    num_qubits,
    get_amplitude,
    norm,
    normalize,
    is_normalized,
    inner_product,
    tensor_product,
    equals,
    probabilities,
    describe,
)
from .sparse import init_sparse, to_sparse, to_dense, convert

# Gates
from .gates import (
    GateKind,
    Gate,
    X_gate,
    Y_gate,
    Z_gate,
    H_gate,
    S_gate,
    Sdg_gate,
    T_gate,
    Tdg_gate,
    I_gate,
    P_gate,
    Rx_gate,
    Ry_gate,
    Rz_gate,
    U3_gate,
)

# Simulation
from .engine import apply_gate, apply_gates
from .measurement import (
    probability,
    probability_distribution,
    qubit_probabilities,
    sample_indices,
    measure,
    histogram,
    format_bitstring,
    parse_bitstring,
    collapse,
    measure_qubit,
)
from .cancellation import CancellationToken

# Circuits
from .circuit import Circuit, empty, add_gate, add_gates, compose, validate
from .transpile import decompose, toffoli_decomposed, cp_decomposed
from .qasm import to_qasm, from_qasm, save_qasm, load_qasm

# Execution
from .executor import CircuitExecutor, ExecutionResult, ExecutionStage
from .backend import Backend, BackendCapabilities, LocalBackend, SparseBackend

# Utilities
from .utils import (
    allclose_up_to_global_phase,
    state_fidelity,
    gcd,
    is_coprime,
    mod_inverse,
    continued_fraction_expansion,
    convergents,
    extract_period,
    int_to_bits,
    bits_to_int,
)

# Algorithms
from .qft import qft_circuit, inverse_qft_circuit, append_qft, append_inverse_qft
from .grover import grover_circuit, grover_search, optimal_iterations, GroverResult
from .draper import (
    draper_add,
    draper_add_constant,
    draper_subtract,
    draper_subtract_constant,
    phi_add_constant,
    phi_add_register,
)
from .shor import shor_factor_15, ShorResult
from .teleportation import teleport, TeleportationResult
from .qkd import run_bb84, BB84Result

__version__ = "0.2.0"
__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Errors
    "QuantumError",
    "ValidationError",
    "CapacityError",
    "DomainError",
    "NotImplementedFeatureError",
    "CancellationError",
    "BackendError",
    "Result",
    "capture",
    # Config
    "SimulatorConfig",
    "DEFAULT_CONFIG",
    # States
    "StateType",
    "StateVector",
    "SparseState",
    "TopologicalState",
    "init_state",
    "create_state",
    "basis_state",
    "dimension",
    "num_qubits",
    "get_amplitude",
    "norm",
    "normalize",
    "is_normalized",
    "inner_product",
    "tensor_product",
    "equals",
    "probabilities",
    "describe",
    "init_sparse",
    "to_sparse",
    "to_dense",
    "convert",
    # Gates
    "GateKind",
    "Gate",
    "X_gate",
    "Y_gate",
    "Z_gate",
    "H_gate",
    "S_gate",
    "Sdg_gate",
    "T_gate",
    "Tdg_gate",
    "I_gate",
    "P_gate",
    "Rx_gate",
    "Ry_gate",
    "Rz_gate",
    "U3_gate",
    # Simulation
    "apply_gate",
    "apply_gates",
    "probability",
    "probability_distribution",
    "qubit_probabilities",
    "sample_indices",
    "measure",
    "histogram",
    "format_bitstring",
    "parse_bitstring",
    "collapse",
    "measure_qubit",
    "CancellationToken",
    # Circuits
    "Circuit",
    "empty",
    "add_gate",
    "add_gates",
    "compose",
    "validate",
    "decompose",
    "toffoli_decomposed",
    "cp_decomposed",
    "to_qasm",
    "from_qasm",
    "save_qasm",
    "load_qasm",
    # Execution
    "CircuitExecutor",
    "ExecutionResult",
    "ExecutionStage",
    "Backend",
    "BackendCapabilities",
    "LocalBackend",
    "SparseBackend",
    # Utils
    "allclose_up_to_global_phase",
    "state_fidelity",
    "gcd",
    "is_coprime",
    "mod_inverse",
    "continued_fraction_expansion",
    "convergents",
    "extract_period",
    "int_to_bits",
    "bits_to_int",
    # Algorithms
    "qft_circuit",
    "inverse_qft_circuit",
    "append_qft",
    "append_inverse_qft",
    "grover_circuit",
    "grover_search",
    "optimal_iterations",
    "GroverResult",
    "draper_add",
    "draper_add_constant",
    "draper_subtract",
    "draper_subtract_constant",
    "phi_add_constant",
    "phi_add_register",
    "shor_factor_15",
    "ShorResult",
    "teleport",
    "TeleportationResult",
    "run_bb84",
    "BB84Result",
]
