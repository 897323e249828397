"""Tests for gate decomposition."""

import numpy as np
import pytest

from qsv import gates as g
from qsv.circuit import empty
from qsv.engine import apply_gates
from qsv.errors import NotImplementedFeatureError
from qsv.state import basis_state, create_state, normalize
from qsv.transpile import decompose, decompose_gate, needs_decomposition
from qsv.utils import allclose_up_to_global_phase

CLIFFORD_T = {"H", "CNOT", "T", "TDG", "X"}
ROTATIONS = {"RX", "RY", "RZ", "CNOT", "H"}


def random_state(n: int, seed: int):
    rng = np.random.default_rng(seed)
    dim = 2 ** n
    return normalize(create_state(rng.normal(size=dim) + 1j * rng.normal(size=dim)))


def unitary_of(gates, n: int) -> np.ndarray:
    return np.column_stack([apply_gates(gates, basis_state(i, n)).amplitudes for i in range(2 ** n)])


class TestDecomposeGate:
    """Each rewrite reproduces the original gate."""

    @pytest.mark.parametrize(
        "gate,supported",
        [
            (g.ccx(0, 1, 2), CLIFFORD_T),
            (g.swap(0, 2), CLIFFORD_T),
            (g.cz(1, 0), CLIFFORD_T),
            (g.mcz([0, 1], 2), CLIFFORD_T),
            (g.cnot(0, 1), {"H", "CZ"}),
            (g.s(1), {"P"}),
            (g.z(0), {"P"}),
            (g.cp(0, 2, 0.8), {"P", "CNOT"}),
            (g.cry(2, 0, 1.1), ROTATIONS),
            (g.crz(0, 1, -0.6), ROTATIONS),
            (g.crx(1, 2, 0.9), ROTATIONS),
        ],
        ids=["ccx", "swap", "cz", "mcz2", "cnot_via_cz", "s_via_p", "z_via_p", "cp", "cry", "crz", "crx"],
    )
    def test_exact_rewrites(self, gate, supported):
        """Exact rewrites give the same unitary."""
        expanded = decompose_gate(gate, supported)
        assert all(sub.name in supported for sub in expanded)
        assert np.allclose(unitary_of(expanded, 3), unitary_of([gate], 3))

    @pytest.mark.parametrize(
        "gate,supported",
        [(g.u3(0, 0.4, 1.2, -0.7), {"RZ", "RY"}), (g.p(1, 0.9), {"RZ"}), (g.t(2), {"RZ"})],
        ids=["u3", "p", "t"],
    )
    def test_global_phase_rewrites(self, gate, supported):
        """U3 and P rewrites match up to global phase."""
        psi = random_state(3, seed=5)
        expected = apply_gates([gate], psi)
        actual = apply_gates(decompose_gate(gate, supported), psi)
        assert allclose_up_to_global_phase(actual, expected)

    def test_supported_gate_untouched(self):
        """Supported gates are returned as-is."""
        assert decompose_gate(g.h(0), {"H"}) == [g.h(0)]

    def test_measure_never_rewritten(self):
        """MEASURE and BARRIER pass through any gate set."""
        assert decompose_gate(g.measure(0), set()) == [g.measure(0)]
        assert decompose_gate(g.barrier(0, 1), set()) == [g.barrier(0, 1)]

    def test_no_rule_available(self):
        """H cannot be built from CNOT alone."""
        with pytest.raises(NotImplementedFeatureError):
            decompose_gate(g.h(0), {"CNOT"})

    def test_wide_mcz_not_implemented(self):
        """MCZ with three or more controls has no ancilla-free rewrite here."""
        with pytest.raises(NotImplementedFeatureError):
            decompose_gate(g.mcz([0, 1, 2], 3), CLIFFORD_T)


class TestDecomposeCircuit:
    """Tests for whole-circuit decomposition."""

    def test_circuit_equivalence(self):
        """A decomposed circuit prepares the same state."""
        circuit = empty(3).h(0).ccx(0, 1, 2).swap(1, 2).cz(0, 2).h(1)
        lowered = decompose(circuit, CLIFFORD_T)
        assert not needs_decomposition(lowered, CLIFFORD_T)
        assert lowered.num_qubits == circuit.num_qubits
        psi = random_state(3, seed=9)
        assert np.allclose(apply_gates(lowered.gates, psi).amplitudes,
                           apply_gates(circuit.gates, psi).amplitudes)

    def test_input_untouched(self):
        """decompose returns a new circuit."""
        circuit = empty(2).swap(0, 1)
        decompose(circuit, CLIFFORD_T)
        assert circuit.gate_count == 1

    def test_needs_decomposition(self):
        """Only unsupported unitary gates count."""
        assert needs_decomposition(empty(2).swap(0, 1), CLIFFORD_T)
        assert not needs_decomposition(empty(2).h(0).measure(0), CLIFFORD_T)
