"""Tests for quantum gates and the gate application engine."""

import numpy as np
import pytest

from qsv import gates as g
from qsv.engine import apply_gate, apply_gates
from qsv.errors import ValidationError
from qsv.gates import Gate, GateKind, H_gate, X_gate, Y_gate, Z_gate, P_gate, U3_gate
from qsv.measurement import measure_qubit
from qsv.state import basis_state, create_state, init_state, is_normalized, normalize
from qsv.transpile import cp_decomposed, toffoli_decomposed
from qsv.utils import allclose_up_to_global_phase


def unitary_of(gates, n: int) -> np.ndarray:
    """Matrix of a gate sequence, built column by column from basis states."""
    columns = [apply_gates(gates, basis_state(i, n)).amplitudes for i in range(2 ** n)]
    return np.column_stack(columns)


class TestSingleQubitGates:
    """Tests for single-qubit gates."""

    def test_x_gate_flips_zero_to_one(self):
        """X gate should flip |0⟩ to |1⟩."""
        state = apply_gate(g.x(0), init_state(1))
        assert np.allclose(state.amplitudes, [0, 1])

    def test_x_gate_flips_one_to_zero(self):
        """X gate should flip |1⟩ to |0⟩."""
        state = apply_gate(g.x(0), basis_state(1, 1))
        assert np.allclose(state.amplitudes, [1, 0])

    def test_h_gate_creates_superposition(self):
        """H gate on |0⟩ should create equal superposition."""
        state = apply_gate(g.h(0), init_state(1))
        expected = np.array([1, 1]) / np.sqrt(2)
        assert np.allclose(state.amplitudes, expected)

    def test_h_gate_on_one(self):
        """H gate on |1⟩ should create |−⟩."""
        state = apply_gate(g.h(0), basis_state(1, 1))
        expected = np.array([1, -1]) / np.sqrt(2)
        assert np.allclose(state.amplitudes, expected)

    @pytest.mark.parametrize("factory", [g.h, g.x, g.z, g.y], ids=["H", "X", "Z", "Y"])
    def test_self_inverse(self, factory):
        """H², X², Y², Z² = I."""
        original = create_state([0.6, 0.8j])
        state = apply_gates([factory(0), factory(0)], original)
        assert np.allclose(state.amplitudes, original.amplitudes)

    def test_z_gate_flips_phase(self):
        """Z gate should flip phase of |1⟩."""
        plus = normalize(create_state([1, 1]))
        state = apply_gate(g.z(0), plus)
        expected = np.array([1, -1]) / np.sqrt(2)
        assert np.allclose(state.amplitudes, expected)

    def test_y_gate_on_zero(self):
        """Y|0⟩ = i|1⟩."""
        state = apply_gate(g.y(0), init_state(1))
        assert np.allclose(state.amplitudes, [0, 1j])

    @pytest.mark.parametrize(
        "factory,angle",
        [(g.s, np.pi / 2), (g.t, np.pi / 4), (g.sdg, -np.pi / 2), (g.tdg, -np.pi / 4)],
        ids=["S", "T", "SDG", "TDG"],
    )
    def test_phase_gates_on_one(self, factory, angle: float):
        """Fixed phase gates multiply |1⟩ by e^{iφ}."""
        state = apply_gate(factory(0), basis_state(1, 1))
        assert np.allclose(state.amplitudes, [0, np.exp(1j * angle)])

    def test_rotations_match_matrices(self):
        """RX, RY, RZ, P and U3 apply their 2x2 matrix to the target."""
        psi = normalize(create_state([0.3, 0.4 + 0.2j]))
        for gate in (g.rx(0, 0.7), g.ry(0, 1.1), g.rz(0, -0.4), g.p(0, 2.0), g.u3(0, 0.5, 0.25, -1.0)):
            state = apply_gate(gate, psi)
            assert np.allclose(state.amplitudes, gate.matrix() @ psi.amplitudes), str(gate)

    def test_gate_on_high_qubit_leaves_others(self):
        """X on qubit 2 of |000⟩ gives index 4."""
        state = apply_gate(g.x(2), init_state(3))
        assert np.argmax(np.abs(state.amplitudes)) == 4

    def test_input_state_is_not_modified(self):
        """Applying a gate returns a new state."""
        state = init_state(1)
        apply_gate(g.x(0), state)
        assert np.allclose(state.amplitudes, [1, 0])


class TestTwoQubitGates:
    """Tests for two-qubit gates."""

    def test_cnot_controlled_flip(self):
        """CNOT should flip target when control is |1⟩."""
        # control = qubit 0 set, target = qubit 1
        state = apply_gate(g.cnot(0, 1), basis_state(0b01, 2))
        assert np.allclose(state.amplitudes, basis_state(0b11, 2).amplitudes)

    def test_cnot_no_flip_when_control_zero(self):
        """CNOT should not flip target when control is |0⟩."""
        state = apply_gate(g.cnot(0, 1), basis_state(0b10, 2))
        assert np.allclose(state.amplitudes, basis_state(0b10, 2).amplitudes)

    def test_swap_gate(self):
        """SWAP should exchange two qubits."""
        state = apply_gate(g.swap(0, 1), basis_state(0b01, 2))
        assert np.allclose(state.amplitudes, basis_state(0b10, 2).amplitudes)

    def test_cz_phase_only_on_11(self):
        """CZ negates |11⟩ and nothing else."""
        assert np.allclose(np.diag(unitary_of([g.cz(0, 1)], 2)), [1, 1, 1, -1])

    @pytest.mark.parametrize(
        "factory,matrix",
        [(g.crx, lambda t: g.Rx_gate(t)), (g.cry, lambda t: g.Ry_gate(t)), (g.crz, lambda t: g.Rz_gate(t))],
        ids=["CRX", "CRY", "CRZ"],
    )
    def test_controlled_rotations(self, factory, matrix):
        """Controlled rotations act on the target only when the control is |1⟩."""
        theta = 0.9
        u = unitary_of([factory(0, 1, theta)], 2)
        # Control is qubit 0: indices 1 and 3 form the target pair
        assert np.allclose(u[np.ix_([0, 2], [0, 2])], np.eye(2))
        assert np.allclose(u[np.ix_([1, 3], [1, 3])], matrix(theta))

    def test_bell_state(self):
        """H then CNOT gives (|00⟩ + |11⟩)/√2."""
        state = apply_gates([g.h(0), g.cnot(0, 1)], init_state(2))
        expected = np.array([1, 0, 0, 1]) / np.sqrt(2)
        assert np.allclose(state.amplitudes, expected)


class TestThreeQubitGates:
    """Tests for three-qubit gates."""

    def test_toffoli_truth_table(self):
        """Toffoli should flip target only when both controls are |1⟩."""
        for index in range(8):
            state = apply_gate(g.ccx(0, 1, 2), basis_state(index, 3))
            expected = index ^ 0b100 if index & 0b011 == 0b011 else index
            assert np.argmax(np.abs(state.amplitudes)) == expected, f"CCX on |{index:03b}⟩"

    def test_toffoli_decomposition_matches(self):
        """The H/T/CNOT network equals the native Toffoli."""
        assert np.allclose(unitary_of(toffoli_decomposed(0, 1, 2), 3), unitary_of([g.ccx(0, 1, 2)], 3))

    def test_mcz_flips_only_all_ones(self):
        """MCZ over 3 qubits negates |111⟩ only."""
        diag = np.diag(unitary_of([g.mcz([0, 1], 2)], 3))
        assert np.allclose(diag, [1] * 7 + [-1])


class TestControlledPhase:
    """Tests for the controlled-phase gate."""

    @pytest.mark.parametrize("theta", [np.pi / 2, np.pi / 4, 1.234], ids=["pi_2", "pi_4", "arbitrary"])
    def test_cp_decomposition_matches_matrix(self, theta: float):
        """CP decomposition should equal diag(1, 1, 1, e^{iθ})."""
        u = unitary_of(cp_decomposed(0, 1, theta), 2)
        assert np.allclose(u, np.diag([1, 1, 1, np.exp(1j * theta)]))

    def test_cp_symmetric_in_qubits(self):
        """CP(θ) is symmetric in control and target."""
        assert np.allclose(unitary_of([g.cp(0, 1, 0.5)], 2), unitary_of([g.cp(1, 0, 0.5)], 2))


class TestNormPreservation:
    """Every unitary gate keeps the state normalized."""

    @pytest.mark.parametrize(
        "gate",
        [
            g.h(1), g.x(0), g.y(2), g.z(1), g.s(0), g.sdg(1), g.t(2), g.tdg(0),
            g.p(1, 0.3), g.rx(0, 1.2), g.ry(2, -0.7), g.rz(1, 2.5), g.u3(0, 0.1, 0.2, 0.3),
            g.cnot(0, 2), g.cz(1, 2), g.cp(2, 0, 0.4), g.crx(0, 1, 0.5), g.cry(1, 0, 0.6),
            g.crz(2, 1, 0.7), g.swap(0, 2), g.ccx(0, 1, 2), g.mcz([0, 2], 1),
        ],
        ids=str,
    )
    def test_norm_preserved(self, gate: Gate):
        """|ψ| stays 1 after the gate."""
        rng = np.random.default_rng(11)
        psi = normalize(create_state(rng.normal(size=8) + 1j * rng.normal(size=8)))
        assert is_normalized(apply_gate(gate, psi))


class TestGateValues:
    """Tests for Gate construction and inversion."""

    def test_wrong_arity_rejected(self):
        """CNOT needs two qubits."""
        with pytest.raises(ValidationError):
            Gate(GateKind.CNOT, (0,))

    def test_repeated_qubit_rejected(self):
        """The same qubit cannot be control and target."""
        with pytest.raises(ValidationError):
            g.cnot(1, 1)

    def test_non_finite_angle_rejected(self):
        """Angles must be finite."""
        with pytest.raises(ValidationError):
            g.rx(0, float("nan"))

    def test_out_of_range_qubit_rejected_by_engine(self):
        """Gates referencing missing qubits are rejected."""
        with pytest.raises(ValidationError):
            apply_gate(g.x(3), init_state(2))

    def test_controls_and_target(self):
        """Controls come first and the target last."""
        gate = g.ccx(4, 1, 2)
        assert gate.controls == (4, 1)
        assert gate.target == 2

    @pytest.mark.parametrize(
        "gate",
        [g.s(0), g.t(0), g.rx(0, 0.4), g.p(0, 1.0), g.u3(0, 0.3, 0.7, -0.2)],
        ids=str,
    )
    def test_inverse_undoes_gate(self, gate: Gate):
        """G⁻¹·G = I."""
        psi = normalize(create_state([0.6, 0.8j]))
        state = apply_gates([gate, gate.inverse()], psi)
        assert allclose_up_to_global_phase(state, psi)

    def test_measure_has_no_inverse(self):
        """MEASURE is not reversible."""
        with pytest.raises(ValidationError):
            g.measure(0).inverse()

    def test_reference_matrices(self):
        """Module-level matrices keep their textbook values."""
        assert np.allclose(H_gate @ H_gate, np.eye(2))
        assert np.allclose(X_gate @ Y_gate, 1j * Z_gate)
        assert np.allclose(P_gate(np.pi), Z_gate)
        assert np.allclose(U3_gate(np.pi, 0, np.pi), X_gate)


class TestMeasurement:
    """Tests for projective single-qubit measurement."""

    def test_measurement_collapses_state(self):
        """After measuring a Bell pair, both qubits agree."""
        bell = apply_gates([g.h(0), g.cnot(0, 1)], init_state(2))
        outcome, collapsed = measure_qubit(0, bell, np.random.default_rng(3))
        expected = 0b11 if outcome else 0b00
        assert np.allclose(collapsed.amplitudes, basis_state(expected, 2).amplitudes)

    def test_measurement_statistics(self):
        """H|0⟩ should give each outcome about half the time."""
        rng = np.random.default_rng(42)
        plus = apply_gate(g.h(0), init_state(1))
        ones = sum(measure_qubit(0, plus, rng)[0] for _ in range(2000))
        assert 900 < ones < 1100
