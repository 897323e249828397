"""Tests for Shor's algorithm components."""

import numpy as np
import pytest

from qsv.backend import LocalBackend, SparseBackend
from qsv.circuit import empty
from qsv.errors import CapacityError, DomainError
from qsv.shor import (
    ANCILLA,
    CONTROL_QUBITS,
    NUM_QUBITS,
    WORK_QUBITS,
    ShorResult,
    controlled_multiply_4_mod15,
    controlled_multiply_7_mod15,
    factors_from_period,
    order_finding_circuit,
    shor_factor_15,
)
from qsv.shor import _interpret
from qsv.utils import (
    allclose_up_to_global_phase,
    bits_to_int,
    continued_fraction_expansion,
    convergents,
    extract_period,
    gcd,
    int_to_bits,
    is_coprime,
    mod_inverse,
    multiplicative_order,
    state_fidelity,
)

GROUP_15 = [1, 2, 4, 7, 8, 11, 13, 14]


def work_value(index: int) -> int:
    return (index >> WORK_QUBITS[0]) & 0b1111


def run_multiplier(build, x: int, control_on: bool) -> int:
    """Apply a controlled multiplier to |x⟩ and read the work register."""
    circuit = empty(NUM_QUBITS)
    if control_on:
        circuit = circuit.x(CONTROL_QUBITS[0])
    for i, q in enumerate(WORK_QUBITS):
        if (x >> i) & 1:
            circuit = circuit.x(q)
    circuit = build(circuit, CONTROL_QUBITS[0])
    state = LocalBackend().execute_to_state(circuit).unwrap()
    index = int(np.argmax(np.abs(state.amplitudes)))
    assert abs(state.amplitudes[index]) == pytest.approx(1.0)
    assert not (index >> ANCILLA) & 1, "ancilla not restored"
    return work_value(index)


class TestNumberTheory:
    """Tests for classical number theory utilities."""

    def test_gcd_basic(self):
        """GCD should return greatest common divisor."""
        assert gcd(15, 7) == 1
        assert gcd(15, 5) == 5
        assert gcd(15, 3) == 3
        assert gcd(12, 8) == 4
        assert gcd(-12, 8) == 4

    def test_is_coprime(self):
        """is_coprime should correctly identify coprime pairs."""
        assert is_coprime(7, 15)
        assert not is_coprime(5, 15)
        assert not is_coprime(3, 15)
        assert is_coprime(11, 15)

    def test_mod_inverse(self):
        """7 · 13 ≡ 1 (mod 15); 3 has no inverse."""
        assert mod_inverse(7, 15) == 13
        assert mod_inverse(3, 15) is None

    def test_multiplicative_order(self):
        """7 has order 4 modulo 15."""
        assert multiplicative_order(7, 15) == 4
        assert multiplicative_order(5, 15) is None


class TestContinuedFractions:
    """Tests for continued fractions."""

    def test_expansion_of_quarter(self):
        """Continued fraction of 4/16 = 1/4."""
        assert continued_fraction_expansion(4, 16) == [0, 4]

    def test_expansion_of_half(self):
        """Continued fraction of 8/16 = 1/2."""
        assert continued_fraction_expansion(8, 16) == [0, 2]

    def test_expansion_is_exact(self):
        """Integer arithmetic terminates: 13/16 = [0; 1, 4, 3]."""
        assert continued_fraction_expansion(13, 16) == [0, 1, 4, 3]

    def test_convergents_basic(self):
        """Convergents should approximate the original value."""
        convs = convergents(continued_fraction_expansion(12, 16))
        # Last convergent should be 3/4
        assert convs[-1] == (3, 4)


class TestPeriodExtraction:
    """Tests for period extraction."""

    @pytest.mark.parametrize("measurement", [4, 8, 12], ids=["quarter", "half", "three_quarters"])
    def test_period_from_measurement(self, measurement: int):
        """Nonzero phase-estimation outcomes give period 4."""
        assert extract_period(measurement, 4, 15, 7) == 4

    def test_period_from_measurement_0(self):
        """Measurement 0 carries no information."""
        assert extract_period(0, 4, 15, 7) is None

    def test_factors_from_period(self):
        """r = 4 gives gcd(7² ± 1, 15) = 3 and 5."""
        assert factors_from_period(4) == (3, 5)
        assert factors_from_period(3) is None
        assert factors_from_period(None) is None


class TestModularMultiplication:
    """Tests for the controlled modular multipliers."""

    @pytest.mark.parametrize("x", GROUP_15)
    def test_multiply_7_mod15(self, x: int):
        """×7 mod 15 on every element of the multiplicative group."""
        assert run_multiplier(controlled_multiply_7_mod15, x, True) == (7 * x) % 15

    @pytest.mark.parametrize("x", GROUP_15)
    def test_multiply_4_mod15(self, x: int):
        """×4 mod 15 on every element of the multiplicative group."""
        assert run_multiplier(controlled_multiply_4_mod15, x, True) == (4 * x) % 15

    @pytest.mark.parametrize("build", [controlled_multiply_7_mod15, controlled_multiply_4_mod15],
                             ids=["times_7", "times_4"])
    def test_multiply_no_op_when_control_zero(self, build):
        """The work register is untouched when the control is |0⟩."""
        for x in GROUP_15:
            assert run_multiplier(build, x, False) == x


class TestShorAlgorithm:
    """Tests for the full order-finding run."""

    def test_circuit_layout(self):
        """The circuit uses 9 qubits and measures the control register."""
        circuit = order_finding_circuit()
        assert circuit.num_qubits == 9
        assert circuit.measured_qubits() == tuple(CONTROL_QUBITS)

    def test_control_register_distribution(self):
        """Only multiples of 16/4 are observed, each about a quarter of the time."""
        result = LocalBackend(seed=0).execute(order_finding_circuit(), shots=4000).unwrap()
        marginal = result.marginal(CONTROL_QUBITS)
        assert set(marginal) == {"0000", "0100", "1000", "1100"}
        for count in marginal.values():
            assert abs(count / 4000 - 0.25) < 0.04

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_shor_finds_factors(self, seed: int):
        """shor_factor_15 returns (3, 5)."""
        result = shor_factor_15(LocalBackend(seed=seed), attempts=20).unwrap()
        assert isinstance(result, ShorResult)
        assert result.factors == (3, 5)
        assert result.period == 4
        assert result.measurement in (4, 8, 12)

    def test_shor_on_sparse_backend(self):
        """The sparse simulator runs the same circuit."""
        assert shor_factor_15(SparseBackend(seed=4), attempts=20).unwrap().factors == (3, 5)

    def test_shor_is_reproducible(self):
        """Same backend seed, same outcome."""
        a = shor_factor_15(LocalBackend(seed=8)).unwrap()
        b = shor_factor_15(LocalBackend(seed=8)).unwrap()
        assert a == b

    def test_backend_too_small(self):
        """A backend below 9 qubits returns CapacityError."""
        result = shor_factor_15(LocalBackend(max_qubits=8))
        assert isinstance(result.error, CapacityError)

    def test_only_zero_outcomes_fail(self):
        """All-zero control outcomes yield a DomainError."""
        with pytest.raises(DomainError):
            _interpret({"0000": 5}, 5)


class TestModularExponentiationPeriod:
    """Tests for the classical period of 7^x mod 15."""

    def test_period_is_four(self):
        """7^4 ≡ 1 (mod 15)."""
        assert pow(7, 4, 15) == 1

    def test_power_cycle(self):
        """7^x mod 15 cycles 1, 7, 4, 13."""
        assert [pow(7, x, 15) for x in range(8)] == [1, 7, 4, 13, 1, 7, 4, 13]


class TestStateUtilities:
    """Tests for state comparison helpers and bit conversions."""

    def test_global_phase(self):
        """States differing by e^{iφ} compare equal."""
        v = np.array([0.6, 0.8j])
        assert allclose_up_to_global_phase(v, np.exp(0.7j) * v)
        assert not allclose_up_to_global_phase(v, np.array([0.8, 0.6j]))

    def test_fidelity(self):
        """Orthogonal states have fidelity 0; identical ones 1."""
        assert state_fidelity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert state_fidelity([0.6, 0.8], [0.6, 0.8]) == pytest.approx(1.0)

    def test_bits_round_trip(self):
        """Bit lists are LSB first."""
        assert int_to_bits(6, 3) == [0, 1, 1]
        assert bits_to_int([0, 1, 1]) == 6
