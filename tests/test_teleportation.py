"""Tests for quantum teleportation."""

import numpy as np
import pytest

from qsv.backend import LocalBackend, SparseBackend
from qsv.errors import ValidationError
from qsv.gates import U3_gate
from qsv.teleportation import TeleportationResult, preparation_angles, teleport
from qsv.utils import allclose_up_to_global_phase

INPUTS = [
    (1, 0),
    (0, 1),
    (1 / np.sqrt(2), 1 / np.sqrt(2)),
    (1 / np.sqrt(2), -1j / np.sqrt(2)),
    (0.6, 0.8j),
    (np.cos(0.3), np.exp(1.1j) * np.sin(0.3)),
]


@pytest.fixture(params=[LocalBackend, SparseBackend], ids=["local", "sparse"])
def backend_cls(request):
    return request.param


class TestTeleport:
    """Bob's qubit ends up in Alice's input state."""

    @pytest.mark.parametrize("alpha,beta", INPUTS)
    def test_fidelity_is_one(self, backend_cls, alpha, beta):
        """Every input is received with fidelity 1."""
        result = teleport(alpha, beta, backend_cls(seed=11)).unwrap()
        assert isinstance(result, TeleportationResult)
        assert result.fidelity == pytest.approx(1.0, abs=1e-9)

    @pytest.mark.parametrize("seed", range(8))
    def test_all_outcomes_corrected(self, seed: int):
        """The correction works whichever Bell outcome is measured."""
        result = teleport(0.6, 0.8j, LocalBackend(seed=seed)).unwrap()
        assert result.outcomes[0] in (0, 1) and result.outcomes[1] in (0, 1)
        assert allclose_up_to_global_phase(np.array(result.received), np.array([0.6, 0.8j]))

    def test_outcomes_vary_with_seed(self):
        """Alice's measurement is random: several outcomes appear across seeds."""
        outcomes = {teleport(1, 1, LocalBackend(seed=s)).unwrap().outcomes for s in range(40)}
        assert len(outcomes) > 1

    def test_reproducible(self):
        """Same backend seed, same outcomes."""
        a = teleport(0.3, 0.7, LocalBackend(seed=4)).unwrap()
        b = teleport(0.3, 0.7, LocalBackend(seed=4)).unwrap()
        assert a.outcomes == b.outcomes

    def test_input_is_normalized(self):
        """Unnormalized amplitudes are scaled before teleporting."""
        result = teleport(3, 4, LocalBackend(seed=2)).unwrap()
        assert result.fidelity == pytest.approx(1.0)
        assert np.allclose(np.abs(result.received), [0.6, 0.8])

    def test_zero_input_is_error(self):
        """α = β = 0 is not a state."""
        result = teleport(0, 0, LocalBackend())
        assert result.is_err
        assert isinstance(result.error, ValidationError)


class TestPreparationAngles:
    """U3(θ, φ, 0)|0⟩ reproduces the input."""

    @pytest.mark.parametrize("alpha,beta", INPUTS)
    def test_angles_prepare_state(self, alpha, beta):
        psi = np.array([alpha, beta], dtype=complex)
        psi = psi / np.linalg.norm(psi)
        theta, phi = preparation_angles(psi)
        prepared = U3_gate(theta, phi, 0.0) @ np.array([1, 0], dtype=complex)
        assert allclose_up_to_global_phase(prepared, psi)

    def test_basis_states(self):
        assert preparation_angles(np.array([1, 0])) == pytest.approx((0.0, 0.0))
        assert preparation_angles(np.array([0, 1])) == pytest.approx((np.pi, 0.0))
