"""Tests for the BB84 key distribution protocol."""

import numpy as np
import pytest

from qsv.backend import LocalBackend, SparseBackend
from qsv.errors import ValidationError
from qsv.qkd import (
    DEFAULT_QBER_THRESHOLD,
    AliceState,
    Basis,
    BB84Result,
    SiftedKey,
    check_eavesdropping,
    create_alice_state,
    extract_final_key,
    measure_qubit,
    prepare_qubit,
    run_bb84,
    sift_key,
)

P, D = Basis.RECTILINEAR, Basis.DIAGONAL


class TestQubitEncoding:
    """Preparation and measurement of single BB84 qubits."""

    @pytest.mark.parametrize(
        "bit,basis,expected",
        [
            (0, P, [1, 0]),
            (1, P, [0, 1]),
            (0, D, [1 / np.sqrt(2), 1 / np.sqrt(2)]),
            (1, D, [1 / np.sqrt(2), -1 / np.sqrt(2)]),
        ],
        ids=["zero", "one", "plus", "minus"],
    )
    def test_prepare(self, bit, basis, expected):
        """Bits map to |0⟩, |1⟩, |+⟩ and |-⟩."""
        state = prepare_qubit(bit, basis, LocalBackend())
        assert np.allclose(state.amplitudes, expected)

    @pytest.mark.parametrize("bit", [0, 1])
    @pytest.mark.parametrize("basis", [P, D])
    def test_matching_basis_is_deterministic(self, bit, basis):
        """Measuring in the preparation basis returns the encoded bit."""
        backend = LocalBackend(seed=3)
        for _ in range(10):
            assert measure_qubit(prepare_qubit(bit, basis, backend), basis, backend) == bit

    def test_wrong_basis_is_random(self):
        """Measuring |+⟩ in the rectilinear basis gives both outcomes."""
        backend = LocalBackend(seed=8)
        outcomes = {measure_qubit(prepare_qubit(0, D, backend), P, backend) for _ in range(40)}
        assert outcomes == {0, 1}


class TestClassicalSteps:
    """Sifting, sampling and key extraction."""

    def test_sift_key(self):
        """Only positions with agreeing bases survive."""
        alice = AliceState(bits=(0, 1, 1, 0), bases=(P, D, P, D))
        sifted = sift_key(alice, (P, P, P, D), [0, 0, 1, 0])
        assert sifted.indices == (0, 2, 3)
        assert sifted.alice_bits == (0, 1, 0)
        assert sifted.bob_bits == (0, 1, 0)
        assert sifted.length == 3
        assert sifted.efficiency == pytest.approx(0.75)

    def test_empty_sample_has_zero_error_rate(self):
        """A zero-size sample reports QBER 0.0 and no eavesdropper."""
        sifted = SiftedKey(alice_bits=(0, 1), bob_bits=(1, 0), indices=(0, 1), efficiency=1.0)
        check = check_eavesdropping(sifted, 0, DEFAULT_QBER_THRESHOLD, np.random.default_rng(0))
        assert check.sample_size == 0
        assert check.error_rate == 0.0
        assert not check.eavesdrop_detected
        assert check.sample_indices == ()

    def test_all_errors_detected(self):
        """Mismatched bits push the QBER over the threshold."""
        sifted = SiftedKey(alice_bits=(0, 0, 0, 0), bob_bits=(1, 1, 1, 1), indices=(0, 1, 2, 3),
                           efficiency=1.0)
        check = check_eavesdropping(sifted, 4, DEFAULT_QBER_THRESHOLD, np.random.default_rng(0))
        assert check.errors == 4
        assert check.error_rate == 1.0
        assert check.eavesdrop_detected

    def test_sample_size_is_capped(self):
        """The sample never exceeds the sifted key."""
        sifted = SiftedKey(alice_bits=(1, 1), bob_bits=(1, 1), indices=(0, 1), efficiency=1.0)
        check = check_eavesdropping(sifted, 10, DEFAULT_QBER_THRESHOLD, np.random.default_rng(1))
        assert check.sample_size == 2

    def test_extract_final_key(self):
        """Revealed positions are removed from the key."""
        sifted = SiftedKey(alice_bits=(0, 1, 0, 1), bob_bits=(0, 1, 0, 1), indices=(0, 1, 2, 3),
                           efficiency=1.0)
        assert extract_final_key(sifted, (1, 2)) == (0, 1)

    def test_alice_state(self):
        """Alice draws one bit and one basis per qubit."""
        alice = create_alice_state(20, np.random.default_rng(5))
        assert alice.num_qubits == 20
        assert set(alice.bits) <= {0, 1}
        assert len(alice.bases) == 20


class TestProtocol:
    """Full BB84 runs."""

    def test_no_eavesdropper(self):
        """Without Eve the sifted keys agree exactly."""
        result = run_bb84(50, LocalBackend(seed=1), seed=7).unwrap()
        assert isinstance(result, BB84Result)
        assert result.initial_qubits == int(50 / (0.5 * (1 - 0.15))) + 10
        assert result.eavesdrop_check.error_rate == 0.0
        assert not result.eavesdrop_check.eavesdrop_detected
        assert result.success
        assert not result.eve_present
        assert len(result.final_key) > 0
        assert result.efficiency == pytest.approx(len(result.final_key) / result.initial_qubits)

    def test_key_length_is_close_to_target(self):
        """Roughly key_length bits survive sifting and sampling."""
        result = run_bb84(100, LocalBackend(seed=2), seed=3).unwrap()
        assert 70 <= len(result.final_key) <= 140

    def test_eavesdropper_detected(self):
        """Intercept-resend raises the QBER to about 25%."""
        result = run_bb84(400, LocalBackend(seed=4), sample_ratio=0.3, seed=9,
                          eavesdropper=True).unwrap()
        assert result.eve_present
        assert result.eavesdrop_check.eavesdrop_detected
        assert 0.12 < result.eavesdrop_check.error_rate < 0.4
        assert not result.success

    def test_sparse_backend(self):
        """The protocol runs on the sparse simulator too."""
        result = run_bb84(30, SparseBackend(seed=6), seed=6).unwrap()
        assert result.success

    def test_reproducible(self):
        """Same protocol and backend seeds, same key."""
        a = run_bb84(30, LocalBackend(seed=5), seed=7, eavesdropper=True).unwrap()
        b = run_bb84(30, LocalBackend(seed=5), seed=7, eavesdropper=True).unwrap()
        assert a.final_key == b.final_key
        assert a.eavesdrop_check == b.eavesdrop_check

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"key_length": 0},
            {"key_length": 10, "sample_ratio": 1.0},
            {"key_length": 10, "sample_ratio": -0.1},
            {"key_length": 10, "qber_threshold": 1.5},
        ],
        ids=["zero_length", "ratio_one", "negative_ratio", "threshold"],
    )
    def test_invalid_parameters(self, kwargs):
        """Bad parameters come back as Err(ValidationError)."""
        result = run_bb84(backend=LocalBackend(), **kwargs)
        assert result.is_err
        assert isinstance(result.error, ValidationError)
