"""Tests for state construction and state algebra."""

import numpy as np
import pytest

from qsv.errors import CapacityError, DomainError, NotImplementedFeatureError, ValidationError
from qsv.state import (
    SparseState,
    StateVector,
    TopologicalState,
    basis_state,
    create_state,
    describe,
    dimension,
    equals,
    get_amplitude,
    init_state,
    inner_product,
    is_normalized,
    norm,
    normalize,
    probabilities,
    tensor_product,
)


class TestConstruction:
    """Tests for creating states."""

    @pytest.mark.parametrize("n", [0, 1, 3, 5])
    def test_init_state_is_all_zeros_basis(self, n: int):
        """init_state(n) has amplitude 1 at index 0 and dimension 2^n."""
        state = init_state(n)
        assert state.num_qubits == n
        assert dimension(state) == 2 ** n
        assert get_amplitude(0, state) == 1
        assert np.count_nonzero(state.amplitudes) == 1

    def test_negative_qubits_rejected(self):
        """A negative qubit count is a validation error."""
        with pytest.raises(ValidationError):
            init_state(-1)

    def test_capacity_ceiling(self):
        """More qubits than the ceiling is a capacity error."""
        with pytest.raises(CapacityError) as excinfo:
            init_state(5, max_qubits=4)
        assert excinfo.value.requested == 5
        assert excinfo.value.maximum == 4

    def test_capacity_error_is_validation_error(self):
        """CapacityError can be caught as ValidationError."""
        with pytest.raises(ValidationError):
            init_state(17)

    def test_create_state_requires_power_of_two(self):
        """Three amplitudes do not describe any number of qubits."""
        with pytest.raises(ValidationError):
            create_state([1, 0, 0])

    def test_create_state_does_not_normalize(self):
        """Explicit amplitudes are kept as given."""
        state = create_state([1, 1])
        assert norm(state) == pytest.approx(np.sqrt(2))

    def test_basis_state(self):
        """basis_state(5, 3) is |101⟩."""
        state = basis_state(5, 3)
        assert get_amplitude(5, state) == 1
        assert norm(state) == pytest.approx(1.0)

    def test_amplitudes_are_read_only(self):
        """States are values; their arrays cannot be written."""
        state = init_state(2)
        with pytest.raises(ValueError):
            state.amplitudes[0] = 0

    def test_to_array_is_a_copy(self):
        """to_array hands out a writable copy."""
        state = init_state(1)
        arr = state.to_array()
        arr[0] = 0
        assert get_amplitude(0, state) == 1


class TestAccessors:
    """Tests for amplitude access."""

    @pytest.mark.parametrize("index", [-1, 4])
    def test_get_amplitude_out_of_range(self, index: int):
        """Indices outside [0, 2^n) are rejected."""
        with pytest.raises(ValidationError):
            get_amplitude(index, init_state(2))

    @pytest.mark.parametrize("index", [1.5, 1.0, "1", None, True], ids=["float", "integral_float", "str", "none", "bool"])
    def test_get_amplitude_non_integer_index(self, index):
        """Only integer indices are accepted."""
        with pytest.raises(ValidationError):
            get_amplitude(index, init_state(2))

    def test_get_amplitude_numpy_integer(self):
        """numpy integers count as integers."""
        assert get_amplitude(np.int64(0), init_state(2)) == 1
        assert get_amplitude(np.int64(2), SparseState({2: 1.0}, 2)) == 1

    def test_sparse_amplitude_lookup(self):
        """Missing sparse entries read as zero."""
        state = SparseState({3: 1.0}, 2)
        assert get_amplitude(3, state) == 1
        assert get_amplitude(1, state) == 0


class TestAlgebra:
    """Tests for norms, inner products and tensor products."""

    def test_normalize(self):
        """normalize divides by the L2 norm."""
        state = normalize(create_state([3, 4]))
        assert np.allclose(state.amplitudes, [0.6, 0.8])
        assert is_normalized(state)

    def test_normalize_zero_vector(self):
        """The zero vector cannot be normalized."""
        with pytest.raises(DomainError):
            normalize(create_state([0, 0]))

    def test_inner_product_conjugates_first_argument(self):
        """⟨a|b⟩ uses the conjugate of a."""
        a = create_state([1j, 0])
        b = create_state([1, 0])
        assert inner_product(a, b) == pytest.approx(-1j)

    def test_inner_product_dimension_mismatch(self):
        """States of different sizes have no inner product."""
        with pytest.raises(DomainError):
            inner_product(init_state(1), init_state(2))

    def test_tensor_product_puts_first_state_low(self):
        """|1⟩ ⊗ |0⟩ sets qubit 0: index 1."""
        state = tensor_product(basis_state(1, 1), basis_state(0, 1))
        assert state.num_qubits == 2
        assert get_amplitude(1, state) == 1

    def test_equals_with_tolerance(self):
        """Tiny differences are ignored, real ones are not."""
        a = create_state([1, 0])
        assert equals(a, create_state([1 + 1e-12, 0]))
        assert not equals(a, create_state([0, 1]))
        assert not equals(a, init_state(2))

    def test_state_equality_operator(self):
        """== compares amplitudes."""
        assert init_state(2) == basis_state(0, 2)
        assert init_state(2) != basis_state(1, 2)

    def test_probabilities_sum_to_one(self):
        """|a_i|² over a normalized state sums to 1."""
        state = normalize(create_state([1, 1j, -1, 0.5]))
        assert probabilities(state).sum() == pytest.approx(1.0)

    def test_sparse_and_dense_compare_equal(self):
        """A sparse state equals its dense counterpart."""
        sparse = SparseState({0: 1 / np.sqrt(2), 3: 1 / np.sqrt(2)}, 2)
        dense = create_state([1 / np.sqrt(2), 0, 0, 1 / np.sqrt(2)])
        assert equals(sparse, dense)


class TestRepresentations:
    """Tests for sparse and topological representations."""

    def test_sparse_drops_zero_entries(self):
        """Zero amplitudes are not stored."""
        state = SparseState({0: 1.0, 2: 0.0}, 2)
        assert len(state) == 1

    def test_sparse_index_range_checked(self):
        """Sparse indices must fit the qubit count."""
        with pytest.raises(ValidationError):
            SparseState({4: 1.0}, 2)

    def test_topological_operations_not_implemented(self):
        """Topological states are recognized but not simulated."""
        with pytest.raises(NotImplementedFeatureError) as excinfo:
            norm(TopologicalState(2))
        assert excinfo.value.hint

    def test_describe(self):
        """describe renders a ket expansion."""
        text = describe(create_state([1 / np.sqrt(2), 0, 0, 1 / np.sqrt(2)]))
        assert text == "0.7071|00⟩ + 0.7071|11⟩"

    def test_repr_mentions_qubits(self):
        """Representations show their size."""
        assert "num_qubits=2" in repr(StateVector([1, 0, 0, 0]))
