"""Exact round-trip tests for the sparse format bridge.

Index-base translation is the step most likely to go silently wrong, so these
tests compare pattern and values exactly rather than up to a tolerance.
"""

from __future__ import annotations

import warnings

import numpy as np
import pytest
from scipy import sparse
from scipy.sparse import SparseEfficiencyWarning

from linearsolve_pyamg.bridge import CompressedColumn, as_host_matrix, \
    to_engine_format, from_engine_format, from_engine_vector


def _random_csc(n: int, *, density: float, seed: int) -> sparse.csc_array:
    """Random square CSC matrix with a full diagonal and no duplicate entries."""
    rng = np.random.default_rng(seed)
    nnz = int(density * n * n)
    rows = rng.integers(0, n, size=nnz)
    cols = rng.integers(0, n, size=nnz)
    vals = rng.standard_normal(nnz)
    A = sparse.coo_array((vals, (rows, cols)), shape=(n, n)).tocsc()
    A = A + sparse.eye_array(n, format="csc") * 10.0
    A = sparse.csc_array(A)
    A.sum_duplicates()
    A.sort_indices()
    return A


def _small_one_based() -> tuple[CompressedColumn, np.ndarray]:
    """A 3x3 matrix given as 1-based compressed-column arrays, and its dense form."""
    dense = np.array([
        [4.0, 0.0, -1.0],
        [0.0, 3.0, 0.0],
        [-2.0, 0.0, 5.0],
    ])
    cc = CompressedColumn(
        colptr=np.array([1, 3, 4, 6]),
        rowval=np.array([1, 3, 2, 1, 3]),
        nzval=np.array([4.0, -2.0, 3.0, -1.0, 5.0]),
        shape=(3, 3),
        index_base=1,
    )
    return cc, dense


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_round_trip_zero_based(seed: int) -> None:
    A = _random_csc(60, density=0.05, seed=seed)
    A_csr = to_engine_format(A)

    assert A_csr.format == "csr"
    assert A_csr.shape == A.shape
    assert (A_csr != A).nnz == 0

    back = from_engine_format(A_csr)
    ref = CompressedColumn.from_sparse(A)
    np.testing.assert_array_equal(back.colptr, ref.colptr)
    np.testing.assert_array_equal(back.rowval, ref.rowval)
    np.testing.assert_array_equal(back.nzval, ref.nzval)


def test_one_based_arrays_are_shifted() -> None:
    cc, dense = _small_one_based()
    A_csr = to_engine_format(cc)

    np.testing.assert_array_equal(A_csr.toarray(), dense)
    np.testing.assert_array_equal(A_csr.indptr, [0, 2, 3, 5])
    np.testing.assert_array_equal(A_csr.indices, [0, 2, 1, 0, 2])
    np.testing.assert_array_equal(A_csr.data, [4.0, -1.0, 3.0, -2.0, 5.0])


def test_round_trip_one_based() -> None:
    cc, _ = _small_one_based()
    back = from_engine_format(to_engine_format(cc), index_base=1)

    assert back.index_base == 1
    np.testing.assert_array_equal(back.colptr, cc.colptr)
    np.testing.assert_array_equal(back.rowval, cc.rowval)
    np.testing.assert_array_equal(back.nzval, cc.nzval)


def test_one_based_random_matches_zero_based() -> None:
    A = _random_csc(40, density=0.1, seed=7)
    cc1 = CompressedColumn.from_sparse(A, index_base=1)

    assert cc1.colptr[0] == 1
    assert cc1.nnz == A.nnz
    assert (to_engine_format(cc1) != to_engine_format(A)).nnz == 0


def test_input_not_modified() -> None:
    cc, _ = _small_one_based()
    colptr = cc.colptr.copy()
    rowval = cc.rowval.copy()
    to_engine_format(cc)
    np.testing.assert_array_equal(cc.colptr, colptr)
    np.testing.assert_array_equal(cc.rowval, rowval)

    A = _random_csc(30, density=0.1, seed=3)
    data = A.data.copy()
    A_csr = to_engine_format(A)
    A_csr.data[:] = 0.0
    np.testing.assert_array_equal(A.data, data)


def test_integer_values_are_promoted() -> None:
    A = sparse.csc_array(np.array([[2, 0], [1, 3]], dtype=np.int64))
    A_csr = to_engine_format(A)
    assert np.issubdtype(A_csr.dtype, np.floating)
    np.testing.assert_array_equal(A_csr.toarray(), [[2.0, 0.0], [1.0, 3.0]])


def test_non_csc_input_warns() -> None:
    A = _random_csc(20, density=0.1, seed=5)
    with pytest.warns(SparseEfficiencyWarning):
        A_csr = to_engine_format(sparse.csr_array(A))
    assert (A_csr != A).nnz == 0


def test_csc_input_does_not_warn() -> None:
    A = _random_csc(20, density=0.1, seed=5)
    with warnings.catch_warnings():
        warnings.simplefilter("error", SparseEfficiencyWarning)
        to_engine_format(A)
        to_engine_format(sparse.csc_matrix(A))


def test_int64_indices_are_narrowed() -> None:
    A = _random_csc(20, density=0.1, seed=6)
    A.indptr = A.indptr.astype(np.int64)
    A.indices = A.indices.astype(np.int64)

    A_csr = to_engine_format(A)
    assert A_csr.indptr.dtype == np.int32
    assert A_csr.indices.dtype == np.int32
    assert (A_csr != A).nnz == 0
    assert A.indices.dtype == np.int64

    cc, dense = _small_one_based()
    cc = CompressedColumn(cc.colptr.astype(np.int64), cc.rowval.astype(np.int64),
                          cc.nzval, cc.shape, index_base=1)
    A_csr = to_engine_format(cc)
    assert A_csr.indptr.dtype == np.int32
    assert A_csr.indices.dtype == np.int32
    np.testing.assert_array_equal(A_csr.toarray(), dense)


def test_as_host_matrix_dense_and_invalid() -> None:
    dense = np.array([[1.0, 2.0], [0.0, 3.0]])
    with pytest.warns(SparseEfficiencyWarning):
        A = as_host_matrix(dense)
    assert A.format == "csc"
    np.testing.assert_array_equal(A.toarray(), dense)

    with pytest.raises(TypeError):
        as_host_matrix(np.zeros((2, 2, 2)))


def test_from_engine_vector() -> None:
    x = from_engine_vector(np.arange(4).reshape(4, 1))
    assert x.shape == (4,)
    assert x.dtype == np.float64
    assert x.flags["C_CONTIGUOUS"]

    z = from_engine_vector(np.array([1 + 2j, 3 - 1j]))
    assert z.dtype == np.complex128

    y = np.linspace(0.0, 1.0, 5)
    np.testing.assert_array_equal(from_engine_vector(y), y)
