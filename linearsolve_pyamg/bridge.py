"""Sparse format bridge between host compressed-column storage and pyamg.

pyamg builds hierarchies from CSR matrices with 0-based indices. Hosts hand us
compressed-column data, either as scipy CSC objects (0-based) or as raw
``colptr``/``rowval``/``nzval`` arrays that may come from a 1-based ecosystem
(Fortran, Julia, MATLAB). This module only moves data between those layouts:

  - ``to_engine_format``   : host CSC (any index base) -> 0-based ``csr_array``
  - ``from_engine_format`` : ``csr_array`` -> ``CompressedColumn`` in a given base
  - ``from_engine_vector`` : engine result -> contiguous 1-D numpy vector
  - ``as_host_matrix``     : anything accepted by the adapter -> host CSC

Nothing here validates shapes. Malformed input is a precondition violation and
is checked at the hierarchy-handle boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from warnings import warn

import numpy as np
from scipy.sparse import csc_array, csr_array, issparse, SparseEfficiencyWarning

from pyamg.util.utils import asfptype

from .types import SparseLike


@dataclass(slots=True, frozen=True)
class CompressedColumn:
    """Raw compressed-column arrays of a sparse matrix.

    Attributes
    ----------
    colptr : array of int, length ``shape[1] + 1``
        Column pointers, offset by ``index_base``.
    rowval : array of int, length nnz
        Row index of each stored entry, offset by ``index_base``.
    nzval : array, length nnz
        Stored values.
    shape : tuple[int, int]
        Matrix dimensions.
    index_base : int
        0 for C/numpy conventions, 1 for Fortran/Julia/MATLAB conventions.
    """

    colptr: np.ndarray
    rowval: np.ndarray
    nzval: np.ndarray
    shape: tuple[int, int]
    index_base: int = 0

    @classmethod
    def from_sparse(cls, A: SparseLike, index_base: int = 0) -> "CompressedColumn":
        """Extract compressed-column arrays from a scipy sparse matrix."""
        A = A.tocsc(copy=True)
        A.sort_indices()
        return cls(
            colptr=A.indptr + index_base,
            rowval=A.indices + index_base,
            nzval=A.data.copy(),
            shape=(int(A.shape[0]), int(A.shape[1])),
            index_base=index_base,
        )

    @property
    def nnz(self) -> int:
        """Number of stored entries."""
        return int(len(self.nzval))

    def to_csc(self) -> csc_array:
        """Return a 0-based scipy ``csc_array`` view of these arrays."""
        base = self.index_base
        colptr = np.asarray(self.colptr) - base
        rowval = np.asarray(self.rowval) - base
        return csc_array((np.asarray(self.nzval), rowval, colptr), shape=self.shape)


def as_host_matrix(A) -> SparseLike:
    """Coerce ``A`` into the host compressed-column format.

    scipy CSC input (matrix or array) is returned unchanged. ``CompressedColumn``
    input is rebased to 0. Any other sparse format, and dense input, is converted
    with a ``SparseEfficiencyWarning``.

    Raises
    ------
    TypeError
        If ``A`` cannot be converted to a sparse matrix.
    """
    if isinstance(A, CompressedColumn):
        return A.to_csc()
    if issparse(A):
        if A.format == 'csc':
            return A
        warn('Implicit conversion of A to CSC', SparseEfficiencyWarning)
        return csc_array(A)
    try:
        A_csc = csc_array(np.asarray(A))
    except Exception as e:
        raise TypeError('Argument A must have type csc_array, CompressedColumn, '
                        'or be convertible to csc_array') from e
    warn('Implicit conversion of dense A to CSC', SparseEfficiencyWarning)
    return A_csc


def to_engine_format(A) -> csr_array:
    """Convert a compressed-column matrix into pyamg's 0-based CSR format.

    Parameters
    ----------
    A
        A ``CompressedColumn`` (any ``index_base``), a scipy CSC matrix/array,
        or anything ``as_host_matrix`` accepts.

    Returns
    -------
    csr_array
        Floating-point CSR copy with sorted column indices. The input is not
        modified. Index arrays are int32 whenever the matrix fits, since
        pyamg's compiled kernels reject int64 ``indptr``/``indices``.
    """
    A_csc = as_host_matrix(A)
    A_csr = csr_array(A_csc.tocsr(copy=True))
    A_csr.sort_indices()
    if max(A_csr.nnz, *A_csr.shape) < np.iinfo(np.int32).max:
        A_csr.indptr = A_csr.indptr.astype(np.int32, copy=False)
        A_csr.indices = A_csr.indices.astype(np.int32, copy=False)
    return asfptype(A_csr)


def from_engine_format(A: SparseLike, *, index_base: int = 0) -> CompressedColumn:
    """Convert an engine CSR matrix back to compressed-column arrays in ``index_base``."""
    return CompressedColumn.from_sparse(A, index_base=index_base)


def from_engine_vector(x) -> np.ndarray:
    """Return an engine result as a contiguous 1-D numpy vector.

    Floating and complex dtypes are preserved; integer results are promoted to
    float64. Vectors are dense, so no index translation happens.
    """
    x = np.asarray(x)
    if not np.issubdtype(x.dtype, np.inexact):
        x = x.astype(np.float64)
    return np.ascontiguousarray(x.reshape(-1))
