"""Tests for the one-cycle preconditioner view and its use inside Krylov drivers."""

from __future__ import annotations

import gc
import os
import weakref

import numpy as np
import pytest
from pyamg.gallery import poisson
from pyamg.krylov import fgmres
from scipy import sparse
from scipy.sparse.linalg import LinearOperator, cg

from linearsolve_pyamg import AMGPreconditioner, aspreconditioner, \
    ruge_stuben_solver, smoothed_aggregation_solver
from linearsolve_pyamg.errors import ReleasedHierarchyError, ShapeError, EngineSolveError


VARIANTS = [ruge_stuben_solver, smoothed_aggregation_solver]


def _poisson(n: int = 20) -> sparse.csc_matrix:
    """2-D Poisson matrix on an n x n grid in CSC form."""
    return poisson((n, n), format="csr").tocsc()


def _random_dominant(n: int, *, seed: int) -> sparse.csc_array:
    """Symmetric random sparse matrix (density ~0.02) plus 20*I."""
    rng = np.random.default_rng(seed)
    nnz = int(0.01 * n * n)
    rows = rng.integers(0, n, size=nnz)
    cols = rng.integers(0, n, size=nnz)
    vals = rng.random(nnz)
    R = sparse.coo_array((vals, (rows, cols)), shape=(n, n)).tocsc()
    A = R + R.T + 20.0 * sparse.eye_array(n, format="csc")
    return sparse.csc_array(A)


def _cg_iterations(A, b, *, M=None, rtol: float = 1e-8) -> tuple[np.ndarray, int, int]:
    """Run scipy CG and return (x, info, iterations)."""
    count = [0]

    def _cb(xk):
        count[0] += 1

    x, info = cg(A, b, rtol=rtol, maxiter=1000, M=M, callback=_cb)
    return x, info, count[0]


@pytest.mark.parametrize("builder", VARIANTS)
def test_forward_is_original_matrix_product(builder) -> None:
    A = _poisson(16)
    M = builder(A).aspreconditioner()
    x = np.random.default_rng(0).standard_normal(A.shape[0])

    np.testing.assert_array_equal(M @ x, A @ x)
    np.testing.assert_array_equal(M.forward(x), A @ x)
    out = np.empty_like(x)
    assert M.mul_into(out, x) is out
    np.testing.assert_array_equal(out, A @ x)


@pytest.mark.parametrize("builder", VARIANTS)
def test_one_cycle_reduces_residual(builder) -> None:
    A = _random_dominant(300, seed=1)
    M = aspreconditioner(builder(A))
    x = np.random.default_rng(2).standard_normal(A.shape[0])
    b = A @ x

    y = M.ldiv(b)
    assert np.linalg.norm(b - A @ y) < np.linalg.norm(b)
    assert np.linalg.norm(x - y) < np.linalg.norm(x)


def test_ldiv_is_exactly_one_cycle() -> None:
    A = _poisson(20)
    amg = ruge_stuben_solver(A)
    M = amg.aspreconditioner(cycle="V")
    b = np.random.default_rng(3).standard_normal(A.shape[0])

    one_cycle = amg.solve(b, maxiter=1, tol=1e-30, cycle="V")
    np.testing.assert_allclose(M.ldiv(b), one_cycle, rtol=1e-10, atol=1e-12)

    # A single cycle is an approximation, not a solve.
    assert np.linalg.norm(b - A @ M.ldiv(b)) / np.linalg.norm(b) > 1e-8


def test_operator_is_stateless() -> None:
    A = _poisson(12)
    M = ruge_stuben_solver(A).aspreconditioner()
    b = np.random.default_rng(4).standard_normal(A.shape[0])
    np.testing.assert_array_equal(M.ldiv(b), M.ldiv(b))

    out = np.empty_like(b)
    assert M.ldiv_into(out, b) is out
    np.testing.assert_array_equal(out, M.ldiv(b))


def test_scenario_pcg_beats_cg() -> None:
    A = _random_dominant(500, seed=0)
    b = np.random.default_rng(1).standard_normal(500)
    M = ruge_stuben_solver(A).aspreconditioner()

    x0, info0, it0 = _cg_iterations(A, b)
    x1, info1, it1 = _cg_iterations(A, b, M=M)

    if os.environ.get("LINEARSOLVE_PYAMG_PRINT_INFO", "0") == "1":
        print(f"\nCG iters = {it0}, AMG-PCG iters = {it1}")

    assert info0 == 0 and info1 == 0
    assert it1 < it0
    assert np.linalg.norm(b - A @ x1) / np.linalg.norm(b) < 1e-7


def test_poisson_pcg_beats_cg_materially() -> None:
    A = _poisson(40)
    b = np.random.default_rng(5).standard_normal(A.shape[0])
    M = smoothed_aggregation_solver(A).aspreconditioner()

    _, _, it0 = _cg_iterations(A, b)
    _, info1, it1 = _cg_iterations(A, b, M=M)

    assert info1 == 0
    assert 2 * it1 < it0


def test_pyamg_krylov_driver_and_linear_operator() -> None:
    A = _poisson(20)
    b = np.random.default_rng(6).standard_normal(A.shape[0])
    M = ruge_stuben_solver(A).aspreconditioner()

    res: list[float] = []
    x, info = fgmres(A, b, tol=1e-8, restart=50, maxiter=50, M=M, residuals=res)
    assert info == 0
    assert np.linalg.norm(b - A @ x) / np.linalg.norm(b) < 1e-6

    op = M.aslinearoperator()
    assert isinstance(op, LinearOperator)
    assert op.shape == A.shape
    np.testing.assert_array_equal(op.matvec(b), M.ldiv(b))


def test_vector_length_checked() -> None:
    M = ruge_stuben_solver(_poisson(8)).aspreconditioner()
    with pytest.raises(ShapeError):
        M.ldiv(np.ones(5))


def test_invalid_cycle_rejected() -> None:
    M = ruge_stuben_solver(_poisson(20)).aspreconditioner(cycle="Z")
    with pytest.raises(EngineSolveError):
        M.ldiv(np.ones(400))


def test_released_handle_invalidates_preconditioner() -> None:
    amg = ruge_stuben_solver(_poisson(8))
    M = AMGPreconditioner(amg)
    amg.release()
    with pytest.raises(ReleasedHierarchyError):
        M.ldiv(np.ones(64))
    with pytest.raises(ReleasedHierarchyError):
        amg.aspreconditioner()


def test_release_frees_hierarchy_while_preconditioner_alive() -> None:
    amg = ruge_stuben_solver(_poisson(8))
    M = amg.aspreconditioner(cycle="W")
    M.ldiv(np.ones(64))
    ml_ref = weakref.ref(amg.ml)

    amg.release()
    gc.collect()
    assert ml_ref() is None
    assert M.shape == (64, 64)
