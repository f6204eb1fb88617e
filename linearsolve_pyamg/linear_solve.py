"""Adapter between AMG handles and a generic linear-solve cache.

A generic linear-solve framework keeps a cache per problem: the system matrix,
the right-hand side, the output buffer, tolerances, a ``isfresh`` flag telling
whether the matrix changed since the last factorization/setup, and an opaque
per-algorithm ``cacheval``. This module provides the pieces an algorithm must
plug into such a cache, plus a minimal cache to drive them:

  - ``PyAMGAlgorithm`` : algorithm tag selecting the variant and builder options
  - ``init_cacheval``  : build the ``AMGSolver`` for a (coerced CSC) matrix
  - ``solve_cache``    : rebuild when stale, solve, copy into ``cache.u``
  - ``LinearCache``, ``LinearSolution``, ``ReturnCode`` : the cache-side types

Outcome reporting
-----------------
``solve_cache`` measures the achieved relative residual against the cache's
``reltol``. It reports ``ReturnCode.SUCCESS`` only when the tolerance was met
and ``ReturnCode.MAX_ITERS`` otherwise; ``cache.u`` holds the last iterate in
both cases.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .bridge import as_host_matrix
from .errors import ShapeError
from .hierarchy import AMGSolver, build_solver, validate_system_matrix
from .types import SolverVariant


class ReturnCode(enum.Enum):
    """Outcome of a cache solve."""

    SUCCESS = "Success"
    MAX_ITERS = "MaxIters"

    @property
    def successful(self) -> bool:
        """Whether the code denotes success."""
        return self is ReturnCode.SUCCESS


@dataclass(slots=True)
class PyAMGAlgorithm:
    """Algorithm tag for AMG solves through the linear-solve cache.

    Attributes
    ----------
    solver
        ``SolverVariant`` or its name (``'ruge_stuben'``, ``'smoothed_aggregation'``).
    kwargs
        Keyword bag passed to the variant constructor; split into builder
        options and solve defaults as described in ``linearsolve_pyamg.hierarchy``.
    """

    solver: SolverVariant | str = SolverVariant.RUGE_STUBEN
    kwargs: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.solver = SolverVariant.coerce(self.solver)


class LinearCache:
    """Mutable state of one linear problem ``A u = b``.

    Assigning ``A`` marks the cache stale so the next solve rebuilds the
    hierarchy; assigning ``b`` does not.

    Parameters
    ----------
    A, b
        System matrix and right-hand side.
    u
        Output buffer; allocated as zeros when omitted.
    reltol
        Relative residual tolerance. Defaults to ``sqrt(eps)`` of float64.
    abstol
        Absolute tolerance. Kept for the framework's interface; pyamg stops on
        the relative residual only.
    maxiters
        Iteration cap. Defaults to ``len(b)``.
    """

    def __init__(self, A, b, u=None, *, reltol: float | None = None,
                 abstol: float = 0.0, maxiters: int | None = None):
        self._A = A
        self.b = np.asarray(b)
        if u is None:
            u = np.zeros(self.b.shape[0], dtype=np.result_type(self.b.dtype, np.float64))
        self.u = u
        self.reltol = float(np.sqrt(np.finfo(np.float64).eps)) if reltol is None else float(reltol)
        self.abstol = float(abstol)
        self.maxiters = int(self.b.shape[0]) if maxiters is None else int(maxiters)
        self.cacheval: AMGSolver | None = None
        self.isfresh = True

    @property
    def A(self):
        return self._A

    @A.setter
    def A(self, value) -> None:
        self._A = value
        self.isfresh = True


@dataclass(slots=True)
class LinearSolution:
    """Result of ``solve_cache``.

    Attributes
    ----------
    u
        The cache's output buffer holding the solution.
    resid
        Achieved relative residual ``||b - A u|| / ||b||``.
    retcode
        ``ReturnCode.SUCCESS`` or ``ReturnCode.MAX_ITERS``.
    iters
        Iterations performed.
    cache
        The cache that was solved.
    """

    u: np.ndarray
    resid: float
    retcode: ReturnCode
    iters: int
    cache: LinearCache


def init_cacheval(alg: PyAMGAlgorithm, A) -> AMGSolver:
    """Build the AMG handle for ``A`` according to ``alg``.

    ``A`` is coerced to compressed-column form when it is not already.

    Raises
    ------
    ShapeError
        ``A`` is not square, or its compressed-column arrays are inconsistent.
    """
    try:
        validate_system_matrix(A)
    except ShapeError as e:
        raise ShapeError(f'PyAMG requires a square matrix: {e}') from e
    A_csc = as_host_matrix(A)
    return build_solver(A_csc, alg.solver, **alg.kwargs)


def solve_cache(cache: LinearCache, alg: PyAMGAlgorithm, **kwargs) -> LinearSolution:
    """Solve the cached problem, rebuilding the hierarchy when the cache is stale.

    Parameters
    ----------
    cache
        The problem cache. ``cache.u`` is overwritten with the solution.
    alg
        Algorithm tag used if a rebuild is needed.
    **kwargs
        Extra solve options; they override ``tol``/``maxiter`` from the cache.
    """
    if cache.isfresh or cache.cacheval is None:
        cache.cacheval = init_cacheval(alg, cache.A)
        cache.isfresh = False

    amg = cache.cacheval
    options = {'tol': cache.reltol, 'maxiter': cache.maxiters, **kwargs}
    x, info = amg.solve(cache.b, return_info=True, **options)
    cache.u[...] = x

    retcode = ReturnCode.SUCCESS if info.converged else ReturnCode.MAX_ITERS
    return LinearSolution(u=cache.u, resid=info.relative_residual, retcode=retcode,
                          iters=info.iterations, cache=cache)
