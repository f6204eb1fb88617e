"""AMG hierarchy handle and its constructors.

This module provides:
  - ``AMGSolver``: owns a pyamg ``MultilevelSolver`` built once from a system
    matrix, the retained host matrix, the variant tag and the default solve
    options. It supports repeated solves against new right-hand sides without
    rebuilding, left division (``amg.ldiv(b)``) and the forward product
    (``amg @ x``).
  - ``ruge_stuben_solver`` / ``smoothed_aggregation_solver``: public entry
    points, one per variant, taking a single keyword bag.
  - ``build_solver``: dispatch on a variant tag or name.
  - ``solve``: functional form of ``AMGSolver.solve``.

Keyword bag
-----------
The constructors accept builder options and solve defaults in the same
``**kwargs``. ``types.split_options`` separates them: ``tol``, ``maxiter``,
``accel``, ``cycle`` and ``cycles_per_level`` become the handle's default solve
options, ``print_info`` is kept by the handle, and every other key is passed to
pyamg's builder unchanged. For example

    amg = ruge_stuben_solver(A, strength=('classical', {'theta': 0.25}), tol=1e-8)

builds with ``strength=...`` and solves with ``tol=1e-8`` unless a solve call
overrides it.
"""

from __future__ import annotations

import time
from typing import Any

import numpy as np
import pyamg

from .bridge import CompressedColumn, as_host_matrix, to_engine_format, from_engine_vector
from .errors import EngineConstructionError, EngineSolveError, ReleasedHierarchyError, ShapeError
from .stats import HierarchyStats, SolveStats, summarize_hierarchy, \
    print_hierarchy_summary, print_solve_summary
from .types import ConstructionConfig, SolveConfig, SolverVariant, split_options


def validate_system_matrix(A) -> tuple[int, int]:
    """Check that ``A`` describes a square matrix with consistent arrays.

    Returns
    -------
    shape
        ``(n, n)``.

    Raises
    ------
    ShapeError
        If ``A`` is not two-dimensional, not square, or (for ``CompressedColumn``)
        its pointer/index/value arrays have inconsistent lengths.
    """
    if isinstance(A, CompressedColumn):
        m, n = A.shape
        if len(A.colptr) != n + 1:
            raise ShapeError(f'colptr has length {len(A.colptr)}, expected {n + 1}')
        if len(A.rowval) != len(A.nzval):
            raise ShapeError(f'rowval has length {len(A.rowval)} but nzval has '
                             f'length {len(A.nzval)}')
        if int(A.colptr[-1]) - A.index_base != len(A.nzval):
            raise ShapeError('colptr[-1] does not match the number of stored entries')
        shape = (int(m), int(n))
    else:
        shape = tuple(int(s) for s in np.shape(A))
        if len(shape) != 2:
            raise ShapeError(f'expected a 2-D matrix, got shape {shape}')

    if shape[0] != shape[1]:
        raise ShapeError(f'expected square matrix, got shape {shape}')
    return shape


class AMGSolver:
    """Handle to a pyamg multilevel hierarchy built from one system matrix.

    Parameters
    ----------
    A
        System matrix in compressed-column form: a scipy CSC matrix/array or a
        ``CompressedColumn``. Other sparse formats and dense arrays are
        converted with a ``SparseEfficiencyWarning``.
    variant
        ``SolverVariant`` (or its name) selecting the pyamg builder.
    construction
        Options forwarded verbatim to the builder.
    defaults
        Default solve options used when a solve call does not set a key.
    print_info
        Print setup and solve summaries through ``linearsolve_pyamg.stats``.

    Raises
    ------
    ShapeError
        ``A`` is not square. Raised before pyamg is called.
    EngineConstructionError
        pyamg rejected the construction options.

    Notes
    -----
    The handle exclusively owns the engine hierarchy; ``release()`` (or leaving
    a ``with`` block) drops it. Preconditioners derived from the handle share
    the hierarchy and stop working once it is released.

    pyamg does not document its solve path as thread-safe, so one handle should
    not be solved against from several threads at once.
    """

    def __init__(
        self,
        A,
        variant: SolverVariant | str = SolverVariant.RUGE_STUBEN,
        construction: ConstructionConfig | None = None,
        defaults: SolveConfig | None = None,
        *,
        print_info: bool = False,
    ):
        self._ml = None
        variant = SolverVariant.coerce(variant)
        validate_system_matrix(A)

        self._variant = variant
        self.construction = construction if construction is not None else ConstructionConfig()
        self.defaults = defaults if defaults is not None else SolveConfig()
        self.print_info = bool(print_info)

        stats = HierarchyStats(variant=variant.value, n=0, nnz=0)
        with stats.timeit("convert"):
            self.A = as_host_matrix(A)
            A_engine = to_engine_format(self.A)
        stats.n = int(self.A.shape[0])
        stats.nnz = int(self.A.nnz)

        builder = getattr(pyamg, variant.entry_point)
        with stats.timeit("setup"):
            try:
                ml = builder(A_engine, **self.construction.engine_kwargs())
            except Exception as e:
                raise EngineConstructionError(
                    f'pyamg.{variant.entry_point} failed: {e}') from e

        if tuple(ml.levels[0].A.shape) != tuple(self.A.shape):
            raise EngineConstructionError(
                f'finest level has shape {ml.levels[0].A.shape}, '
                f'expected {self.A.shape}')

        self._ml = ml
        self.stats = summarize_hierarchy(stats, ml)
        print_hierarchy_summary(self.stats, print_info=self.print_info)

    # -- lifecycle ---------------------------------------------------------

    @property
    def variant(self) -> SolverVariant:
        """Variant used to build the hierarchy."""
        return self._variant

    @property
    def ml(self):
        """The pyamg ``MultilevelSolver``."""
        if self._ml is None:
            raise ReleasedHierarchyError('AMG hierarchy has been released')
        return self._ml

    @property
    def released(self) -> bool:
        return self._ml is None

    def release(self) -> None:
        """Drop the engine hierarchy. Calling it again is a no-op."""
        self._ml = None

    def __enter__(self) -> "AMGSolver":
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    @property
    def shape(self) -> tuple[int, int]:
        return tuple(self.A.shape)

    @property
    def dtype(self):
        return self.A.dtype

    def __repr__(self) -> str:
        levels = "released" if self.released else f"levels={len(self._ml.levels)}"
        return f"AMGSolver(variant={self._variant.value}, n={self.shape[0]}, {levels})"

    # -- solving -----------------------------------------------------------

    def resolve_config(self, overrides: SolveConfig | dict[str, Any] | None = None) -> SolveConfig:
        """Return the handle defaults with ``overrides`` applied key-by-key."""
        return self.defaults.merged(overrides)

    def _check_vector(self, v, name: str = 'b') -> np.ndarray:
        """Return ``v`` as a floating 1-D array of the system dimension."""
        v = np.asarray(v)
        if not np.issubdtype(v.dtype, np.inexact):
            v = v.astype(np.float64)
        v = v.reshape(-1)
        if v.shape[0] != self.shape[0]:
            raise ShapeError(f'{name} has length {v.shape[0]}, expected {self.shape[0]}')
        return v

    def solve(self, b, *, return_info: bool = False, **overrides):
        """Solve ``A x = b`` by iterating the hierarchy.

        Parameters
        ----------
        b
            Right-hand side of length ``n``.
        return_info
            If True, also return a ``SolveStats``.
        **overrides
            Solve options overriding ``self.defaults`` key-by-key: ``tol``
            (default 1e-5), ``maxiter`` (pyamg default), ``accel`` (e.g.
            ``'cg'``, ``'gmres'``), ``cycle`` (``'V'``, ``'W'``, ``'F'``,
            ``'AMLI'``), plus any other ``MultilevelSolver.solve`` keyword.

        Returns
        -------
        x or (x, info)
            Dense solution vector of length ``n``. When the iteration cap is
            reached first, ``x`` is the last iterate; check ``info.converged``.

        Raises
        ------
        ShapeError
            ``b`` has the wrong length.
        EngineSolveError
            pyamg raised; the handle remains usable.
        """
        ml = self.ml
        b = self._check_vector(b)
        config = self.resolve_config(overrides)
        kwargs = config.engine_kwargs()

        residuals = kwargs.get('residuals')
        if residuals is None:
            residuals = []
            kwargs['residuals'] = residuals

        t0 = time.perf_counter()
        try:
            x = ml.solve(b, **kwargs)
        except Exception as e:
            raise EngineSolveError(f'pyamg solve failed: {e}') from e
        elapsed = time.perf_counter() - t0
        x = from_engine_vector(x)

        if not (return_info or self.print_info):
            return x

        info = SolveStats(
            iterations=max(len(residuals) - 1, 0),
            residuals=[float(r) for r in residuals],
            relative_residual=self.relative_residual(x, b),
            tol=config.tol,
            elapsed=elapsed,
        )
        print_solve_summary(info, print_info=self.print_info)
        if return_info:
            return x, info
        return x

    def relative_residual(self, x, b) -> float:
        """Return ``||b - A x|| / ||b||`` using the retained matrix."""
        b = np.asarray(b).reshape(-1)
        r = np.linalg.norm(b - self.A @ np.asarray(x).reshape(-1))
        normb = np.linalg.norm(b)
        return float(r / normb) if normb > 0 else float(r)

    def ldiv(self, b) -> np.ndarray:
        """Left division ``amg \\ b``: solve with the handle's default options."""
        return self.solve(b)

    def ldiv_into(self, out: np.ndarray, b) -> np.ndarray:
        """Solve with default options and write the result into ``out``."""
        out[...] = self.ldiv(b)
        return out

    def __matmul__(self, x):
        return self.A @ np.asarray(x)

    def mul_into(self, out: np.ndarray, x) -> np.ndarray:
        """Write ``A @ x`` into ``out``."""
        out[...] = self.A @ np.asarray(x)
        return out

    def aspreconditioner(self, **kwargs):
        """Return an ``AMGPreconditioner`` applying one cycle of this hierarchy."""
        from .preconditioner import AMGPreconditioner
        return AMGPreconditioner(self, **kwargs)


def build_solver(A, variant: SolverVariant | str, **kwargs) -> AMGSolver:
    """Build a handle for ``variant`` from a single keyword bag.

    The bag is split by ``types.split_options`` into builder options, default
    solve options and adapter flags.
    """
    construction, defaults, adapter = split_options(kwargs)
    return AMGSolver(A, variant, construction, defaults,
                     print_info=adapter.get('print_info', False))


def ruge_stuben_solver(A, **kwargs) -> AMGSolver:
    """Build a classical (Ruge-Stuben) AMG handle.

    Builder keywords (``strength``, ``CF``, ``interpolation``, ``presmoother``,
    ``postsmoother``, ``max_levels``, ``max_coarse``, ``coarse_solver``, ...)
    go to ``pyamg.ruge_stuben_solver``; solve keywords become defaults.
    """
    return build_solver(A, SolverVariant.RUGE_STUBEN, **kwargs)


def smoothed_aggregation_solver(A, **kwargs) -> AMGSolver:
    """Build a smoothed-aggregation AMG handle.

    Builder keywords (``strength``, ``aggregate``, ``smooth``, ``B``,
    ``presmoother``, ``postsmoother``, ``max_levels``, ``max_coarse``, ...) go
    to ``pyamg.smoothed_aggregation_solver``; solve keywords become defaults.
    """
    return build_solver(A, SolverVariant.SMOOTHED_AGGREGATION, **kwargs)


def solve(amg: AMGSolver, b, **kwargs):
    """Functional form of ``AMGSolver.solve``."""
    return amg.solve(b, **kwargs)
