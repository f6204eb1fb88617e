"""Timing and diagnostic reporting for hierarchy setup and solves.

This module provides:
  - ``HierarchyStats``: setup timings plus per-level sizes and complexities of a
    built pyamg hierarchy, with a labeled-timer context manager.
  - ``SolveStats``: the outcome of one iterative solve (iterations, residual
    history, achieved relative residual, convergence flag).
  - Compact, human-readable printers gated by ``print_info``.

Typical usage
-------------
    stats = HierarchyStats(variant="ruge_stuben", n=A.shape[0], nnz=A.nnz)
    with stats.timeit("convert"):
        ... convert to CSR ...
    with stats.timeit("setup"):
        ... build hierarchy ...
    summarize_hierarchy(stats, ml)
    print_hierarchy_summary(stats, print_info=print_info)

All printing in the package goes through this module.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any
import time

import numpy as np


@dataclass(slots=True)
class HierarchyStats:
    """Setup timings and level summary of one hierarchy.

    Attributes
    ----------
    variant
        Value of the ``SolverVariant`` used to build the hierarchy.
    n
        Dimension of the finest level.
    nnz
        Stored entries of the system matrix.
    dofs_per_level, nnz_per_level
        Level sizes, finest first (filled by ``summarize_hierarchy``).
    operator_complexity, grid_complexity
        Sum over levels of nnz (resp. dofs) divided by the finest level's.
    timings
        Dict mapping timer keys to elapsed seconds.
    """

    variant: str
    n: int
    nnz: int
    dofs_per_level: list[int] = field(default_factory=list)
    nnz_per_level: list[int] = field(default_factory=list)
    operator_complexity: float = float("nan")
    grid_complexity: float = float("nan")
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def num_levels(self) -> int:
        """Number of levels in the hierarchy."""
        return len(self.dofs_per_level)

    @contextmanager
    def timeit(self, key: str):
        """Context manager that accumulates elapsed time under `timings[key]`."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.timings[key] = self.timings.get(key, 0.0) + (time.perf_counter() - t0)


@dataclass(slots=True)
class SolveStats:
    """Outcome of one iterative solve.

    Attributes
    ----------
    iterations
        Number of cycles (or outer Krylov iterations when accelerated).
    residuals
        Residual norm history reported by pyamg, initial residual first.
    relative_residual
        ``||b - A x|| / ||b||`` measured against the retained system matrix
        (0 when ``b`` is zero).
    tol
        Tolerance the solve was asked to reach.
    elapsed
        Wall time of the engine call in seconds.
    """

    iterations: int
    residuals: list[float]
    relative_residual: float
    tol: float
    elapsed: float = 0.0

    @property
    def converged(self) -> bool:
        """Whether the achieved relative residual is within tolerance."""
        return bool(self.relative_residual <= self.tol)

    @property
    def convergence_factor(self) -> float:
        """Geometric mean residual reduction per iteration."""
        if len(self.residuals) < 2 or self.residuals[0] <= 0.0:
            return float("nan")
        ratio = self.residuals[-1] / self.residuals[0]
        if ratio <= 0.0:
            return 0.0
        return float(np.exp(np.log(ratio) / (len(self.residuals) - 1)))


def summarize_hierarchy(stats: HierarchyStats, ml: Any) -> HierarchyStats:
    """Fill level sizes and complexities of ``stats`` from a pyamg ``MultilevelSolver``."""
    stats.dofs_per_level = [int(lvl.A.shape[0]) for lvl in ml.levels]
    stats.nnz_per_level = [int(lvl.A.nnz) for lvl in ml.levels]
    if stats.nnz_per_level and stats.nnz_per_level[0] > 0:
        stats.operator_complexity = sum(stats.nnz_per_level) / stats.nnz_per_level[0]
    if stats.dofs_per_level and stats.dofs_per_level[0] > 0:
        stats.grid_complexity = sum(stats.dofs_per_level) / stats.dofs_per_level[0]
    return stats


def _fmt(x) -> str:
    """Format a scalar for compact printing."""
    try:
        x = float(x)
    except Exception:
        return str(x)
    ax = abs(x)
    if ax != 0.0 and (ax < 1e-2 or ax >= 1e4):
        return f"{x:.2e}"
    return f"{x:.3g}"


def _fmt_ms(t: float) -> str:
    """Format a duration in seconds as either milliseconds or seconds."""
    return f"{t*1e3:7.1f}ms" if t < 1.0 else f"{t:7.2f}s"


def print_hierarchy_summary(
    stats: HierarchyStats,
    *,
    print_info: bool,
    prefix: str = "AMG",
    indent: str = "",
) -> None:
    """Print a compact summary of a built hierarchy.

    Parameters
    ----------
    stats
        Stats object already filled by ``summarize_hierarchy``.
    print_info
        If False, does nothing.
    prefix
        Short label printed on the header line.
    indent
        Optional indentation string (useful if caller nests printing).
    """
    if not print_info:
        return

    print(f"{indent}{prefix}  variant={stats.variant}  n={stats.n}  nnz={stats.nnz}  "
          f"levels={stats.num_levels}")
    print(f"{indent}     level |      dofs |        nnz | cr")
    for i, (d, z) in enumerate(zip(stats.dofs_per_level, stats.nnz_per_level)):
        if i + 1 < stats.num_levels and stats.dofs_per_level[i + 1] > 0:
            cr = _fmt(d / stats.dofs_per_level[i + 1])
        else:
            cr = "(coarsest)"
        print(f"{indent}     {i:5d} | {d:9d} | {z:10d} | {cr}")
    print(f"{indent}     OC={_fmt(stats.operator_complexity)}  GC={_fmt(stats.grid_complexity)}")

    total = 0.0
    print(f"{indent}     timing:")
    for k in ("convert", "setup"):
        if k in stats.timings:
            v = stats.timings[k]
            total += v
            print(f"{indent}       {k:<11} {_fmt_ms(v)}")
    print(f"{indent}       {'total':<11} {_fmt_ms(total)}")


def print_solve_summary(stats: SolveStats, *, print_info: bool, prefix: str = "AMG", indent: str = "") -> None:
    """Print a one-line summary of a solve (only if print_info=True)."""
    if not print_info:
        return

    parts = [
        f"{indent}{prefix} solve",
        f"iters={stats.iterations}",
        f"relres={_fmt(stats.relative_residual)}",
        f"tol={_fmt(stats.tol)}",
        f"cf={_fmt(stats.convergence_factor)}",
        f"time={_fmt_ms(stats.elapsed).strip()}",
    ]
    if not stats.converged:
        parts.append("NOT CONVERGED")
    print(" | ".join(parts))
