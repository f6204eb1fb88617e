"""pyamg algebraic multigrid as solvers and preconditioners for linear-solve frameworks.

The AMG mathematics (coarsening, smoothing, Galerkin products) is done by
pyamg. This package is the adapter layer around it.

Modules
-------
types
    Solver-variant tag and the construction/solve configuration containers.
errors
    Exception taxonomy (shape, construction, solve, released-hierarchy errors).
bridge
    Conversion between host compressed-column storage (0- or 1-based) and
    pyamg's CSR format, and of result vectors.
hierarchy
    ``AMGSolver`` handle, the per-variant constructors and the solve operation.
preconditioner
    ``AMGPreconditioner``: one multigrid cycle as an approximate inverse plus
    the original matrix as forward operator.
linear_solve
    Cache initializer and solve step for a generic linear-solve cache.
stats
    Setup/solve diagnostics and all printing.
"""

from __future__ import annotations

from . import bridge, errors, hierarchy, linear_solve, preconditioner, stats, types
from .bridge import CompressedColumn, to_engine_format, from_engine_format, from_engine_vector
from .errors import AMGError, ShapeError, EngineConstructionError, EngineSolveError, \
    ReleasedHierarchyError
from .hierarchy import AMGSolver, build_solver, ruge_stuben_solver, \
    smoothed_aggregation_solver, solve
from .linear_solve import PyAMGAlgorithm, LinearCache, LinearSolution, ReturnCode, \
    init_cacheval, solve_cache
from .preconditioner import AMGPreconditioner, aspreconditioner
from .types import SolverVariant, ConstructionConfig, SolveConfig

__version__ = "0.1.0"

__all__ = [
    "bridge",
    "errors",
    "hierarchy",
    "linear_solve",
    "preconditioner",
    "stats",
    "types",
    "CompressedColumn",
    "to_engine_format",
    "from_engine_format",
    "from_engine_vector",
    "AMGError",
    "ShapeError",
    "EngineConstructionError",
    "EngineSolveError",
    "ReleasedHierarchyError",
    "AMGSolver",
    "build_solver",
    "ruge_stuben_solver",
    "smoothed_aggregation_solver",
    "solve",
    "PyAMGAlgorithm",
    "LinearCache",
    "LinearSolution",
    "ReturnCode",
    "init_cacheval",
    "solve_cache",
    "AMGPreconditioner",
    "aspreconditioner",
    "SolverVariant",
    "ConstructionConfig",
    "SolveConfig",
]
