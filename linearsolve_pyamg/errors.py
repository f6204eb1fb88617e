"""Exception types raised by the pyamg adapter.

Taxonomy
--------
ShapeError
    The system matrix (or a right-hand side) has the wrong shape. Raised before
    any engine call is made.
EngineConstructionError
    pyamg rejected the hierarchy-construction options. No handle is produced.
EngineSolveError
    pyamg raised while solving or applying a cycle. The engine's exception is
    kept on ``__cause__``; the handle stays usable.
ReleasedHierarchyError
    A handle (or a preconditioner derived from it) was used after ``release()``.

Non-convergence is not an exception: iterative solves return the best iterate
and report the achieved residual through ``SolveStats``.
"""

from __future__ import annotations


class AMGError(Exception):
    """Base class for all adapter errors."""


class ShapeError(AMGError, ValueError):
    """Raised when a matrix is not square or a vector has the wrong length."""


class EngineConstructionError(AMGError, RuntimeError):
    """Raised when pyamg fails to build a hierarchy for the given options."""


class EngineSolveError(AMGError, RuntimeError):
    """Raised when pyamg fails during a solve or a preconditioner application."""


class ReleasedHierarchyError(AMGError, RuntimeError):
    """Raised when a released hierarchy is used."""
