"""Single-cycle preconditioner view of an AMG hierarchy.

``AMGPreconditioner`` exposes the two capabilities an outer Krylov method needs:

  - apply-inverse: ``M.ldiv(v)`` runs exactly one multigrid cycle on ``v``
    (no convergence loop, no tolerance check);
  - apply-forward: ``M @ x`` multiplies by the original system matrix, never by
    a coarse-level operator.

For Krylov drivers it also follows the scipy/pyamg convention for the ``M``
argument: ``shape``, ``dtype`` and ``matvec(v)``, where ``matvec`` is the
apply-inverse action. It can therefore be passed directly as
``scipy.sparse.linalg.cg(A, b, M=M)`` or ``pyamg.krylov.fgmres(A, b, M=M)``;
``aslinearoperator()`` returns an explicit ``LinearOperator`` when one is
needed.

The preconditioner does not own the hierarchy. It keeps a reference to the
handle that created it and raises ``ReleasedHierarchyError`` once that handle
has been released.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from scipy.sparse.linalg import LinearOperator

from .bridge import from_engine_vector
from .errors import EngineSolveError, ReleasedHierarchyError
from .types import DEFAULT_CYCLE


class AMGPreconditioner:
    """One-cycle approximate inverse of an ``AMGSolver``'s system matrix.

    Parameters
    ----------
    amg
        The ``AMGSolver`` whose hierarchy is applied.
    cycle
        Cycle shape, one of ``'V'``, ``'W'``, ``'F'``, ``'AMLI'``.
    **kwargs
        Extra keywords forwarded to ``MultilevelSolver.aspreconditioner``.

    Raises
    ------
    EngineSolveError
        pyamg rejected the preconditioner options.
    """

    def __init__(self, amg, cycle: str = DEFAULT_CYCLE, **kwargs: Any):
        self._amg = amg
        self.A = amg.A
        self.cycle = cycle
        self._kwargs = kwargs
        self._dtype = self._engine_operator().dtype

    @property
    def shape(self) -> tuple[int, int]:
        return tuple(self.A.shape)

    @property
    def dtype(self):
        return self._dtype

    def _engine_operator(self) -> LinearOperator:
        # Rebuilt per use; only the handle references the hierarchy.
        if self._amg.released:
            raise ReleasedHierarchyError('AMG hierarchy backing this preconditioner '
                                         'has been released')
        try:
            return self._amg.ml.aspreconditioner(cycle=self.cycle, **self._kwargs)
        except Exception as e:
            raise EngineSolveError(f'pyamg aspreconditioner failed: {e}') from e

    def ldiv(self, v) -> np.ndarray:
        """Apply one multigrid cycle to ``v`` (approximate ``A^{-1} v``)."""
        M = self._engine_operator()
        v = self._amg._check_vector(v, 'v')
        try:
            z = M.matvec(v)
        except Exception as e:
            raise EngineSolveError(f'pyamg cycle failed: {e}') from e
        return from_engine_vector(z)

    def ldiv_into(self, out: np.ndarray, v) -> np.ndarray:
        """Apply one cycle to ``v`` and write the result into ``out``."""
        out[...] = self.ldiv(v)
        return out

    def matvec(self, v) -> np.ndarray:
        """Krylov-driver entry point; same as ``ldiv``."""
        return self.ldiv(v)

    def forward(self, x) -> np.ndarray:
        """Return ``A @ x`` with the original system matrix."""
        return self.A @ np.asarray(x)

    def __matmul__(self, x):
        return self.forward(x)

    def mul_into(self, out: np.ndarray, x) -> np.ndarray:
        """Write ``A @ x`` into ``out``."""
        out[...] = self.forward(x)
        return out

    def aslinearoperator(self) -> LinearOperator:
        """Return a scipy ``LinearOperator`` whose matvec is the one-cycle inverse."""
        return LinearOperator(self.shape, matvec=self.ldiv, dtype=self.dtype)

    def __repr__(self) -> str:
        return f"AMGPreconditioner(cycle={self.cycle!r}, n={self.shape[0]})"


def aspreconditioner(amg, **kwargs: Any) -> AMGPreconditioner:
    """Return a one-cycle preconditioner for ``amg`` (default cycle ``'V'``)."""
    return AMGPreconditioner(amg, **kwargs)
