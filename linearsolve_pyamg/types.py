"""Typed configuration containers and the solver-variant tag.

Containers
----------
SolverVariant
    Closed set of hierarchy-construction strategies. Each member names exactly
    one pyamg entry point:
      - RUGE_STUBEN          -> ``pyamg.ruge_stuben_solver`` (classical AMG)
      - SMOOTHED_AGGREGATION -> ``pyamg.smoothed_aggregation_solver``

ConstructionConfig
    Options forwarded verbatim to the pyamg hierarchy builder. Common keys are
    ``strength``, ``presmoother``, ``postsmoother``, ``max_levels``,
    ``max_coarse`` and ``coarse_solver``; variant-specific keys (``CF``,
    ``interpolation`` for classical, ``aggregate``, ``smooth``, ``B`` for
    smoothed aggregation) pass through the same way. Unknown keys are pyamg's
    concern and are not validated here.

SolveConfig
    Solve-time options: ``tol``, ``maxiter``, ``accel``, ``cycle`` and
    ``cycles_per_level``. Only keys the caller set are stored, so unset keys
    fall through to pyamg's own defaults.

Keyword bag split
-----------------
The public constructors take a single ``**kwargs`` bag. ``split_options``
derives the two configs from it: keys listed in ``SOLVE_KEYS`` become the
handle's default solve options, everything else goes to the builder. A key is
never used for both purposes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping

from scipy.sparse import spmatrix
try:
    from scipy.sparse import sparray  # type: ignore
except Exception:  # pragma: no cover
    sparray = spmatrix  # type: ignore

SparseLike = spmatrix | sparray

DEFAULT_TOL = 1e-5
DEFAULT_CYCLE = "V"
CYCLES = ("V", "W", "F", "AMLI")
SOLVE_KEYS = frozenset({"tol", "maxiter", "accel", "cycle", "cycles_per_level"})

# Adapter-level flags consumed by the handle and never forwarded to pyamg.
ADAPTER_KEYS = frozenset({"print_info"})


class SolverVariant(enum.Enum):
    """Hierarchy-construction strategy.

    Adding a strategy means adding a member here and its entry point in
    ``_ENTRY_POINTS``.
    """

    RUGE_STUBEN = "ruge_stuben"
    SMOOTHED_AGGREGATION = "smoothed_aggregation"

    @property
    def entry_point(self) -> str:
        """Name of the pyamg function that builds this variant's hierarchy."""
        return _ENTRY_POINTS[self]

    @classmethod
    def coerce(cls, value: "SolverVariant | str") -> "SolverVariant":
        """Return the variant for a member, its value, or a common alias."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        try:
            return _ALIASES[key]
        except KeyError:
            raise ValueError(
                f"Unrecognized solver variant {value!r}; expected one of "
                f"{sorted(_ALIASES)}"
            ) from None


_ENTRY_POINTS = {
    SolverVariant.RUGE_STUBEN: "ruge_stuben_solver",
    SolverVariant.SMOOTHED_AGGREGATION: "smoothed_aggregation_solver",
}

_ALIASES = {
    "ruge_stuben": SolverVariant.RUGE_STUBEN,
    "rs": SolverVariant.RUGE_STUBEN,
    "classical": SolverVariant.RUGE_STUBEN,
    "smoothed_aggregation": SolverVariant.SMOOTHED_AGGREGATION,
    "sa": SolverVariant.SMOOTHED_AGGREGATION,
}


@dataclass(slots=True, frozen=True)
class ConstructionConfig:
    """Options forwarded verbatim to the pyamg hierarchy builder.

    Attributes
    ----------
    options : Mapping[str, Any]
        Builder keyword arguments, exactly as supplied by the caller.
    """

    options: Mapping[str, Any] = field(default_factory=dict)

    def engine_kwargs(self) -> dict[str, Any]:
        """Return a fresh dict of builder keyword arguments."""
        return dict(self.options)


@dataclass(slots=True, frozen=True)
class SolveConfig:
    """Solve-time options with key-by-key inheritance.

    Attributes
    ----------
    options : Mapping[str, Any]
        Only the keys that were set explicitly. Missing keys mean "use the
        default of the next scope": handle defaults, then pyamg built-ins.
    """

    options: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_kwargs(cls, **kwargs: Any) -> "SolveConfig":
        """Build a config from keyword arguments."""
        return cls(options=dict(kwargs))

    def merged(self, overrides: "SolveConfig | Mapping[str, Any] | None") -> "SolveConfig":
        """Return a new config where ``overrides`` win key-by-key."""
        if overrides is None:
            return self
        if isinstance(overrides, SolveConfig):
            overrides = overrides.options
        return SolveConfig(options={**self.options, **overrides})

    def engine_kwargs(self) -> dict[str, Any]:
        """Return the explicitly set options as ``MultilevelSolver.solve`` kwargs."""
        return dict(self.options)

    @property
    def tol(self) -> float:
        """Effective relative residual tolerance."""
        return float(self.options.get("tol", DEFAULT_TOL))

    @property
    def maxiter(self) -> int | None:
        """Iteration cap, or None when pyamg's default applies."""
        return self.options.get("maxiter")

    @property
    def accel(self) -> Any:
        """Krylov accelerator name or callable, or None for stationary cycling."""
        return self.options.get("accel")

    @property
    def cycle(self) -> str:
        """Multigrid cycle shape."""
        return self.options.get("cycle", DEFAULT_CYCLE)


def split_options(kwargs: Mapping[str, Any]) -> tuple[ConstructionConfig, SolveConfig, dict[str, Any]]:
    """Split one keyword bag into builder options, solve defaults and adapter flags.

    Parameters
    ----------
    kwargs
        The keyword arguments given to a public constructor.

    Returns
    -------
    construction, defaults, adapter
        ``construction`` holds every key not in ``SOLVE_KEYS`` or
        ``ADAPTER_KEYS``; ``defaults`` holds the solve-time keys; ``adapter``
        holds flags such as ``print_info``.
    """
    build: dict[str, Any] = {}
    solve: dict[str, Any] = {}
    adapter: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key in SOLVE_KEYS:
            solve[key] = value
        elif key in ADAPTER_KEYS:
            adapter[key] = value
        else:
            build[key] = value
    return ConstructionConfig(options=build), SolveConfig(options=solve), adapter
