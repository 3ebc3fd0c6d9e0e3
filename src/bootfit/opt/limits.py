#########################################################################################
##
##                              PARAMETER LIMITS TABLE
##                                  (opt/limits.py)
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np

from .errors import ParameterLimitsError


__all__ = [
    "ParameterLimit",
    "fixed_limit",
    "bounded_limit",
    "free_limit",
    "validate_limits",
    "free_mask",
    "count_free",
    "bounds_arrays",
    "check_initial_values",
]


# PARAMETER LIMIT =======================================================================

class ParameterLimit:
    """Per-parameter search metadata shared by all optimizer backends.

    A parameter is either fixed (excluded from the search space) or free. A
    free parameter may carry a lower and/or an upper bound; each side is
    optional and independent.

    Parameters
    ----------
    name : str
        Parameter identifier (display only, the table is index-ordered).
    fixed : bool
        Hold the parameter at its current value.
    lower : float, optional
        Lower bound; ``None`` or ``-inf`` means unbounded below.
    upper : float, optional
        Upper bound; ``None`` or ``+inf`` means unbounded above.

    Notes
    -----
    The ``fixed`` flag is the source of truth. Backends that need a bound for
    every parameter (differential evolution) collapse a fixed parameter to
    ``lower == upper == value`` on their side; that representation is never
    stored here.

    Example
    -------
    .. code-block:: python

        ParameterLimit("x0", lower=0.0, upper=100.0)
        ParameterLimit("PA", fixed=True)
    """

    def __init__(
        self,
        name: str = "",
        fixed: bool = False,
        lower: float | None = None,
        upper: float | None = None,
    ):
        self.name = str(name)
        self.fixed = bool(fixed)
        self.lower = None if lower is None or not np.isfinite(lower) else float(lower)
        self.upper = None if upper is None or not np.isfinite(upper) else float(upper)

        if self.lower is not None and self.upper is not None and self.lower > self.upper:
            raise ParameterLimitsError(
                f"Parameter '{self.name}': lower bound {self.lower} > upper bound {self.upper}"
            )


    @property
    def has_lower(self) -> bool:
        """True if a finite lower bound is set."""
        return self.lower is not None


    @property
    def has_upper(self) -> bool:
        """True if a finite upper bound is set."""
        return self.upper is not None


    @property
    def is_bounded(self) -> bool:
        """True if both sides are bounded."""
        return self.has_lower and self.has_upper


    def bounds(self, value: float | None = None) -> tuple[float, float]:
        """Return ``(lo, hi)`` with infinities for missing sides.

        For a fixed parameter the pair collapses to ``(value, value)``;
        *value* is then required.
        """
        if self.fixed:
            if value is None:
                raise ValueError(
                    f"Parameter '{self.name}' is fixed; its current value is required"
                )
            return float(value), float(value)

        lo = self.lower if self.lower is not None else -np.inf
        hi = self.upper if self.upper is not None else np.inf
        return lo, hi


    def __eq__(self, other) -> bool:
        if not isinstance(other, ParameterLimit):
            return NotImplemented
        return (
            self.name == other.name
            and self.fixed == other.fixed
            and self.lower == other.lower
            and self.upper == other.upper
        )


    def __repr__(self) -> str:
        if self.fixed:
            return f"ParameterLimit(name={self.name!r}, fixed=True)"
        return (
            f"ParameterLimit(name={self.name!r}, "
            f"lower={self.lower}, upper={self.upper})"
        )


def fixed_limit(name: str = "") -> ParameterLimit:
    """Factory for a fixed parameter."""
    return ParameterLimit(name=name, fixed=True)


def bounded_limit(name: str, lower: float, upper: float) -> ParameterLimit:
    """Factory for a free parameter bounded on both sides."""
    return ParameterLimit(name=name, lower=lower, upper=upper)


def free_limit(name: str = "") -> ParameterLimit:
    """Factory for an unbounded free parameter."""
    return ParameterLimit(name=name)


# TABLE HELPERS =========================================================================

def validate_limits(limits: Sequence[ParameterLimit] | None, n_params: int) -> None:
    """Raise :class:`ParameterLimitsError` if *limits* does not match *n_params*."""
    if limits is None:
        return
    if len(limits) != n_params:
        raise ParameterLimitsError(
            f"Limits table has {len(limits)} entries but the model has "
            f"{n_params} parameter(s)"
        )
    for i, lim in enumerate(limits):
        if not isinstance(lim, ParameterLimit):
            raise TypeError(
                f"limits[{i}] must be a ParameterLimit, got {type(lim).__name__}"
            )


def free_mask(limits: Sequence[ParameterLimit] | None, n_params: int) -> np.ndarray:
    """Boolean mask, ``True`` for free parameters.

    An absent table means every parameter is free.
    """
    if limits is None:
        return np.ones(n_params, dtype=bool)
    validate_limits(limits, n_params)
    return np.array([not lim.fixed for lim in limits], dtype=bool)


def count_free(limits: Sequence[ParameterLimit] | None, n_params: int) -> int:
    """Number of free parameters."""
    return int(np.count_nonzero(free_mask(limits, n_params)))


def bounds_arrays(
    limits: Sequence[ParameterLimit] | None,
    params: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(lower, upper)`` arrays for a full parameter vector.

    Missing bounds become ``-inf`` / ``+inf``; fixed parameters collapse to
    their current value in *params*.
    """
    x = np.asarray(params, dtype=float).reshape(-1)
    if limits is None:
        return np.full(x.size, -np.inf), np.full(x.size, np.inf)

    validate_limits(limits, x.size)
    pairs = [lim.bounds(x[i]) for i, lim in enumerate(limits)]
    lower = np.array([p[0] for p in pairs], dtype=float)
    upper = np.array([p[1] for p in pairs], dtype=float)
    return lower, upper


def check_initial_values(
    limits: Sequence[ParameterLimit] | None,
    params: np.ndarray,
) -> None:
    """Warn about free parameters whose value lies outside their bounds."""
    if limits is None:
        return
    x = np.asarray(params, dtype=float).reshape(-1)
    for i, lim in enumerate(limits):
        if lim.fixed:
            continue
        if lim.has_lower and x[i] < lim.lower:
            warnings.warn(
                f"Parameter '{lim.name}': initial value {x[i]} < lower bound {lim.lower}",
                UserWarning,
                stacklevel=2,
            )
        if lim.has_upper and x[i] > lim.upper:
            warnings.warn(
                f"Parameter '{lim.name}': initial value {x[i]} > upper bound {lim.upper}",
                UserWarning,
                stacklevel=2,
            )
