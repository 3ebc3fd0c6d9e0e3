#########################################################################################
##
##                        OPTIMIZER REGISTRY AND BACKEND SELECTION
##                                 (opt/dispatch.py)
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from typing import Callable, Iterable, Sequence

import numpy as np

from .backends import FitOutcome, least_squares_fit, nelder_mead_fit
from .diff_evolution import diff_evolution_fit
from .errors import BackendUnavailableError
from .limits import ParameterLimit, check_initial_values, validate_limits
from .model import FitStatistic
from ..utils.logger import LoggerManager


__all__ = [
    "BACKENDS",
    "GRADIENT_STATISTICS",
    "DERIVATIVE_FREE_PRIORITY",
    "available_backends",
    "select_backend",
    "call_backend",
    "run_fit",
]

logger = LoggerManager().get_logger("opt.dispatch")


# REGISTRY ==============================================================================

BACKENDS: dict[str, Callable[..., FitOutcome]] = {
    "least-squares": least_squares_fit,
    "nelder-mead": nelder_mead_fit,
    "differential-evolution": diff_evolution_fit,
}

# Statistics with a squared-deviate form go to the gradient solver
GRADIENT_STATISTICS = frozenset({FitStatistic.CHISQUARE, FitStatistic.MODIFIED_CASH})

# Fallback order for every other statistic
DERIVATIVE_FREE_PRIORITY = ("nelder-mead", "differential-evolution")

# Backends that draw random numbers and accept an ``rng`` keyword
_RANDOMIZED = frozenset({"differential-evolution"})


def available_backends(disabled: Iterable[str] = ()) -> list[str]:
    """Registered backend names minus *disabled*, in registry order."""
    off = set(disabled)
    unknown = off - set(BACKENDS)
    if unknown:
        raise BackendUnavailableError(f"Unknown backend(s): {sorted(unknown)}")
    return [name for name in BACKENDS if name not in off]


def select_backend(
    statistic: FitStatistic,
    available: Sequence[str] | None = None,
) -> str:
    """Pick the backend for *statistic*.

    Chi-square and the modified Cash statistic use ``"least-squares"``; any
    other statistic uses the first available derivative-free backend
    (``"nelder-mead"``, then ``"differential-evolution"``).

    Raises
    ------
    BackendUnavailableError
        If the required backend is not in *available*.
    """
    statistic = FitStatistic(statistic)
    pool = list(BACKENDS) if available is None else list(available)

    if statistic in GRADIENT_STATISTICS:
        candidates: tuple[str, ...] = ("least-squares",)
    else:
        candidates = DERIVATIVE_FREE_PRIORITY

    for name in candidates:
        if name in pool:
            return name

    raise BackendUnavailableError(
        f"No available backend for statistic '{statistic.value}' "
        f"(wanted one of {list(candidates)}, have {pool})"
    )


def call_backend(
    name: str,
    params: np.ndarray,
    limits: Sequence[ParameterLimit] | None,
    model,
    ftol: float,
    verbose: int = -1,
    *,
    rng: np.random.Generator | None = None,
) -> FitOutcome:
    """Invoke the registered backend *name* with the shared calling convention.

    *rng* is forwarded only to backends that consume random numbers.
    """
    try:
        backend = BACKENDS[name]
    except KeyError:
        raise BackendUnavailableError(f"Unknown backend '{name}'") from None

    n_params = params.size
    if name in _RANDOMIZED:
        return backend(n_params, params, limits, model, ftol, verbose, rng=rng)
    return backend(n_params, params, limits, model, ftol, verbose)


# SINGLE FIT ============================================================================

def run_fit(
    model,
    params: np.ndarray,
    limits: Sequence[ParameterLimit] | None = None,
    *,
    statistic: FitStatistic | None = None,
    ftol: float = 1e-8,
    verbose: int = -1,
    available: Sequence[str] | None = None,
    rng: np.random.Generator | None = None,
) -> FitOutcome:
    """Fit *model* starting from *params* (updated in place).

    Parameters
    ----------
    model : FitStatisticModel
        Model to fit.
    params : np.ndarray
        Float parameter vector; receives the solution.
    limits : sequence of ParameterLimit, optional
        Limits table (required by differential evolution).
    statistic : FitStatistic, optional
        Routing key; defaults to ``model.statistic``.
    ftol : float
        Convergence tolerance.
    verbose : int
        Backend verbosity; ``-1`` silent.
    available : sequence of str, optional
        Restrict the backends considered (see :func:`available_backends`).
    rng : numpy.random.Generator, optional
        Randomness for population-based backends.

    Returns
    -------
    FitOutcome
    """
    if statistic is None:
        statistic = model.statistic
    validate_limits(limits, model.n_params)
    check_initial_values(limits, params)

    name = select_backend(statistic, available)
    logger.debug("fitting %d parameter(s) with %s", model.n_params, name)
    return call_backend(name, params, limits, model, ftol, verbose, rng=rng)
