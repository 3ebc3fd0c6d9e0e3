#########################################################################################
##
##                          DIFFERENTIAL EVOLUTION ADAPTER
##                              (opt/diff_evolution.py)
##
##         Translates the shared limits table into the per-parameter bound
##         arrays a population search needs, then drives
##         'scipy.optimize.differential_evolution' with fixed control constants.
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import scipy.optimize as sci_opt

from .backends import FitOutcome, _FreeSubspace, _as_param_vector, _no_free_parameters
from .limits import ParameterLimit, validate_limits
from ..utils.logger import LoggerManager


__all__ = [
    "POP_SIZE_PER_PARAMETER",
    "MAX_DE_GENERATIONS",
    "DE_STRATEGY",
    "DE_SCALE",
    "DE_CROSSOVER",
    "DEBounds",
    "prepare_bounds",
    "diff_evolution_fit",
]

logger = LoggerManager().get_logger("opt.diff_evolution")


# CONSTANTS =============================================================================

# population = POP_SIZE_PER_PARAMETER * (number of free parameters)
POP_SIZE_PER_PARAMETER = 10
MAX_DE_GENERATIONS = 600

DE_STRATEGY = "randtobest1exp"
DE_SCALE = 0.85
DE_CROSSOVER = 1.0

REPORT_STEPS_PER_VERBOSE_OUTPUT = 5


# BOUNDS ================================================================================

@dataclass
class DEBounds:
    """Bound arrays derived from a limits table for one DE run.

    Fixed parameters appear with ``lower == upper == value``; ``free`` marks
    the parameters the population actually searches.
    """

    lower: np.ndarray
    upper: np.ndarray
    free: np.ndarray
    n_free: int


    @property
    def population_size(self) -> int:
        """Number of population members (scales with free parameters only)."""
        return POP_SIZE_PER_PARAMETER * self.n_free


def prepare_bounds(
    params: np.ndarray,
    limits: Sequence[ParameterLimit] | None,
) -> DEBounds | None:
    """Build DE bound arrays, or return ``None`` if the limits are insufficient.

    Every parameter must be fixed or bounded on both sides. A missing table
    is insufficient as well.
    """
    x = np.asarray(params, dtype=float).reshape(-1)
    if limits is None:
        return None
    validate_limits(limits, x.size)

    n_params = x.size
    lower = np.zeros(n_params)
    upper = np.zeros(n_params)
    free = np.ones(n_params, dtype=bool)
    n_free = n_params

    for i, lim in enumerate(limits):
        if lim.fixed:
            lower[i] = upper[i] = x[i]
            free[i] = False
            n_free -= 1
        elif lim.is_bounded:
            lower[i] = lim.lower
            upper[i] = lim.upper
        else:
            return None

    return DEBounds(lower=lower, upper=upper, free=free, n_free=n_free)


# FIT ===================================================================================

def diff_evolution_fit(
    n_params: int,
    params: np.ndarray,
    limits: Sequence[ParameterLimit] | None,
    model,
    ftol: float,
    verbose: int = -1,
    *,
    rng: np.random.Generator | None = None,
) -> FitOutcome:
    """Global minimization of ``model.fit_statistic`` by differential evolution.

    Parameters
    ----------
    n_params : int
        Length of *params*.
    params : np.ndarray
        Overwritten with the best population member; fixed entries keep
        their value.
    limits : sequence of ParameterLimit
        Required: every free parameter needs a lower and an upper bound.
    model : FitStatisticModel
        Model providing ``fit_statistic``.
    ftol : float
        Convergence tolerance on the population's statistic spread.
    verbose : int
        ``> 0`` logs progress every few generations.
    rng : numpy.random.Generator, optional
        Source of all population randomness.

    Returns
    -------
    FitOutcome
        ``-1`` when limits are insufficient (nothing is evaluated), ``1`` on
        convergence, ``0`` when the generation cap was reached.
    """
    name = "differential-evolution"
    x = _as_param_vector(params, n_params)

    bounds = prepare_bounds(x, limits)
    if bounds is None:
        logger.error(
            "Parameter limits must be supplied for all free parameters "
            "when using differential evolution"
        )
        return FitOutcome(
            status=-1,
            message="parameter limits required",
            backend=name,
        )

    if bounds.n_free == 0:
        return _no_free_parameters(name, model, x)

    space = _FreeSubspace(x, bounds.free)
    initial = float(model.fit_statistic(x))

    generation = [0]

    def _report(xk, convergence=None):
        generation[0] += 1
        if verbose > 0 and generation[0] % REPORT_STEPS_PER_VERBOSE_OUTPUT == 0:
            logger.info(
                "DE generation %d: best statistic = %.6g",
                generation[0],
                model.fit_statistic(space.expand(xk)),
            )
        return False

    res = sci_opt.differential_evolution(
        lambda xf: model.fit_statistic(space.expand(xf)),
        bounds=list(zip(bounds.lower[bounds.free], bounds.upper[bounds.free])),
        strategy=DE_STRATEGY,
        maxiter=MAX_DE_GENERATIONS,
        popsize=POP_SIZE_PER_PARAMETER,
        tol=float(ftol),
        mutation=DE_SCALE,
        recombination=DE_CROSSOVER,
        seed=rng if rng is not None else np.random.default_rng(),
        callback=_report,
        polish=False,
    )

    x[bounds.free] = res.x

    outcome = FitOutcome(
        status=1 if res.success else 0,
        message=str(res.message),
        backend=name,
        n_iterations=int(res.nit),
        n_evaluations=int(res.nfev),
        initial_statistic=initial,
        final_statistic=float(res.fun),
    )
    if verbose > 0:
        logger.info("%s: %r", name, outcome)
    return outcome
