#########################################################################################
##
##                         GRADIENT AND SIMPLEX OPTIMIZER BACKENDS
##                                 (opt/backends.py)
##
##         Every backend shares one calling convention:
##
##             backend(n_params, params, limits, model, ftol, verbose) -> FitOutcome
##
##         'params' is a float array overwritten in place with the best solution,
##         'limits' is never modified. Numerical trouble is reported through
##         'FitOutcome.status' (> 0 success, 0 not converged, < 0 bad input).
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

from .limits import ParameterLimit, bounds_arrays, free_mask
from .model import FitStatistic
from ..utils.logger import LoggerManager


__all__ = [
    "FitOutcome",
    "least_squares_fit",
    "nelder_mead_fit",
]

logger = LoggerManager().get_logger("opt.backends")

# Iteration budget per free parameter for the simplex search
_NM_ITER_PER_PARAMETER = 2000


# FIT OUTCOME ===========================================================================

@dataclass
class FitOutcome:
    """Result of one optimizer invocation.

    ``status`` follows the convention of all backends: positive values are
    convergence codes, ``0`` means the iteration budget ran out, negative
    values flag invalid input. The parameter vector itself is returned by
    mutation, not stored here.
    """

    status: int
    message: str = ""
    backend: str = ""
    n_iterations: int = 0
    n_evaluations: int = 0
    initial_statistic: float = float("nan")
    final_statistic: float = float("nan")
    std_errors: np.ndarray | None = None


    @property
    def success(self) -> bool:
        """True for a positive status."""
        return self.status > 0


    def __repr__(self) -> str:
        state = "SUCCESS" if self.success else "FAILED"
        return (
            f"FitOutcome({state}, status={self.status}, backend={self.backend!r}, "
            f"statistic={self.final_statistic:.6g}, nfev={self.n_evaluations})"
        )


# HELPERS ===============================================================================

def _as_param_vector(params: np.ndarray, n_params: int) -> np.ndarray:
    """Validate that *params* can be updated in place."""
    if not isinstance(params, np.ndarray) or params.dtype != float:
        raise TypeError("params must be a float numpy array (it is updated in place)")
    if params.ndim != 1 or params.size != n_params:
        raise ValueError(f"Expected params of length {n_params}, got shape {params.shape}")
    return params


def _scipy_verbosity(verbose: int) -> int:
    return int(min(max(verbose, 0), 2))


class _FreeSubspace:
    """Maps between the full parameter vector and its free entries."""

    def __init__(self, template: np.ndarray, mask: np.ndarray):
        self.template = template.copy()
        self.mask = mask


    def expand(self, x_free: np.ndarray) -> np.ndarray:
        full = self.template.copy()
        full[self.mask] = x_free
        return full


def _no_free_parameters(name: str, model, params: np.ndarray) -> FitOutcome:
    stat = float(model.fit_statistic(params))
    return FitOutcome(
        status=1,
        message="no free parameters",
        backend=name,
        initial_statistic=stat,
        final_statistic=stat,
        std_errors=np.zeros(params.size),
    )


# GRADIENT LEAST SQUARES ================================================================

def least_squares_fit(
    n_params: int,
    params: np.ndarray,
    limits: Sequence[ParameterLimit] | None,
    model,
    ftol: float,
    verbose: int = -1,
    *,
    max_nfev: int | None = None,
) -> FitOutcome:
    """Levenberg-Marquardt style fit of the model's deviates.

    Uses ``scipy.optimize.least_squares`` on the free parameters only.
    ``method="lm"`` is used when no free parameter is bounded (and there are
    enough samples), ``"trf"`` otherwise. Requires ``model.residuals``.

    Parameters
    ----------
    n_params : int
        Length of *params*.
    params : np.ndarray
        Initial guess, overwritten with the solution.
    limits : sequence of ParameterLimit or None
        Fixed flags and bounds; ``None`` means all parameters free, unbounded.
    model : FitStatisticModel
        Model providing ``residuals`` and ``fit_statistic``.
    ftol : float
        Relative tolerance on the change of the statistic.
    verbose : int
        ``<= 0`` silent, ``1`` summary, ``2`` per-iteration scipy output.
    max_nfev : int, optional
        Evaluation budget; scipy default when ``None``.

    Returns
    -------
    FitOutcome
        ``status`` is the scipy status (``-1`` improper input or a statistic
        without deviates such as Cash, ``0`` budget
        exhausted, ``1``-``4`` converged). ``std_errors`` are
        ``sqrt(diag((JᵀJ)⁻¹))`` for free parameters and zero for fixed ones.
    """
    name = "least-squares"
    x = _as_param_vector(params, n_params)

    if getattr(model, "statistic", None) is FitStatistic.CASH:
        logger.error("least-squares fit needs squared deviates; the Cash statistic has none")
        return FitOutcome(
            status=-1,
            message="statistic has no deviate form",
            backend=name,
        )

    mask = free_mask(limits, n_params)

    if not mask.any():
        return _no_free_parameters(name, model, x)

    lower, upper = bounds_arrays(limits, x)
    lo_f, hi_f = lower[mask], upper[mask]
    n_free = int(mask.sum())

    bounded = bool(np.isfinite(lo_f).any() or np.isfinite(hi_f).any())
    method = "trf" if bounded or model.n_valid_samples < n_free else "lm"

    space = _FreeSubspace(x, mask)
    initial = float(model.fit_statistic(x))

    try:
        res = sci_opt.least_squares(
            lambda xf: model.residuals(space.expand(xf)),
            x0=np.clip(x[mask], lo_f, hi_f),
            bounds=(lo_f, hi_f) if method == "trf" else (-np.inf, np.inf),
            method=method,
            ftol=float(ftol),
            max_nfev=max_nfev,
            verbose=_scipy_verbosity(verbose),
        )
    except ValueError as exc:
        logger.error("least-squares fit rejected its input: %s", exc)
        return FitOutcome(
            status=-1,
            message=str(exc),
            backend=name,
            initial_statistic=initial,
        )

    x[mask] = res.x

    errors = np.zeros(n_params)
    jac = np.atleast_2d(res.jac)
    covariance = np.linalg.pinv(jac.T @ jac)
    errors[mask] = np.sqrt(np.maximum(np.diag(covariance), 0.0))

    outcome = FitOutcome(
        status=int(res.status),
        message=str(res.message),
        backend=name,
        n_iterations=int(res.njev) if res.njev is not None else 0,
        n_evaluations=int(res.nfev),
        initial_statistic=initial,
        final_statistic=float(2.0 * res.cost),
        std_errors=errors,
    )
    if verbose > 0:
        logger.info("%s (%s): %r", name, method, outcome)
    return outcome


# NELDER-MEAD SIMPLEX ===================================================================

def nelder_mead_fit(
    n_params: int,
    params: np.ndarray,
    limits: Sequence[ParameterLimit] | None,
    model,
    ftol: float,
    verbose: int = -1,
    *,
    max_iter: int | None = None,
) -> FitOutcome:
    """Derivative-free simplex minimization of ``model.fit_statistic``.

    Uses ``scipy.optimize.minimize(method="Nelder-Mead")`` on the free
    parameters, honouring bounds where present. *ftol* is applied relative
    to the initial statistic (and to the largest initial parameter magnitude
    for the simplex size).

    Returns
    -------
    FitOutcome
        ``status`` ``1`` when converged, ``0`` when the iteration budget ran
        out, ``-1`` for a non-finite starting statistic or a scipy failure.
    """
    name = "nelder-mead"
    x = _as_param_vector(params, n_params)
    mask = free_mask(limits, n_params)

    if not mask.any():
        return _no_free_parameters(name, model, x)

    initial = float(model.fit_statistic(x))
    if not np.isfinite(initial):
        logger.error("Nelder-Mead start point has a non-finite statistic (%s)", initial)
        return FitOutcome(
            status=-1,
            message="non-finite statistic at initial parameters",
            backend=name,
            initial_statistic=initial,
        )

    lower, upper = bounds_arrays(limits, x)
    lo_f, hi_f = lower[mask], upper[mask]
    bounded = bool(np.isfinite(lo_f).any() or np.isfinite(hi_f).any())

    n_free = int(mask.sum())
    x0 = np.clip(x[mask], lo_f, hi_f)
    budget = int(max_iter) if max_iter is not None else _NM_ITER_PER_PARAMETER * n_free

    space = _FreeSubspace(x, mask)
    res = sci_opt.minimize(
        lambda xf: model.fit_statistic(space.expand(xf)),
        x0=x0,
        method="Nelder-Mead",
        bounds=list(zip(lo_f, hi_f)) if bounded else None,
        options={
            "fatol": float(ftol) * max(1.0, abs(initial)),
            "xatol": float(ftol) * max(1.0, float(np.max(np.abs(x0)))),
            "maxiter": budget,
            "maxfev": 2 * budget,
            "disp": verbose > 1,
        },
    )

    x[mask] = res.x

    if res.success:
        status = 1
    elif res.status in (1, 2):
        status = 0
    else:
        status = -1

    outcome = FitOutcome(
        status=status,
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
