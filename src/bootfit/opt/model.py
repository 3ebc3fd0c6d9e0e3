#########################################################################################
##
##                          FIT-STATISTIC MODEL CONTRACT
##                                  (opt/model.py)
##
##         The engine only ever talks to a model through 'FitStatisticModel'.
##         'CurveModel' is a complete implementation for 1D data y(x).
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import copy
import inspect
from enum import Enum
from typing import Callable, Protocol, Sequence, runtime_checkable

import numpy as np


__all__ = [
    "FitStatistic",
    "FitStatisticModel",
    "CurveModel",
]

# Floor applied to model values inside logarithms
_TINY = np.finfo(float).tiny


# STATISTIC KINDS =======================================================================

class FitStatistic(Enum):
    """Kind of fit statistic minimized by the optimizers.

    ``MODIFIED_CASH`` is the Poisson likelihood-ratio form of the Cash
    statistic; unlike plain ``CASH`` it is non-negative per sample and can be
    written as a sum of squared deviates, so it is least-squares compatible.
    """

    CHISQUARE = "chisquare"
    CASH = "cash"
    MODIFIED_CASH = "modified-cash"

    @property
    def label(self) -> str:
        """Display name used in printed results."""
        return {
            FitStatistic.CHISQUARE: "CHI-SQUARE",
            FitStatistic.CASH: "CASH STATISTIC",
            FitStatistic.MODIFIED_CASH: "POISSON-MLR STATISTIC",
        }[self]


# PROTOCOL ==============================================================================

@runtime_checkable
class FitStatisticModel(Protocol):
    """Contract the fitting engine requires from a model.

    The model owns its data; the engine never looks inside it. Resampling
    mutates the model's working data in place and draws all randomness from
    the generator it is handed.
    """

    statistic: FitStatistic

    @property
    def n_params(self) -> int: ...

    @property
    def n_valid_samples(self) -> int: ...

    def parameter_name(self, i: int) -> str: ...

    def fit_statistic(self, params: np.ndarray) -> float: ...

    def residuals(self, params: np.ndarray) -> np.ndarray: ...

    def use_bootstrap(self) -> None: ...

    def make_bootstrap_sample(self, rng: np.random.Generator) -> None: ...

    def param_header(self) -> str: ...


# CURVE MODEL ===========================================================================

class CurveModel:
    """Fit-statistic model for one-dimensional data ``y(x)``.

    Parameters
    ----------
    func : callable
        Model function ``func(x, *params) -> array`` evaluated on the sample
        abscissae.
    x : array_like
        Sample positions, shape ``(n,)``.
    y : array_like
        Measured values, shape ``(n,)``. Counts for the Cash statistics.
    sigma : array_like or float, optional
        Per-sample uncertainties for chi-square; defaults to 1.
    param_names : sequence of str, optional
        Parameter names; defaults to the argument names of *func* after the
        first one.
    statistic : FitStatistic
        Statistic returned by :meth:`fit_statistic`.
    mask : array_like of bool, optional
        ``True`` marks usable samples.

    Notes
    -----
    Samples with non-finite data (or, for chi-square, a non-positive sigma)
    are excluded on construction and never enter the statistic.

    Bootstrap samples are always drawn from the original valid samples, so
    consecutive calls to :meth:`make_bootstrap_sample` are independent of
    each other.

    Example
    -------
    .. code-block:: python

        model = CurveModel(lambda x, a, b: a + b * x, x, y, sigma=0.5)
        model.fit_statistic(np.array([1.0, 2.0]))
    """

    def __init__(
        self,
        func: Callable[..., np.ndarray],
        x: np.ndarray,
        y: np.ndarray,
        sigma: np.ndarray | float | None = None,
        *,
        param_names: Sequence[str] | None = None,
        statistic: FitStatistic = FitStatistic.CHISQUARE,
        mask: np.ndarray | None = None,
    ):
        x_arr = np.asarray(x, dtype=float).reshape(-1)
        y_arr = np.asarray(y, dtype=float).reshape(-1)

        if x_arr.size != y_arr.size:
            raise ValueError("CurveModel requires x and y with same length")

        if sigma is None:
            s_arr = np.ones_like(y_arr)
        else:
            s_arr = np.broadcast_to(np.asarray(sigma, dtype=float), y_arr.shape).copy()

        if mask is None:
            good = np.ones(y_arr.size, dtype=bool)
        else:
            good = np.asarray(mask, dtype=bool).reshape(-1)
            if good.size != y_arr.size:
                raise ValueError("CurveModel requires mask with same length as data")

        good = good & np.isfinite(x_arr) & np.isfinite(y_arr)
        if statistic is FitStatistic.CHISQUARE:
            good &= np.isfinite(s_arr) & (s_arr > 0.0)
        else:
            good &= y_arr >= 0.0

        if not np.any(good):
            raise ValueError("CurveModel has no valid samples")

        if param_names is None:
            args = list(inspect.signature(func).parameters)[1:]
            param_names = args
        if len(param_names) == 0:
            raise ValueError("CurveModel requires at least one parameter")

        self.func = func
        self.statistic = FitStatistic(statistic)
        self._names = [str(n) for n in param_names]

        # original (valid) data, never modified after construction
        self._x = x_arr[good]
        self._y = y_arr[good]
        self._sigma = s_arr[good]

        # working data: original until bootstrap mode is entered
        self._bootstrap = False
        self._x_work = self._x
        self._y_work = self._y
        self._sigma_work = self._sigma


    # PROPERTIES ------------------------------------------------------------------------

    @property
    def n_params(self) -> int:
        """Number of model parameters."""
        return len(self._names)


    @property
    def n_valid_samples(self) -> int:
        """Number of samples entering the fit statistic."""
        return int(self._y.size)


    @property
    def param_names(self) -> list[str]:
        """Parameter names in vector order."""
        return list(self._names)


    @property
    def in_bootstrap_mode(self) -> bool:
        """True once :meth:`use_bootstrap` has been called."""
        return self._bootstrap


    # CONTRACT --------------------------------------------------------------------------

    def parameter_name(self, i: int) -> str:
        """Name of parameter *i*."""
        return self._names[i]


    def param_header(self) -> str:
        """Tab-delimited header line naming all parameters."""
        return "# " + "\t".join(self._names)


    def evaluate(self, params: np.ndarray, x: np.ndarray | None = None) -> np.ndarray:
        """Model values at *x* (default: the original sample positions)."""
        xs = self._x if x is None else np.asarray(x, dtype=float)
        p = np.asarray(params, dtype=float).reshape(-1)
        if p.size != self.n_params:
            raise ValueError(f"Expected {self.n_params} parameter(s), got {p.size}")
        return np.asarray(self.func(xs, *p), dtype=float).reshape(xs.shape)


    def fit_statistic(self, params: np.ndarray) -> float:
        """Evaluate the configured fit statistic on the working data."""
        m = self.evaluate(params, self._x_work)
        d = self._y_work

        if self.statistic is FitStatistic.CHISQUARE:
            r = (d - m) / self._sigma_work
            return float(np.dot(r, r))

        m = np.maximum(m, _TINY)
        if self.statistic is FitStatistic.CASH:
            return float(2.0 * np.sum(m - d * np.log(m)))

        return float(2.0 * np.sum(self._mlr_terms(m, d)))


    def residuals(self, params: np.ndarray) -> np.ndarray:
        """Deviates whose squared sum equals :meth:`fit_statistic`.

        Raises
        ------
        ValueError
            For the plain Cash statistic, which has no deviate form.
        """
        m = self.evaluate(params, self._x_work)
        d = self._y_work

        if self.statistic is FitStatistic.CHISQUARE:
            return (d - m) / self._sigma_work

        if self.statistic is FitStatistic.CASH:
            raise ValueError(
                "The Cash statistic cannot be expressed as squared deviates; "
                "use a derivative-free backend."
            )

        m = np.maximum(m, _TINY)
        return np.sqrt(2.0 * self._mlr_terms(m, d))


    @staticmethod
    def _mlr_terms(m: np.ndarray, d: np.ndarray) -> np.ndarray:
        """Per-sample Poisson likelihood-ratio terms (non-negative)."""
        terms = m - d
        pos = d > 0.0
        terms[pos] += d[pos] * np.log(d[pos] / m[pos])
        return np.maximum(terms, 0.0)


    # BOOTSTRAP -------------------------------------------------------------------------

    def use_bootstrap(self) -> None:
        """Enter bootstrap mode; statistics are evaluated on resampled data."""
        self._bootstrap = True


    def make_bootstrap_sample(self, rng: np.random.Generator) -> None:
        """Replace the working data with a resample (with replacement).

        Parameters
        ----------
        rng : numpy.random.Generator
            Source of the resampling indices.
        """
        if not self._bootstrap:
            self.use_bootstrap()
        n = self._y.size
        idx = rng.integers(0, n, size=n)
        self._x_work = self._x[idx]
        self._y_work = self._y[idx]
        self._sigma_work = self._sigma[idx]


    def copy(self) -> "CurveModel":
        """Independent deep copy (own working buffers)."""
        return copy.deepcopy(self)


    def __repr__(self) -> str:
        return (
            f"CurveModel(n_params={self.n_params}, "
            f"n_valid_samples={self.n_valid_samples}, "
            f"statistic={self.statistic.value!r})"
        )
