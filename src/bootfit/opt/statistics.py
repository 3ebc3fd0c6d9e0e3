#########################################################################################
##
##                         SUMMARY STATISTICS FOR SAMPLE ARRAYS
##                                (opt/statistics.py)
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import math

import numpy as np


__all__ = [
    "CONFIDENCE_MASS",
    "mean",
    "standard_deviation",
    "confidence_interval",
    "aic_corrected",
    "bic",
    "reduced_statistic",
]

# Central probability mass of the reported interval ("1-sigma")
CONFIDENCE_MASS = 0.68


# SAMPLE STATISTICS =====================================================================

def mean(samples) -> float:
    """Arithmetic mean; ``nan`` for an empty input."""
    x = np.asarray(samples, dtype=float).reshape(-1)
    if x.size == 0:
        return float("nan")
    if np.ptp(x) == 0.0:
        return float(x[0])
    return math.fsum(x) / x.size


def standard_deviation(samples) -> float:
    """Sample standard deviation (``N - 1`` denominator).

    Returns ``nan`` for fewer than two samples and exactly ``0.0`` for a
    constant sequence.
    """
    x = np.asarray(samples, dtype=float).reshape(-1)
    if x.size < 2:
        return float("nan")
    if np.ptp(x) == 0.0:
        return 0.0
    dev = x - mean(x)
    return math.sqrt(math.fsum(dev * dev) / (x.size - 1))


def confidence_interval(samples, mass: float = CONFIDENCE_MASS) -> tuple[float, float]:
    """Empirical equal-tail interval enclosing the central *mass* of *samples*.

    Parameters
    ----------
    samples : array_like
        Sample values. A float ``numpy`` array is **sorted in place**; callers
        that need the original order must pass a copy.
    mass : float
        Enclosed probability mass, ``0 < mass < 1``.

    Returns
    -------
    lower, upper : float
        ``s[round(q_lo * N)]`` and ``s[round(q_hi * N)]`` of the sorted
        samples ``s``, with ``q_lo = (1 - mass) / 2`` and ``q_hi = 1 - q_lo``;
        indices are clamped to ``[0, N - 1]``. ``(nan, nan)`` when empty.
    """
    if not 0.0 < mass < 1.0:
        raise ValueError(f"mass must lie in (0, 1), got {mass}")

    if isinstance(samples, np.ndarray) and samples.dtype == float and samples.ndim == 1:
        x = samples
    else:
        x = np.asarray(samples, dtype=float).reshape(-1)

    n = x.size
    if n == 0:
        return float("nan"), float("nan")

    x.sort()

    q_lo = 0.5 * (1.0 - mass)
    q_hi = 1.0 - q_lo
    i_lo = min(max(int(round(q_lo * n)), 0), n - 1)
    i_hi = min(max(int(round(q_hi * n)), 0), n - 1)
    return float(x[i_lo]), float(x[i_hi])


# INFORMATION CRITERIA ==================================================================
#
# The fit statistics used here (chi-square, Cash, Poisson MLR) all have the form
# -2 ln L + const, so they enter the criteria directly.

def aic_corrected(statistic: float, n_free: int, n_data: int) -> float:
    """Akaike information criterion with the small-sample correction.

    ``AICc = stat + 2k + 2k(k+1) / (n - k - 1)``; ``inf`` when ``n - k - 1 <= 0``.
    """
    k = int(n_free)
    denom = int(n_data) - k - 1
    if denom <= 0:
        return float("inf")
    return float(statistic + 2.0 * k + 2.0 * k * (k + 1) / denom)


def bic(statistic: float, n_free: int, n_data: int) -> float:
    """Bayesian information criterion ``stat + k ln n``."""
    if n_data <= 0:
        return float("nan")
    return float(statistic + n_free * np.log(n_data))


def reduced_statistic(statistic: float, n_data: int, n_free: int) -> float:
    """Statistic per degree of freedom; ``inf`` without degrees of freedom."""
    dof = int(n_data) - int(n_free)
    return float(statistic / dof) if dof > 0 else float("inf")
