#########################################################################################
##
##          bootfit example: exponential decay fit with bootstrap uncertainties
##
##  Model:   y(x) = amp * exp(-x / tau) + background
##  Data:    Synthetic measurements with Gaussian noise of known sigma.
##  Fit:     amp, tau (free, bounded)
##           background (fixed at its known value)
##
#########################################################################################

# IMPORTS ===============================================================================

import logging

import numpy as np
import matplotlib.pyplot as plt

from bootfit import LoggerManager
from bootfit.opt import (
    CurveModel,
    ParameterLimit,
    BootstrapOptions,
    bootstrap_errors,
    count_free,
    run_fit,
    print_results,
)


# DATA ==================================================================================

SIGMA = 0.05

rng = np.random.default_rng(2026)
x_meas = np.linspace(0.0, 5.0, 60)
y_meas = 1.8 * np.exp(-x_meas / 1.3) + 0.2 + rng.normal(0.0, SIGMA, x_meas.size)


# MODEL DEFINITION ======================================================================

def decay(x, amp, tau, background):
    return amp * np.exp(-x / tau) + background


model = CurveModel(decay, x_meas, y_meas, sigma=SIGMA)

limits = [
    ParameterLimit("amp", lower=0.0, upper=10.0),
    ParameterLimit("tau", lower=0.01, upper=20.0),
    ParameterLimit("background", fixed=True),
]


# Run Example ===========================================================================

if __name__ == '__main__':

    LoggerManager().configure(level=logging.INFO)

    # Best fit, updated in place
    params = np.array([1.0, 1.0, 0.2])
    outcome = run_fit(model, params, limits, ftol=1e-10)
    print_results(params, outcome, model, count_free(limits, model.n_params))

    # Resample, refit from the best fit, summarize
    options = BootstrapOptions(n_iterations=300, seed=7, workers=4)
    boot = bootstrap_errors(params, limits, model, options)
    boot.display()

    fig, axes = boot.plot(bins=25)
    plt.show()
