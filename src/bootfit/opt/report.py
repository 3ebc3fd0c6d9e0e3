#########################################################################################
##
##                          RESULT PRINTING AND OUTPUT FILES
##                                  (opt/report.py)
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import os
from datetime import datetime
from typing import Sequence

import numpy as np

from .backends import FitOutcome
from .errors import OutputFileError
from .limits import ParameterLimit
from .model import FitStatistic
from .statistics import CONFIDENCE_MASS, aic_corrected, bic, reduced_statistic


__all__ = [
    "format_bootstrap_summary",
    "write_bootstrap_samples",
    "print_results",
    "save_parameters",
]


# BOOTSTRAP REPORT ======================================================================

def format_bootstrap_summary(summaries: Sequence, n_iterations: int) -> str:
    """Console table for bootstrap summaries.

    One line per parameter::

        name = best  +plus, -minus    [lower -- upper, half-width];  (mean +/- sd)

    or ``name = value     [fixed parameter]``.
    """
    pct = int(round(100 * CONFIDENCE_MASS))
    lines = [
        "Statistics for parameter values from bootstrap resampling "
        f"({n_iterations} rounds):",
        f"Best-fit\t\t Bootstrap      [{pct}% conf.int., half-width]; "
        "(mean +/- standard deviation)",
    ]
    for s in summaries:
        if s.fixed:
            lines.append(f"{s.name} = {s.best_fit:g}     [fixed parameter]")
        else:
            lines.append(
                f"{s.name} = {s.best_fit:g}  +{s.plus:g}, -{s.minus:g}    "
                f"[{s.lower:g} -- {s.upper:g}, {s.half_width:g}];  "
                f"({s.mean:g} +/- {s.std:g})"
            )
    return "\n".join(lines)


def write_bootstrap_samples(path, samples: np.ndarray, header: str) -> None:
    """Write the sample matrix, one line per iteration.

    Parameters
    ----------
    path : str or os.PathLike
        Output file.
    samples : np.ndarray, shape (n_params, n_iterations)
        Sample matrix (rows are parameters); written transposed.
    header : str
        First line, typically ``model.param_header()``.

    Raises
    ------
    OutputFileError
        If the file cannot be written.
    """
    matrix = np.asarray(samples, dtype=float)
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(f"{header}\n")
            for column in matrix.T:
                fh.write("\t".join(f"{v:.10g}" for v in column) + "\n")
    except OSError as exc:
        raise OutputFileError(path, exc.strerror or str(exc)) from exc


# FIT REPORT ============================================================================

def _print_param(name: str, value: float, error: float) -> None:
    if error == 0.0:
        print(f"  {name:>10s} = {value:f}")
    else:
        print(f"  {name:>10s} = {value:f} +/- {error:f}")


def print_results(
    params: np.ndarray,
    outcome: FitOutcome,
    model,
    n_free: int,
) -> None:
    """Print a fit summary: statistic, information criteria, parameter values.

    Nothing is printed for a failed differential-evolution fit, which leaves
    no meaningful solution behind.
    """
    if outcome.backend == "differential-evolution" and outcome.status < 1:
        return

    statistic = getattr(model, "statistic", FitStatistic.CHISQUARE)
    n_valid = int(model.n_valid_samples)
    dof = n_valid - int(n_free)
    stat = float(outcome.final_statistic)

    print(f"*** {outcome.backend} status = {outcome.status} -- {outcome.message}")
    print(f"  {statistic.label} = {stat:f}    ({dof} DOF)")
    if np.isfinite(outcome.initial_statistic):
        print(f"  INITIAL {statistic.label} = {outcome.initial_statistic:f}")
    print(f"        NPAR = {model.n_params}")
    print(f"       NFREE = {n_free}")
    print(f"       NITER = {outcome.n_iterations}")
    print(f"        NFEV = {outcome.n_evaluations}")
    print()
    print(f"Reduced {statistic.label} = {reduced_statistic(stat, n_valid, n_free):f}")
    print(
        f"AIC = {aic_corrected(stat, n_free, n_valid):f}, "
        f"BIC = {bic(stat, n_free, n_valid):f}\n"
    )

    errors = outcome.std_errors
    for i in range(model.n_params):
        err = float(errors[i]) if errors is not None else 0.0
        _print_param(model.parameter_name(i), float(params[i]), err)


def save_parameters(
    path,
    params: np.ndarray,
    model,
    limits: Sequence[ParameterLimit] | None = None,
    command: Sequence[str] | str | None = None,
) -> None:
    """Write best-fit parameter values with a commented provenance header.

    Raises
    ------
    OutputFileError
        If the file cannot be written.
    """
    if command is None:
        command_line = ""
    elif isinstance(command, str):
        command_line = command
    else:
        command_line = " ".join(str(c) for c in command)

    stamp = datetime.now().strftime("%a %b %d %H:%M:%S %Y")
    lines = [
        "# Best-fit model results for bootfit",
        f"# Generated on {stamp} by the following command:",
        f"#    {command_line}",
        "",
    ]
    for i in range(model.n_params):
        line = f"{model.parameter_name(i)}\t{float(params[i]):g}"
        if limits is not None and limits[i].fixed:
            line += "\t# fixed"
        lines.append(line)

    try:
        with open(os.fspath(path), "w", encoding="utf-8") as fh:
            fh.write("\n".join(lines) + "\n")
    except OSError as exc:
        raise OutputFileError(path, exc.strerror or str(exc)) from exc
