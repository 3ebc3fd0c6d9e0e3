#########################################################################################
##
##                        BOOTSTRAP PARAMETER UNCERTAINTIES
##                                (opt/bootstrap.py)
##
##         Repeatedly resamples the model data, refits from the best-fit
##         parameters and summarizes the distribution of refitted values.
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import copy
import dataclasses
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from .dispatch import call_backend, select_backend
from .errors import ParameterLimitsError
from .limits import ParameterLimit, free_mask, validate_limits
from .model import FitStatistic
from .report import format_bootstrap_summary, write_bootstrap_samples
from .statistics import CONFIDENCE_MASS, confidence_interval, mean, standard_deviation
from ..utils.logger import LoggerManager


__all__ = [
    "FAILURE_POLICIES",
    "BootstrapOptions",
    "ParameterSummary",
    "BootstrapResult",
    "bootstrap_errors",
]

logger = LoggerManager().get_logger("opt.bootstrap")

# keep    : every refit counts, converged or not
# exclude : refits with status <= 0 stay in the matrix but not in the statistics
# retry   : redraw and refit up to `max_retries` more times; a negative status stops retrying
FAILURE_POLICIES = ("keep", "exclude", "retry")


# OPTIONS ===============================================================================

@dataclass
class BootstrapOptions:
    """Run configuration for :func:`bootstrap_errors`.

    Parameters
    ----------
    n_iterations : int
        Number of resample-and-refit rounds.
    ftol : float
        Convergence tolerance handed to the optimizer.
    statistic : FitStatistic, optional
        Routing key for the optimizer; defaults to ``model.statistic``.
    output_file : str
        Path for the sample matrix; empty string writes nothing.
    seed : int, optional
        Master seed. ``None`` draws fresh entropy, which is logged and stored
        on the result so the run can be repeated.
    failure_policy : str
        One of :data:`FAILURE_POLICIES`.
    max_retries : int
        Extra attempts per iteration under the ``"retry"`` policy.
    backends : sequence of str, optional
        Restrict the optimizer backends that may be selected.
    workers : int
        Number of threads; each parallel iteration refits a private model
        copy with its own random stream.
    verbose : int
        Optimizer verbosity; ``-1`` keeps refits silent.
    """

    n_iterations: int = 200
    ftol: float = 1e-8
    statistic: FitStatistic | None = None
    output_file: str = ""
    seed: int | None = None
    failure_policy: str = "keep"
    max_retries: int = 3
    backends: Sequence[str] | None = None
    workers: int = 1
    verbose: int = -1


    def __post_init__(self) -> None:
        if int(self.n_iterations) < 0:
            raise ValueError(f"n_iterations must be >= 0, got {self.n_iterations}")
        if not self.ftol > 0.0:
            raise ValueError(f"ftol must be > 0, got {self.ftol}")
        if self.failure_policy not in FAILURE_POLICIES:
            raise ValueError(
                f"failure_policy must be one of {FAILURE_POLICIES}, "
                f"got {self.failure_policy!r}"
            )
        if int(self.max_retries) < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if int(self.workers) < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

        self.n_iterations = int(self.n_iterations)
        if self.statistic is not None:
            self.statistic = FitStatistic(self.statistic)


# RESULTS ===============================================================================

@dataclass
class ParameterSummary:
    """Bootstrap summary of one parameter.

    For fixed parameters only ``best_fit`` is meaningful; the statistics are
    ``None``.
    """

    name: str
    best_fit: float
    fixed: bool = False
    mean: float | None = None
    std: float | None = None
    lower: float | None = None
    upper: float | None = None
    half_width: float | None = None
    plus: float | None = None
    minus: float | None = None


@dataclass
class BootstrapResult:
    """Outcome of a bootstrap run.

    Attributes
    ----------
    samples : np.ndarray, shape (n_params, n_iterations)
        Refitted values, one column per iteration in iteration order.
    statuses : np.ndarray, shape (n_iterations,)
        Optimizer status recorded for each column.
    summaries : list[ParameterSummary]
        Per-parameter statistics, in parameter order.
    best_fit : np.ndarray
        Parameter vector every refit started from.
    seed : int
        Master entropy of the random streams.
    backend : str
        Optimizer backend used for every refit.
    failure_policy : str
        Policy applied to non-converged refits.
    header : str
        Header line for the sample file.
    """

    samples: np.ndarray
    statuses: np.ndarray
    summaries: list[ParameterSummary]
    best_fit: np.ndarray
    seed: int
    backend: str
    failure_policy: str = "keep"
    header: str = ""
    _used: np.ndarray | None = field(default=None, repr=False)


    @property
    def n_iterations(self) -> int:
        """Number of columns in the sample matrix."""
        return int(self.samples.shape[1])


    @property
    def used_mask(self) -> np.ndarray:
        """Columns that entered the summary statistics."""
        if self._used is None:
            return np.ones(self.n_iterations, dtype=bool)
        return self._used


    @property
    def n_failed(self) -> int:
        """Number of refits with a non-positive status."""
        return int(np.count_nonzero(self.statuses <= 0))


    def summary(self, name: str) -> ParameterSummary:
        """Summary of the parameter called *name*."""
        for s in self.summaries:
            if s.name == name:
                return s
        raise KeyError(f"No parameter named '{name}'")


    # DISPLAY ===========================================================================

    def display(self) -> None:
        """Print the bootstrap statistics table."""
        print()
        print(format_bootstrap_summary(self.summaries, self.n_iterations))
        if self.n_failed:
            print(
                f"({self.n_failed} of {self.n_iterations} refits did not converge; "
                f"failure policy '{self.failure_policy}')"
            )


    def write(self, path, header: str | None = None) -> None:
        """Write the sample matrix (one line per iteration) to *path*.

        *header* defaults to the model's parameter header.
        """
        write_bootstrap_samples(path, self.samples, self.header if header is None else header)


    # PLOT ==============================================================================

    def plot(self, *, bins: int = 20, figsize: tuple | None = None):
        """Histogram of the refitted values of every free parameter.

        Returns
        -------
        fig : matplotlib.figure.Figure
        axes : np.ndarray of matplotlib.axes.Axes
        """
        import matplotlib.pyplot as plt

        free = [(i, s) for i, s in enumerate(self.summaries) if not s.fixed]
        if not free:
            raise ValueError("No free parameters to plot.")

        n = len(free)
        fig, axes = plt.subplots(
            1, n, figsize=figsize or (4.0 * n, 3.5), squeeze=False
        )
        pct = int(round(100 * CONFIDENCE_MASS))
        used = self.used_mask

        for ax, (i, s) in zip(axes[0], free):
            ax.hist(self.samples[i, used], bins=bins, color="steelblue", alpha=0.7)
            ax.axvline(s.best_fit, color="k", lw=1.5, label="best fit")
            if np.isfinite(s.lower) and np.isfinite(s.upper):
                ax.axvspan(s.lower, s.upper, color="salmon", alpha=0.25,
                           label=f"{pct}% interval")
            ax.set_title(s.name)
            ax.set_xlabel("Value")
            ax.grid(True, alpha=0.3)

        axes[0][0].set_ylabel("Count")
        axes[0][0].legend(fontsize=8)
        fig.suptitle(f"Bootstrap distributions ({self.n_iterations} rounds)",
                     fontweight="bold")
        plt.tight_layout()
        return fig, axes[0]


# ENGINE ================================================================================

def _summarize(
    samples: np.ndarray,
    used: np.ndarray,
    best_fit: np.ndarray,
    fixed: np.ndarray,
    names: list[str],
) -> list[ParameterSummary]:
    """Per-parameter statistics; the sample matrix itself is left untouched."""
    summaries: list[ParameterSummary] = []
    for i, name in enumerate(names):
        best = float(best_fit[i])
        if fixed[i]:
            summaries.append(ParameterSummary(name=name, best_fit=best, fixed=True))
            continue

        row = samples[i, used]
        lower, upper = confidence_interval(row.copy())
        summaries.append(
            ParameterSummary(
                name=name,
                best_fit=best,
                mean=mean(row),
                std=standard_deviation(row),
                lower=lower,
                upper=upper,
                half_width=0.5 * (upper - lower),
                plus=upper - best,
                minus=best - lower,
            )
        )
    return summaries


def bootstrap_errors(
    best_fit: np.ndarray,
    limits: Sequence[ParameterLimit] | None,
    model,
    options: BootstrapOptions | None = None,
    **overrides,
) -> BootstrapResult:
    """Estimate parameter uncertainties by bootstrap resampling.

    Every iteration asks the model for a fresh resample, restarts the
    optimizer from *best_fit* and stores the converged vector. The optimizer
    is chosen once from the statistic, exactly as for a single fit.

    Parameters
    ----------
    best_fit : array_like
        Best-fit parameter vector; not modified.
    limits : sequence of ParameterLimit or None
        Limits table; fixed parameters are reported without statistics.
    model : FitStatisticModel
        Model to resample and refit; switched to bootstrap mode and mutated
        by every resample.
    options : BootstrapOptions, optional
        Run configuration.
    **overrides
        Field overrides applied on top of *options*
        (e.g. ``n_iterations=50, seed=1``).

    Returns
    -------
    BootstrapResult

    Notes
    -----
    Each iteration draws from its own child of one ``numpy.random.SeedSequence``,
    so a fixed seed reproduces the sample matrix exactly, independent of
    ``workers``. A refit that fails to converge is not an error: it is
    logged and handled according to ``failure_policy``.

    Example
    -------
    .. code-block:: python

        outcome = run_fit(model, params, limits)
        boot = bootstrap_errors(params, limits, model, n_iterations=200, seed=42)
        boot.display()
    """
    opts = options if options is not None else BootstrapOptions()
    if overrides:
        opts = dataclasses.replace(opts, **overrides)

    n_params = int(model.n_params)
    best = np.array(best_fit, dtype=float).reshape(-1)
    if best.size != n_params:
        raise ParameterLimitsError(
            f"best_fit has {best.size} entries but the model has {n_params} parameter(s)"
        )
    validate_limits(limits, n_params)

    statistic = opts.statistic if opts.statistic is not None else model.statistic
    backend = select_backend(statistic, opts.backends)

    n_iter = opts.n_iterations
    root = np.random.SeedSequence(opts.seed)
    streams = root.spawn(n_iter)
    names = [model.parameter_name(i) for i in range(n_params)]

    logger.info(
        "Starting %d bootstrap iteration(s) (%s solver, seed=%d)",
        n_iter, backend, root.entropy,
    )

    model.use_bootstrap()

    attempts = 1 + (opts.max_retries if opts.failure_policy == "retry" else 0)

    def _iterate(i: int, mdl) -> tuple[np.ndarray, int]:
        rng = np.random.default_rng(streams[i])
        for attempt in range(attempts):
            mdl.make_bootstrap_sample(rng)
            x = best.copy()
            outcome = call_backend(backend, x, limits, mdl, opts.ftol, opts.verbose, rng=rng)
            if outcome.success:
                break
            logger.warning(
                "bootstrap iteration %d (attempt %d/%d): refit status %d (%s)",
                i + 1, attempt + 1, attempts, outcome.status, outcome.message,
            )
            if outcome.status < 0:
                # invalid input, a fresh resample cannot fix it
                break
        logger.debug("bootstrap iteration %d done", i + 1)
        return x, outcome.status

    samples = np.zeros((n_params, n_iter))
    statuses = np.zeros(n_iter, dtype=int)

    if opts.workers > 1 and n_iter > 1:
        def _isolated(i: int):
            clone = model.copy() if hasattr(model, "copy") else copy.deepcopy(model)
            return _iterate(i, clone)

        with ThreadPoolExecutor(max_workers=opts.workers) as pool:
            for i, (x, status) in enumerate(pool.map(_isolated, range(n_iter))):
                samples[:, i] = x
                statuses[i] = status
    else:
        for i in range(n_iter):
            samples[:, i], statuses[i] = _iterate(i, model)

    if opts.failure_policy == "exclude":
        used = statuses > 0
    else:
        used = np.ones(n_iter, dtype=bool)

    fixed = ~free_mask(limits, n_params)
    summaries = _summarize(samples, used, best, fixed, names)

    result = BootstrapResult(
        samples=samples,
        statuses=statuses,
        summaries=summaries,
        best_fit=best,
        seed=int(root.entropy),
        backend=backend,
        failure_policy=opts.failure_policy,
        header=model.param_header(),
        _used=used,
    )

    logger.info(
        "Bootstrap finished: %d iteration(s), %d non-converged refit(s)",
        n_iter, result.n_failed,
    )

    if opts.output_file:
        logger.info("Writing bootstrap parameter values to file %s", opts.output_file)
        result.write(opts.output_file)

    return result
