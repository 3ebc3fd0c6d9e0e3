#########################################################################################
##
##                 FITTING AND BOOTSTRAP UNCERTAINTY ENGINE - PUBLIC API
##                               (opt/__init__.py)
##
##                                  Kevin McBride 2026
##
#########################################################################################

from .errors import (
    BootfitError,
    ParameterLimitsError,
    BackendUnavailableError,
    OutputFileError,
)
from .limits import (
    ParameterLimit,
    fixed_limit,
    bounded_limit,
    free_limit,
    validate_limits,
    free_mask,
    count_free,
)
from .model import FitStatistic, FitStatisticModel, CurveModel
from .statistics import (
    CONFIDENCE_MASS,
    mean,
    standard_deviation,
    confidence_interval,
    aic_corrected,
    bic,
)
from .backends import FitOutcome, least_squares_fit, nelder_mead_fit
from .diff_evolution import diff_evolution_fit, prepare_bounds
from .dispatch import BACKENDS, available_backends, select_backend, run_fit
from .bootstrap import (
    BootstrapOptions,
    BootstrapResult,
    ParameterSummary,
    bootstrap_errors,
)
from .report import print_results, save_parameters
