from importlib import metadata

try:
    __version__ = metadata.version("bootfit")
except Exception:
    __version__ = "unknown"

from .utils.logger import LoggerManager
from .opt import (
    ParameterLimit,
    FitStatistic,
    CurveModel,
    FitOutcome,
    run_fit,
    BootstrapOptions,
    BootstrapResult,
    bootstrap_errors,
)
