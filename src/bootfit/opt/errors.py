#########################################################################################
##
##                                   EXCEPTIONS
##                                 (opt/errors.py)
##
##                                  Kevin McBride 2026
##
#########################################################################################


class BootfitError(Exception):
    """Base class for all errors raised by the fitting engine."""


class ParameterLimitsError(BootfitError, ValueError):
    """Malformed parameter limits (inverted bounds, wrong table length)."""


class BackendUnavailableError(BootfitError, LookupError):
    """No registered optimizer backend can serve the requested statistic."""


class OutputFileError(BootfitError, OSError):
    """An output file could not be opened or written."""

    def __init__(self, path, reason: str = ""):
        self.path = str(path)
        msg = f"Couldn't open file '{self.path}'"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
