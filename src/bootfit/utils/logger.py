#########################################################################################
##
##                                 LOGGING MANAGER
##                                (utils/logger.py)
##
##         Process-wide manager for the 'bootfit' logger hierarchy. Modules ask
##         for a child logger once at import time; the application decides
##         where (and whether) the records go by calling 'configure()'.
##
##                                  Kevin McBride 2026
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import logging
import sys


# CONSTANTS =============================================================================

ROOT_LOGGER_NAME = "bootfit"

DEFAULT_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"


# CLASS =================================================================================

class LoggerManager:
    """Singleton managing the ``bootfit`` logger hierarchy.

    Until :meth:`configure` is called the root ``bootfit`` logger only carries
    a ``NullHandler``, so importing the library never writes to the console.

    Example
    -------
    .. code-block:: python

        from bootfit.utils.logger import LoggerManager

        LoggerManager().configure(level=logging.DEBUG)
        logger = LoggerManager().get_logger("opt.bootstrap")
        logger.info("starting")
    """

    _instance: "LoggerManager | None" = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance


    def __init__(self):
        if LoggerManager._initialized:
            return
        LoggerManager._initialized = True

        self.root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.root_logger.setLevel(logging.INFO)
        self.root_logger.addHandler(logging.NullHandler())

        self.handler: logging.Handler | None = None
        self.loggers: dict[str, logging.Logger] = {}
        self._enabled = False


    def configure(
        self,
        enabled: bool = True,
        output: str | None = None,
        level: int = logging.INFO,
        format: str | None = None,
        date_format: str | None = None,
    ) -> None:
        """Attach (or detach) the output handler of the ``bootfit`` hierarchy.

        Parameters
        ----------
        enabled : bool
            ``False`` removes the handler again and silences the library.
        output : str, optional
            Log file path; ``None`` logs to ``stdout``.
        level : int
            Level applied to the root ``bootfit`` logger.
        format : str, optional
            Record format, defaults to :data:`DEFAULT_FORMAT`.
        date_format : str, optional
            Timestamp format, defaults to :data:`DEFAULT_DATE_FORMAT`.
        """
        if self.handler is not None:
            self.root_logger.removeHandler(self.handler)
            self.handler.close()
            self.handler = None

        self._enabled = bool(enabled)
        self.root_logger.setLevel(level)

        if not self._enabled:
            return

        if output is None:
            handler: logging.Handler = logging.StreamHandler(sys.stdout)
        else:
            handler = logging.FileHandler(output, mode="a", encoding="utf-8")

        handler.setFormatter(
            logging.Formatter(
                format or DEFAULT_FORMAT,
                datefmt=date_format or DEFAULT_DATE_FORMAT,
            )
        )
        self.root_logger.addHandler(handler)
        self.handler = handler


    def get_logger(self, name: str) -> logging.Logger:
        """Return the child logger ``bootfit.<name>`` (cached)."""
        if name not in self.loggers:
            self.loggers[name] = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
        return self.loggers[name]


    def set_level(self, level: int) -> None:
        """Set the level of the root ``bootfit`` logger."""
        self.root_logger.setLevel(level)


    def is_enabled(self) -> bool:
        """True if an output handler is attached."""
        return self._enabled
