#########################################################################################
##
##                             CENTRALIZED LOGGING MANAGER
##                                 (utils/logger.py)
##
##         Singleton wrapper around the standard library 'logging' module. All
##         package modules obtain their loggers here so that verbosity and the
##         output stream are configured in a single place.
##
#########################################################################################

# IMPORTS ===============================================================================

import logging
import sys


# CONSTANTS =============================================================================

ROOT_LOGGER_NAME = "batchod"

_DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DEFAULT_DATE_FORMAT = "%H:%M:%S"


# CLASS =================================================================================

class LoggerManager:
    """Singleton managing the package logger hierarchy.

    Every module requests a child logger of the ``batchod`` root logger via
    :meth:`get_logger`. The root logger owns exactly one handler, so repeated
    configuration never duplicates output.

    Example
    -------
    .. code-block:: python

        from batchod.utils.logger import LoggerManager

        logger = LoggerManager().get_logger("estimation")
        logger.info("iteration %d", 3)

        # silence everything below WARNING
        LoggerManager().set_level(logging.WARNING)
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance


    def __init__(self):
        if LoggerManager._initialized:
            return

        self.root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.root_logger.propagate = False
        self._handler = None

        self.configure()
        LoggerManager._initialized = True


    def configure(
        self,
        enabled=True,
        output=None,
        level=logging.INFO,
        format=None,
        date_format=None,
        ):
        """(Re)configure the package root logger.

        Parameters
        ----------
        enabled : bool
            If ``False``, all package log records are dropped.
        output : str or stream, optional
            File path or text stream; defaults to ``sys.stdout``.
        level : int
            Logging level of the root logger.
        format : str, optional
            Record format string.
        date_format : str, optional
            Timestamp format string.
        """
        if self._handler is not None:
            self.root_logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

        self.root_logger.setLevel(level)

        if isinstance(output, str):
            handler = logging.FileHandler(output)
        else:
            handler = logging.StreamHandler(output if output is not None else sys.stdout)

        handler.setFormatter(
            logging.Formatter(
                format or _DEFAULT_FORMAT,
                datefmt=date_format or _DEFAULT_DATE_FORMAT,
                )
            )
        self.root_logger.addHandler(handler)
        self._handler = handler

        if not enabled:
            self.disable()


    def get_logger(self, name):
        """Return the child logger ``batchod.<name>``."""
        return self.root_logger.getChild(name)


    def set_level(self, level, module=None):
        """Set the level of the root logger or of a single child logger."""
        if module is None:
            self.root_logger.setLevel(level)
        else:
            self.get_logger(module).setLevel(level)


    def enable(self):
        """Re-enable output of the package handler."""
        if self._handler is not None:
            self._handler.setLevel(logging.NOTSET)


    def disable(self):
        """Drop all package log records at the handler."""
        if self._handler is not None:
            self._handler.setLevel(logging.CRITICAL + 1)
