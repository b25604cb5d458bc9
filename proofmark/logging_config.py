"""Logging setup for applications embedding ProofMark.

Library modules only call ``logging.getLogger(__name__)``. An application
calls :meth:`LoggingConfig.setup_logging` once to get a rotating log file
and console output for the ``proofmark`` logger tree, and may attach a
:class:`QtLogHandler` so a QML log pane can show records as they arrive.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

from PySide6.QtCore import QObject, Signal

PACKAGE_LOGGER = "proofmark"
LOG_FILE_NAME = "proofmark.log"
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SHORT_FORMAT = "[%(levelname)s] %(message)s"

Level = Union[int, str]


def _level(value: Level) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return resolved


class LoggingConfig:
    """Installs and removes the handlers of the ``proofmark`` logger."""

    _initialized = False
    _log_file_path: Optional[Path] = None
    _installed: List[logging.Handler] = []
    _signal_handler: Optional["QtLogHandler"] = None

    @classmethod
    def package_logger(cls) -> logging.Logger:
        return logging.getLogger(PACKAGE_LOGGER)

    @classmethod
    def setup_logging(cls, log_dir: Union[str, Path], console_level: Level = logging.INFO) -> None:
        """Write DEBUG records to ``log_dir/proofmark.log`` and echo to stderr.

        Later calls are ignored until :meth:`shutdown`.
        """
        if cls._initialized:
            return

        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        cls._log_file_path = log_dir / LOG_FILE_NAME

        file_handler = RotatingFileHandler(
            cls._log_file_path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(_level(console_level))
        console_handler.setFormatter(logging.Formatter(SHORT_FORMAT))

        logger = cls.package_logger()
        logger.setLevel(logging.DEBUG)
        for handler in (file_handler, console_handler):
            logger.addHandler(handler)
        cls._installed = [file_handler, console_handler]
        cls._initialized = True
        logger.info("Logging to %s", cls._log_file_path)

    @classmethod
    def shutdown(cls) -> None:
        """Detach and close everything :meth:`setup_logging` installed."""
        logger = cls.package_logger()
        for handler in cls._installed:
            logger.removeHandler(handler)
            handler.close()
        cls._installed = []
        cls._initialized = False
        cls._log_file_path = None
        logger.setLevel(logging.NOTSET)

    @classmethod
    def add_signal_handler(cls, log_level: Level = "DEBUG") -> "QtLogHandler":
        """Replace the current signal handler with a fresh one and return it."""
        cls.remove_signal_handler()
        handler = QtLogHandler()
        handler.setLevel(_level(log_level))
        handler.setFormatter(logging.Formatter(SHORT_FORMAT))
        cls.package_logger().addHandler(handler)
        cls._signal_handler = handler
        return handler

    @classmethod
    def remove_signal_handler(cls) -> None:
        if cls._signal_handler is not None:
            cls.package_logger().removeHandler(cls._signal_handler)
            cls._signal_handler = None

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        return logging.getLogger(name)

    @classmethod
    def get_log_file_path(cls) -> Optional[Path]:
        return cls._log_file_path


class QtLogHandler(QObject, logging.Handler):
    """Re-emits formatted records through ``logEmitted`` for QML bindings."""

    logEmitted = Signal(str)

    def __init__(self):
        QObject.__init__(self)
        logging.Handler.__init__(self)

    def emit(self, record):
        try:
            self.logEmitted.emit(self.format(record))
        except Exception:
            self.handleError(record)


__all__ = ["LoggingConfig", "QtLogHandler"]
