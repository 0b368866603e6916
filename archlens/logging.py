"""Logging utilities for archlens commands."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "archlens"

_CONSOLE_FORMAT = "[archlens] %(levelname)s %(message)s"
# Agents and source resolvers run on worker threads; verbose output names them.
_VERBOSE_CONSOLE_FORMAT = "[archlens] %(levelname)s %(threadName)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"

# pypdf reports recoverable syntax problems in documentation PDFs at WARNING.
_QUIET_LIBRARIES = ("pypdf",)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the archlens hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the archlens logger with console output and an optional file sink.

    The file sink always records DEBUG so a quiet console run can still be
    diagnosed afterwards.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter(_VERBOSE_CONSOLE_FORMAT if verbose else _CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING if verbose else logging.ERROR)

    return logger


__all__ = ["configure_logging", "get_logger"]
