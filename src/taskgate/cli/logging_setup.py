"""Logging configuration for the taskgate command line."""

from __future__ import annotations

import logging
import os

_FORMAT_CONSOLE = "%(levelname)-8s | %(name)s | %(message)s"
_FORMAT_FILE = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(
    logger_name: str = "taskgate",
    log_file: str | None = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure dual-handler logging (console + file).

    Library modules log under "taskgate.*", so configuring the parent
    logger covers all of them.

    Args:
        logger_name: Name of the logger to configure
        log_file: Path to log file (None for no file logging)
        verbose: Enable DEBUG level on console (default WARNING, so command
            output is not interleaved with routine INFO records)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(_FORMAT_CONSOLE))
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(_FORMAT_FILE, datefmt="%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
