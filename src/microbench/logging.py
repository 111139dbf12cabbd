"""Logging setup for microbench.

The library only ever logs under the ``microbench`` namespace and never
installs handlers itself; the CLI calls :func:`setup_logging` to get
console output and, optionally, a DEBUG-level log file.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "microbench"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the ``microbench`` logger.

    Args:
        verbose: Show DEBUG messages (per-iteration progress) on the console.
        quiet: Only show warnings and errors.  Ignored if *verbose* is True.
        log_file: Also write every record, at DEBUG, to this file.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Reconfiguring replaces whatever a previous call installed.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    if verbose:
        console.setLevel(logging.DEBUG)
    elif quiet:
        console.setLevel(logging.WARNING)
    else:
        console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the child logger ``microbench.<name>``."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
