"""Logging setup for rulebench.

Reports go to stdout, so every log record goes to stderr: a JSON report
piped into another tool stays parseable whatever the verbosity.  An
optional file handler always records DEBUG, which includes the
per-sample timing summaries.

Library modules log through the ``rulebench`` logger (or a child from
``get_logger``) and never print.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "rulebench"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def reset_logging() -> None:
    """Detach and close every handler installed by ``setup_logging``."""
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the rulebench logger.

    Args:
        verbose: Show DEBUG records on the console.
        quiet: Only show warnings and errors. Ignored if *verbose* is True.
        log_file: Also log at DEBUG level to this path; its parent
            directory is created if needed.

    Returns:
        The configured ``rulebench`` logger.
    """
    reset_logging()
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_console_level(verbose, quiet))
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger ``rulebench.<name>``."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
