"""
Logging for ulpcn.

Every logger lives under the ``ulpcn`` namespace and propagates to a single
Rich handler on the package logger, so one verbosity switch covers the CLI
commands and the processing stages alike.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE = "ulpcn"


def package_logger() -> logging.Logger:
    """The ``ulpcn`` logger, with its Rich handler attached on first use."""
    logger = logging.getLogger(PACKAGE)
    if not logger.handlers:
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
        logger.setLevel(logging.INFO)
    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Logger for a command or stage, namespaced under ``ulpcn``.

    Args:
        name: Short name ('correct', 'build-pon') or a full 'ulpcn.*' name
        level: Optional level for this logger alone (DEBUG, INFO, ...)
    """
    package_logger()
    if name != PACKAGE and not name.startswith(f"{PACKAGE}."):
        name = f"{PACKAGE}.{name}"
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def set_verbose(logger: logging.Logger, verbose: bool = True) -> None:
    """Switch the whole ``ulpcn`` tree to DEBUG when `verbose` is set."""
    if verbose:
        package_logger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")
