"""Logging setup for the extdeploy CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "extdeploy"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stderr RichHandler to the package logger (idempotent)."""
    logger = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
