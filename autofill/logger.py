"""
Logging setup for the autofill package.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "autofill"


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """Install a rich handler on the package logger.

    Verbose mode enables per-field diagnostics (search text, strategy, confidence,
    read-backs); otherwise only warnings and errors are shown.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console,
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
