"""Logging setup for the command line.

Library modules only create ``logging.getLogger(__name__)`` loggers;
handlers are attached here, once, by the ``intershell`` command.
"""

from __future__ import annotations

import logging
import sys

_LOGGER_NAME = "intershell"


def configure_logging(level: int = logging.WARNING) -> logging.Logger:
    """Route ``intershell.*`` records to stderr through Rich.

    Falls back to a plain :class:`logging.StreamHandler` when Rich is
    not installed.  Calling it again replaces the previous handler.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler: logging.Handler
    try:
        from rich.console import Console
        from rich.logging import RichHandler
    except ModuleNotFoundError:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
