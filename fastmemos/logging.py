"""
FastMemos Logging - Logger factory with rich console output.
"""
from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "fastmemos"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the fastmemos namespace."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """
    Attach a RichHandler to the fastmemos logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def redact(token: Optional[str]) -> str:
    """Render a secret for logs: never more than its last 4 characters."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "****"
    return f"****{token[-4:]}"
