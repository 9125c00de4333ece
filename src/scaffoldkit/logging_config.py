"""Logging setup for command-line entrypoints.

Modules only do ``logger = logging.getLogger(__name__)``; this is called once
at startup. Level precedence: explicit argument > ``SCAFFOLDKIT_LOG_LEVEL`` >
``WARNING``.
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str | None = None) -> int:
    """Install a rich stderr handler on the root logger.

    Returns:
        The numeric level in effect
    """
    name = (level or os.environ.get("SCAFFOLDKIT_LOG_LEVEL") or "WARNING").upper()
    numeric_level = logging.getLevelName(name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=numeric_level <= logging.DEBUG,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    return numeric_level
