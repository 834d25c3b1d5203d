"""Logging setup helpers using Rich."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "jsonmirror"


def setup_logging(level: str = "INFO", force_terminal: bool = True) -> None:
    """Configure logging to use Rich's console rendering."""
    console = Console(force_terminal=force_terminal, stderr=True)
    handler = RichHandler(
        console=console,
        rich_tracebacks=False,
        show_level=True,
        show_time=True,
        show_path=False,
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if name and not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name or ROOT_LOGGER)
