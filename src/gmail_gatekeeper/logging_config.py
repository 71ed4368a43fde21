"""Logging setup shared by the CLI commands."""

from __future__ import annotations

import logging
import os

from rich.logging import RichHandler

from gmail_gatekeeper.constants import LOG_LEVEL_ENV_VAR
from gmail_gatekeeper.display import console


def configure_logging(level: str | None = None) -> int:
    """Route log records to the shared rich console; returns the level used."""
    level_name = (level or os.getenv(LOG_LEVEL_ENV_VAR, "INFO")).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # discovery cache and transport noise
    logging.getLogger("googleapiclient").setLevel(max(numeric_level, logging.WARNING))
    return numeric_level
