"""Logging configuration for the CLI."""

from __future__ import annotations

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str = "WARNING", verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure root logging.

    Progress and warning lines go to stderr so report output on stdout stays
    clean for piping.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        verbose: Include timestamps and logger names, and show driver debug output
        log_file: Also write log lines to this file (optional)
    """
    numeric_level = getattr(logging, (level or "WARNING").upper(), logging.WARNING)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=VERBOSE_FORMAT if verbose else DEFAULT_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )

    # psycopg is chatty at DEBUG; keep it quiet unless asked for
    if not verbose:
        logging.getLogger("psycopg").setLevel(max(numeric_level, logging.WARNING))
