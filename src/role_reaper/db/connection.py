"""PostgreSQL connection setup."""

from __future__ import annotations

import logging
from typing import Optional

import psycopg
from psycopg.rows import dict_row

logger = logging.getLogger(__name__)


def build_options(
    statement_timeout_ms: Optional[int] = None,
    lock_timeout_ms: Optional[int] = None,
) -> Optional[str]:
    """Build the libpq ``options`` string for session timeouts.

    Args:
        statement_timeout_ms: statement_timeout for the session (optional)
        lock_timeout_ms: lock_timeout for the session (optional)

    Returns:
        Options string, or None if no timeout was requested
    """
    settings = []
    if statement_timeout_ms is not None:
        settings.append(f"-c statement_timeout={int(statement_timeout_ms)}")
    if lock_timeout_ms is not None:
        settings.append(f"-c lock_timeout={int(lock_timeout_ms)}")
    return " ".join(settings) if settings else None


def connect(
    dsn: Optional[str] = None,
    application_name: str = "role-reaper",
    statement_timeout_ms: Optional[int] = None,
    lock_timeout_ms: Optional[int] = None,
    connect_timeout: int = 10,
) -> psycopg.Connection:
    """Open an autocommit connection for catalog inspection and teardown.

    Every teardown statement runs in its own implicit transaction so a failed
    statement never poisons the statements that follow it.

    Args:
        dsn: libpq connection string (optional, falls back to PG* environment)
        application_name: application_name reported to the server
        statement_timeout_ms: Session statement timeout from the execution context
        lock_timeout_ms: Session lock timeout from the execution context
        connect_timeout: Connection timeout in seconds

    Returns:
        Open psycopg connection with dict rows

    Raises:
        psycopg.OperationalError: If the server cannot be reached
    """
    kwargs = {
        "application_name": application_name,
        "connect_timeout": connect_timeout,
        "autocommit": True,
        "row_factory": dict_row,
    }
    options = build_options(statement_timeout_ms, lock_timeout_ms)
    if options:
        kwargs["options"] = options

    try:
        conn = psycopg.connect(dsn or "", **kwargs)
    except psycopg.OperationalError as e:
        logger.error(f"Failed to connect to PostgreSQL: {e}")
        raise

    logger.debug(f"Connected to database {conn.info.dbname} as {conn.info.user}")
    return conn
