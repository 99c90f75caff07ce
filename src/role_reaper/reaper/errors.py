"""Reaper error taxonomy.

Only discovery failures are raised as exceptions; phase and final removal
failures are carried as records in teardown results (see
``role_reaper.models.teardown_result``).
"""

from __future__ import annotations

from typing import Optional

from ..models.teardown_result import FinalRemovalError, PhaseError

__all__ = [
    "DiscoveryError",
    "FinalRemovalError",
    "PhaseError",
    "ReaperError",
    "describe_exception",
]


class ReaperError(Exception):
    """Base class for reaper errors."""


class DiscoveryError(ReaperError):
    """Catalog query for one family failed.

    Fatal only to that family: the family is still reported with no attempts.
    """

    def __init__(self, family: str, message: str, error_code: Optional[str] = None) -> None:
        self.family = family
        self.message = message
        self.error_code = error_code
        super().__init__(f"Discovery failed for family '{family}': {message}")


def describe_exception(exc: BaseException) -> tuple[Optional[str], str]:
    """Extract an error code and a one-line message from an exception.

    Database errors carry their SQLSTATE and the server's primary message;
    anything else is reported by class name.

    Args:
        exc: Exception to describe

    Returns:
        Tuple of (error_code, message)
    """
    sqlstate = getattr(exc, "sqlstate", None)
    diag = getattr(exc, "diag", None)
    message = getattr(diag, "message_primary", None) if diag is not None else None

    if not message:
        message = str(exc).strip().splitlines()[0] if str(exc).strip() else exc.__class__.__name__

    return (sqlstate or exc.__class__.__name__, message)
