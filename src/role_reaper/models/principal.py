"""Credential principal model.

A leased database role issued by an external secret manager.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass
class CredentialPrincipal:
    """Credential principal entity.

    Represents one leased role as seen in the role catalog. Principals are
    created by the secret manager, discovered by the reaper and destroyed by
    the final removal phase.

    Attributes:
        name: Role name (unique, encodes the family tag)
        valid_until: Lease expiry timestamp, None for roles without an expiry
    """

    name: str
    valid_until: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate principal fields after initialization."""
        if not self.name:
            raise ValueError("Principal name cannot be empty")

    def is_expired(self, now: datetime) -> bool:
        """Check whether the lease expired strictly before ``now``.

        Principals without an expiry are never expired: absence of an expiry
        means the role is not managed by the reaper.

        Args:
            now: Reference timestamp

        Returns:
            True if valid_until is set and strictly in the past
        """
        if self.valid_until is None:
            return False

        valid_until = self.valid_until
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        return valid_until < now

    def to_dict(self) -> dict[str, Any]:
        """Convert principal to dictionary representation."""
        return {
            "name": self.name,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
        }
