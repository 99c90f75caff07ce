"""Lease summary model for per-family expiry statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class LeaseSummary:
    """Expiry statistics for one family of leased roles.

    Only roles with a non-null expiry are counted.

    Attributes:
        family: Family tag extracted from the role name
        total_roles: Number of roles in the family
        expired: Roles whose lease already expired
        active: Roles whose lease has not expired yet
        expiring_soon: Roles expiring within the look-ahead window (includes expired)
        oldest_expiry: Earliest expiry in the family
        newest_expiry: Latest expiry in the family
        checked_at: Catalog timestamp of the query
    """

    family: str
    total_roles: int
    expired: int
    active: int
    expiring_soon: int
    oldest_expiry: Optional[datetime] = None
    newest_expiry: Optional[datetime] = None
    checked_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "family": self.family,
            "total_roles": self.total_roles,
            "expired": self.expired,
            "active": self.active,
            "expiring_soon": self.expiring_soon,
            "oldest_expiry": self.oldest_expiry.isoformat() if self.oldest_expiry else None,
            "newest_expiry": self.newest_expiry.isoformat() if self.newest_expiry else None,
            "checked_at": self.checked_at.isoformat() if self.checked_at else None,
        }
