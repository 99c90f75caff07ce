"""Teardown phases, applied to each principal in a fixed dependency order.

Classes:
    TeardownPhase: Base class for all phases
    MembershipUnlinkPhase: Phase 1, membership edges in both directions
    DefaultACLScrubPhase: Phase 2, default privilege rules
    DatabasePrivilegePhase: Phase 3, database-level grants
    SchemaPrivilegePhase: Phase 4, schema and object grants
    FinalRemovalPhase: Phase 5, ownership transfer and role drop
"""

from __future__ import annotations

from .base import TeardownPhase
from .database_privileges import DatabasePrivilegePhase
from .default_acl import DefaultACLScrubPhase
from .final_removal import FinalRemovalPhase
from .membership import MembershipUnlinkPhase
from .schema_privileges import SchemaPrivilegePhase

__all__ = [
    "TeardownPhase",
    "MembershipUnlinkPhase",
    "DefaultACLScrubPhase",
    "DatabasePrivilegePhase",
    "SchemaPrivilegePhase",
    "FinalRemovalPhase",
    "default_phases",
]


def default_phases(custodian_role: str) -> list[TeardownPhase]:
    """Build the standard five phases in execution order.

    Args:
        custodian_role: Role receiving reassigned ownership

    Returns:
        Phase instances ordered membership, default ACL, database, schema, final removal
    """
    return [
        MembershipUnlinkPhase(),
        DefaultACLScrubPhase(),
        DatabasePrivilegePhase(),
        SchemaPrivilegePhase(),
        FinalRemovalPhase(custodian_role),
    ]
