"""Privilege relationship models.

Membership edges and default ACL entries are the dependency records that must
be severed before a principal can be dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MembershipDirection(Enum):
    """Direction of a membership edge relative to the principal."""

    MEMBER_OF = "member_of"  # principal is a member of `role`
    HAS_MEMBER = "has_member"  # `role` is a member of the principal


@dataclass(frozen=True)
class MembershipEdge:
    """Role membership edge.

    Attributes:
        principal: Name of the principal being torn down
        role: The other side of the edge
        direction: Whether the principal is the member or the granted role
    """

    principal: str
    role: str
    direction: MembershipDirection

    @property
    def granted_role(self) -> str:
        """Role being granted in this edge."""
        if self.direction == MembershipDirection.MEMBER_OF:
            return self.role
        return self.principal

    @property
    def member(self) -> str:
        """Role receiving the grant in this edge."""
        if self.direction == MembershipDirection.MEMBER_OF:
            return self.principal
        return self.role

    def describe(self) -> str:
        return f"{self.member} -> {self.granted_role}"


class DefaultACLObjectKind(Enum):
    """Object kinds a default ACL rule can apply to.

    Values are the single-character codes stored in the catalog.
    """

    TABLE = "r"
    SEQUENCE = "S"
    FUNCTION = "f"
    TYPE = "T"
    SCHEMA = "n"

    @classmethod
    def from_code(cls, code: str) -> DefaultACLObjectKind:
        """Resolve a catalog object-type code.

        Args:
            code: Single-character object type code

        Returns:
            Matching DefaultACLObjectKind

        Raises:
            ValueError: If the code is not a known object kind
        """
        try:
            return cls(code)
        except ValueError:
            raise ValueError(f"Unknown default ACL object type code: {code!r}")

    @property
    def keyword(self) -> str:
        """Plural object keyword used in ALTER DEFAULT PRIVILEGES."""
        return _KIND_KEYWORDS[self]

    @property
    def schema_scoped(self) -> bool:
        """Whether rules of this kind may be scoped to a schema."""
        return self is not DefaultACLObjectKind.SCHEMA


_KIND_KEYWORDS = {
    DefaultACLObjectKind.TABLE: "TABLES",
    DefaultACLObjectKind.SEQUENCE: "SEQUENCES",
    DefaultACLObjectKind.FUNCTION: "FUNCTIONS",
    DefaultACLObjectKind.TYPE: "TYPES",
    DefaultACLObjectKind.SCHEMA: "SCHEMAS",
}


@dataclass(frozen=True)
class DefaultACLEntry:
    """Default ACL rule referencing a principal.

    Keyed by (granting role, schema-or-global, object kind). Each key tuple
    must be revoked individually.

    Attributes:
        principal: Name of the principal referenced by the rule
        grantor: Role whose future objects the rule applies to
        object_kind: Object kind the rule applies to
        schema: Schema the rule is scoped to, None for a global rule
    """

    principal: str
    grantor: str
    object_kind: DefaultACLObjectKind
    schema: Optional[str] = None

    def describe(self) -> str:
        scope = f"schema {self.schema}" if self.schema else "global"
        return f"{self.grantor}/{scope}/{self.object_kind.keyword.lower()}"
