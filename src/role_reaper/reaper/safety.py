"""Safety checks for principals that must never be reaped."""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Optional

from ..models.principal import CredentialPrincipal


class SafetyChecker:
    """Safety checker for principal protection evaluation.

    The custodian role is always protected; additional roles are protected by
    fnmatch-style glob patterns (e.g. ``"v-kubernet-migratio-keep-*"``).

    Attributes:
        custodian_role: Role receiving reassigned ownership
        protected_patterns: Glob patterns of protected role names
    """

    def __init__(self, custodian_role: Optional[str] = None, protected_patterns: Optional[list[str]] = None) -> None:
        """Initialize safety checker.

        Args:
            custodian_role: Custodian role name (optional)
            protected_patterns: Glob patterns of role names never to reap (optional)
        """
        self.custodian_role = custodian_role
        self.protected_patterns = list(protected_patterns or [])

    def is_protected(self, principal: CredentialPrincipal) -> tuple[bool, Optional[str]]:
        """Check if a principal is protected.

        Args:
            principal: Candidate principal

        Returns:
            Tuple of (is_protected, reason)
                is_protected: True if the principal must not be reaped
                reason: Human-readable reason, None if not protected
        """
        if self.custodian_role and principal.name == self.custodian_role:
            return True, f"{principal.name} is the custodian role"

        for pattern in self.protected_patterns:
            if fnmatchcase(principal.name, pattern):
                return True, f"{principal.name} matches protected pattern {pattern!r}"

        return False, None
