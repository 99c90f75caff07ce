"""Database-level privilege revoker phase."""

from __future__ import annotations

from ...db.inspector import DependencyInspector
from ...models.principal import CredentialPrincipal
from ...models.teardown_result import Phase, PhaseResult
from ..errors import describe_exception
from .base import TeardownPhase


class DatabasePrivilegePhase(TeardownPhase):
    """Revoke all privileges the principal holds directly on the database."""

    dependency_label = "database privilege(s)"

    @property
    def phase(self) -> Phase:
        return Phase.DATABASE_PRIVILEGES

    def _apply(self, inspector: DependencyInspector, principal: CredentialPrincipal) -> PhaseResult:
        grants = inspector.count_database_grants(principal.name)
        if grants == 0:
            return PhaseResult.ok(self.phase)

        failures = []
        error_code = None
        try:
            inspector.revoke_database_privileges(principal.name)
        except Exception as e:
            error_code, message = describe_exception(e)
            failures.append(message)

        return self._settle(
            principal,
            grants,
            lambda: inspector.count_database_grants(principal.name),
            failures,
            error_code,
        )
