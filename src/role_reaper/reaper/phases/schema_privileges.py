"""Schema and object privilege revoker phase."""

from __future__ import annotations

import logging

from ...db.inspector import DependencyInspector
from ...models.principal import CredentialPrincipal
from ...models.teardown_result import Phase, PhaseResult
from ..errors import describe_exception
from .base import TeardownPhase

logger = logging.getLogger(__name__)


class SchemaPrivilegePhase(TeardownPhase):
    """Revoke schema usage and all table, sequence and function privileges.

    Runs once per non-system schema. A failure in one schema is recorded and
    the loop carries on with the remaining schemas. Progress is the
    drop in the principal's grant count across the phase.
    """

    dependency_label = "schema/object privilege(s)"

    @property
    def phase(self) -> Phase:
        return Phase.SCHEMA_PRIVILEGES

    def _apply(self, inspector: DependencyInspector, principal: CredentialPrincipal) -> PhaseResult:
        grants_before = inspector.count_schema_object_grants(principal.name)
        if grants_before == 0:
            return PhaseResult.ok(self.phase)

        failures = []
        error_code = None
        for schema in inspector.list_schemas():
            try:
                inspector.revoke_schema_privileges(schema, principal.name)
            except Exception as e:
                code, message = describe_exception(e)
                error_code = error_code or code
                failures.append(f"schema {schema}: {message}")
                logger.debug(f"Revoke in schema {schema} failed for {principal.name}: {message}")

        return self._settle(
            principal,
            grants_before,
            lambda: inspector.count_schema_object_grants(principal.name),
            failures,
            error_code,
        )
