"""Ownership transfer and final removal phase."""

from __future__ import annotations

import logging

from ...db.inspector import DependencyInspector
from ...models.principal import CredentialPrincipal
from ...models.teardown_result import Phase, PhaseResult
from ..errors import describe_exception
from .base import TeardownPhase

logger = logging.getLogger(__name__)

# SQLSTATE undefined_object: the role was removed concurrently
UNDEFINED_OBJECT = "42704"


class FinalRemovalPhase(TeardownPhase):
    """Reassign owned objects, drop residuals, then drop the principal.

    Ownership transfer and the residual drop are best-effort steps: their
    failures are kept as warnings because the role drop itself is the only
    thing that decides success. A principal that no longer exists counts as
    removed.

    Attributes:
        custodian_role: Pre-existing role receiving reassigned ownership
    """

    def __init__(self, custodian_role: str) -> None:
        if not custodian_role:
            raise ValueError("custodian_role cannot be empty")
        self.custodian_role = custodian_role

    @property
    def phase(self) -> Phase:
        return Phase.FINAL_REMOVAL

    def _apply(self, inspector: DependencyInspector, principal: CredentialPrincipal) -> PhaseResult:
        name = principal.name

        if not inspector.principal_exists(name):
            logger.info(f"Principal {name} already removed")
            return PhaseResult.ok(self.phase, already_gone=True)

        warnings = []
        changes = 0

        try:
            owned = inspector.count_owned_objects(name)
            inspector.reassign_owned(name, self.custodian_role)
            changes = owned
        except Exception as e:
            _, message = describe_exception(e)
            warnings.append(f"ownership transfer: {message}")

        try:
            inspector.drop_owned(name)
        except Exception as e:
            _, message = describe_exception(e)
            warnings.append(f"drop owned: {message}")

        try:
            inspector.drop_principal(name)
        except Exception as e:
            error_code, message = describe_exception(e)
            if error_code == UNDEFINED_OBJECT:
                logger.info(f"Principal {name} removed concurrently")
                return PhaseResult.ok(self.phase, changes=changes, already_gone=True, warnings=warnings)
            return PhaseResult.failed(
                self.phase,
                message,
                error_code=error_code,
                changes=changes,
                warnings=warnings,
            )

        return PhaseResult.ok(self.phase, changes=changes, warnings=warnings)
