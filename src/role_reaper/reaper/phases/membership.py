"""Membership unlink phase."""

from __future__ import annotations

from ...db.inspector import DependencyInspector
from ...models.principal import CredentialPrincipal
from ...models.teardown_result import Phase, PhaseResult
from .base import TeardownPhase


class MembershipUnlinkPhase(TeardownPhase):
    """Sever membership edges in both directions.

    Detaches the principal from every role it is a member of, and detaches
    every role that is a member of the principal. A role participating in
    any membership edge cannot be dropped.
    """

    dependency_label = "membership edge(s)"

    @property
    def phase(self) -> Phase:
        return Phase.MEMBERSHIP_UNLINK

    def _apply(self, inspector: DependencyInspector, principal: CredentialPrincipal) -> PhaseResult:
        edges = inspector.list_memberships(principal.name)
        return self._apply_each(
            principal,
            edges,
            inspector.revoke_membership,
            lambda edge: edge.describe(),
            lambda: len(inspector.list_memberships(principal.name)),
        )
