"""Default ACL scrubber phase."""

from __future__ import annotations

from typing import Callable

from ...db.inspector import DependencyInspector
from ...models.principal import CredentialPrincipal
from ...models.privilege import DefaultACLEntry, DefaultACLObjectKind
from ...models.teardown_result import Phase, PhaseResult
from .base import TeardownPhase


class DefaultACLScrubPhase(TeardownPhase):
    """Revoke default privilege rules that auto-grant future objects to the principal.

    Each rule is revoked for its exact (grantor, schema-or-global, object kind)
    key. Dispatch is per object kind; rules on schemas only exist globally.
    """

    dependency_label = "default privilege rule(s)"

    def __init__(self) -> None:
        self.handlers: dict[DefaultACLObjectKind, Callable[[DependencyInspector, DefaultACLEntry], None]] = {
            DefaultACLObjectKind.TABLE: self._revoke_scoped,
            DefaultACLObjectKind.SEQUENCE: self._revoke_scoped,
            DefaultACLObjectKind.FUNCTION: self._revoke_scoped,
            DefaultACLObjectKind.TYPE: self._revoke_scoped,
            DefaultACLObjectKind.SCHEMA: self._revoke_global_only,
        }

    @property
    def phase(self) -> Phase:
        return Phase.DEFAULT_ACL_SCRUB

    def _apply(self, inspector: DependencyInspector, principal: CredentialPrincipal) -> PhaseResult:
        entries = inspector.list_default_acl_entries(principal.name)
        return self._apply_each(
            principal,
            entries,
            lambda entry: self.handlers[entry.object_kind](inspector, entry),
            lambda entry: entry.describe(),
            lambda: len(inspector.list_default_acl_entries(principal.name)),
        )

    def _revoke_scoped(self, inspector: DependencyInspector, entry: DefaultACLEntry) -> None:
        inspector.revoke_default_acl(entry)

    def _revoke_global_only(self, inspector: DependencyInspector, entry: DefaultACLEntry) -> None:
        if entry.schema is not None:
            raise ValueError(f"Default privileges on {entry.object_kind.keyword} cannot be scoped to a schema")
        inspector.revoke_default_acl(entry)
