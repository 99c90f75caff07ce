"""Tests for the five teardown phases.

Test coverage for each phase against the in-memory catalog: happy path,
idempotent re-run, per-item failure isolation and error reporting.
"""

from __future__ import annotations

import psycopg.errors
import pytest

from role_reaper.models.principal import CredentialPrincipal
from role_reaper.models.privilege import DefaultACLObjectKind
from role_reaper.models.teardown_result import Phase
from role_reaper.reaper.phases import (
    DatabasePrivilegePhase,
    DefaultACLScrubPhase,
    FinalRemovalPhase,
    MembershipUnlinkPhase,
    SchemaPrivilegePhase,
    default_phases,
)
from tests.fixtures.catalog import InMemoryCatalog, expired


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Create catalog with one expired leased role carrying every dependency kind."""
    return InMemoryCatalog()


@pytest.fixture
def principal(catalog: InMemoryCatalog) -> CredentialPrincipal:
    name = catalog.add_leased_role("svc_user", "a1", expired())
    return CredentialPrincipal(name=name, valid_until=expired())


def test_default_phases_in_order() -> None:
    """Test the standard phase list covers every phase once, in order."""
    phases = default_phases("platformv2")

    assert [p.phase for p in phases] == list(Phase)


class TestMembershipUnlinkPhase:
    """Test suite for MembershipUnlinkPhase."""

    def test_unlinks_both_directions(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        """Test edges where the principal is member and where it is the granted role are severed."""
        catalog.add_role("v-kubernet-helper")
        catalog.memberships.add((principal.name, "v-kubernet-helper"))

        result = MembershipUnlinkPhase().execute(catalog, principal)

        assert result.success is True
        assert result.changes == 2
        assert catalog.memberships == set()

    def test_noop_when_no_memberships(self, catalog: InMemoryCatalog) -> None:
        name = catalog.add_leased_role("svc_user", "bare", expired(), with_dependencies=False)

        result = MembershipUnlinkPhase().execute(catalog, CredentialPrincipal(name=name))

        assert result.success is True
        assert result.made_progress is False

    def test_listing_failure_becomes_failed_result(
        self, catalog: InMemoryCatalog, principal: CredentialPrincipal
    ) -> None:
        """Test a catalog error is converted, never raised."""
        catalog.fail("list_memberships", principal.name)

        result = MembershipUnlinkPhase().execute(catalog, principal)

        assert result.success is False
        assert result.error_code == "42501"
        assert "permission denied" in result.error_message

    def test_continues_past_single_edge_failure(self, catalog: InMemoryCatalog) -> None:
        """Test one failing edge does not stop the remaining edges."""
        catalog.add_role("app_readonly")
        name = catalog.add_leased_role("svc_user", "b2", expired())
        catalog.memberships.add(("app_readonly", name))

        original = catalog.revoke_membership

        def flaky_revoke(edge):
            if edge.role == "app_readonly":
                raise psycopg.errors.InsufficientPrivilege("must have admin option on role")
            original(edge)

        catalog.revoke_membership = flaky_revoke

        result = MembershipUnlinkPhase().execute(catalog, CredentialPrincipal(name=name))

        assert result.success is False
        assert result.changes == 1
        assert "app_readonly" in result.error_message
        assert ("app_readwrite", name) not in catalog.memberships

    def test_revoke_that_removes_nothing_is_not_progress(
        self, catalog: InMemoryCatalog, principal: CredentialPrincipal
    ) -> None:
        """Test an accepted REVOKE that leaves the edge in place counts no change."""
        catalog.ignore("revoke_membership")

        result = MembershipUnlinkPhase().execute(catalog, principal)

        assert result.success is False
        assert result.changes == 0
        assert result.made_progress is False
        assert result.error_message == "1 membership edge(s) still held after revoke"


class TestDefaultACLScrubPhase:
    """Test suite for DefaultACLScrubPhase."""

    def test_scrubs_every_rule(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        catalog.default_acls.add(("platformv2", None, DefaultACLObjectKind.SEQUENCE, principal.name))
        catalog.default_acls.add(("platformv2", None, DefaultACLObjectKind.SCHEMA, principal.name))

        result = DefaultACLScrubPhase().execute(catalog, principal)

        assert result.success is True
        assert result.changes == 3
        assert catalog.default_acls == set()

    def test_rerun_is_noop(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        phase = DefaultACLScrubPhase()
        phase.execute(catalog, principal)

        result = phase.execute(catalog, principal)

        assert result.success is True
        assert result.changes == 0

    def test_schema_rule_scoped_to_schema_rejected(
        self, catalog: InMemoryCatalog, principal: CredentialPrincipal
    ) -> None:
        """Test a schema-kind rule carrying a schema is reported, other rules still revoked."""
        catalog.default_acls.add(("platformv2", "public", DefaultACLObjectKind.SCHEMA, principal.name))

        result = DefaultACLScrubPhase().execute(catalog, principal)

        assert result.success is False
        assert result.changes == 1
        assert "cannot be scoped to a schema" in result.error_message
        assert result.error_code == "ValueError"

    def test_revoke_failure_reported(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        catalog.fail("revoke_default_acl", principal.name)

        result = DefaultACLScrubPhase().execute(catalog, principal)

        assert result.success is False
        assert result.made_progress is False
        assert result.error_message.startswith("platformv2/schema public/tables:")

    def test_ignored_revoke_leaves_rule_and_reports_it(
        self, catalog: InMemoryCatalog, principal: CredentialPrincipal
    ) -> None:
        catalog.ignore("revoke_default_acl")

        result = DefaultACLScrubPhase().execute(catalog, principal)

        assert result.success is False
        assert result.changes == 0
        assert "still held" in result.error_message
        assert len(catalog.default_acls) == 1


class TestDatabasePrivilegePhase:
    """Test suite for DatabasePrivilegePhase."""

    def test_revokes_grants(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        result = DatabasePrivilegePhase().execute(catalog, principal)

        assert result.success is True
        assert result.changes == 1
        assert principal.name not in catalog.database_grants

    def test_skips_revoke_without_grants(self, catalog: InMemoryCatalog) -> None:
        name = catalog.add_leased_role("svc_user", "bare", expired(), with_dependencies=False)

        result = DatabasePrivilegePhase().execute(catalog, CredentialPrincipal(name=name))

        assert result.success is True
        assert ("revoke_database_privileges", name) not in catalog.calls

    def test_failure(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        catalog.fail("revoke_database_privileges", principal.name)

        result = DatabasePrivilegePhase().execute(catalog, principal)

        assert result.success is False
        assert result.changes == 0
        assert result.error_code == "42501"

    def test_ignored_revoke_is_not_progress(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        catalog.ignore("revoke_database_privileges")

        result = DatabasePrivilegePhase().execute(catalog, principal)

        assert result.success is False
        assert result.changes == 0
        assert result.error_message == "1 database privilege(s) still held after revoke"
        assert catalog.database_grants[principal.name] == 1


class TestSchemaPrivilegePhase:
    """Test suite for SchemaPrivilegePhase."""

    def test_revokes_in_every_schema(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        catalog.schemas.append("reporting")
        catalog.schema_grants[("reporting", principal.name)] = 2

        result = SchemaPrivilegePhase().execute(catalog, principal)

        assert result.success is True
        assert result.changes == 5
        assert catalog.count_schema_object_grants(principal.name) == 0

    def test_one_schema_failure_does_not_stop_others(
        self, catalog: InMemoryCatalog, principal: CredentialPrincipal
    ) -> None:
        """Test a failing schema is reported while later schemas are still revoked."""
        catalog.schemas.append("reporting")
        catalog.schema_grants[("reporting", principal.name)] = 2
        catalog.fail("revoke_schema_privileges", "public")

        result = SchemaPrivilegePhase().execute(catalog, principal)

        assert result.success is False
        assert result.changes == 2
        assert result.error_message.startswith("schema public:")
        assert ("reporting", principal.name) not in catalog.schema_grants

    def test_changes_come_from_recount(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        """Test grants the server silently keeps are not counted as revoked."""
        catalog.ignore("revoke_schema_privileges")

        result = SchemaPrivilegePhase().execute(catalog, principal)

        assert result.success is False
        assert result.made_progress is False
        assert result.error_message == "3 schema/object privilege(s) still held after revoke"

    def test_recount_failure_reported(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        original = catalog.count_schema_object_grants
        counts = []

        def count_once(name):
            if counts:
                raise psycopg.errors.QueryCanceled("canceling statement due to lock timeout")
            counts.append(name)
            return original(name)

        catalog.count_schema_object_grants = count_once

        result = SchemaPrivilegePhase().execute(catalog, principal)

        assert result.success is False
        assert result.changes == 0
        assert result.error_code == "57014"
        assert result.error_message.startswith("recount:")

    def test_noop_without_grants(self, catalog: InMemoryCatalog) -> None:
        name = catalog.add_leased_role("svc_user", "bare", expired(), with_dependencies=False)

        result = SchemaPrivilegePhase().execute(catalog, CredentialPrincipal(name=name))

        assert result.success is True
        assert ("revoke_schema_privileges", name) not in catalog.calls


class TestFinalRemovalPhase:
    """Test suite for FinalRemovalPhase."""

    def test_requires_custodian(self) -> None:
        with pytest.raises(ValueError, match="custodian_role"):
            FinalRemovalPhase("")

    def test_drops_after_reassigning_ownership(self, catalog: InMemoryCatalog) -> None:
        name = catalog.add_leased_role("svc_user", "owner", expired(), with_dependencies=False)
        catalog.owned[name] = 4

        result = FinalRemovalPhase("platformv2").execute(catalog, CredentialPrincipal(name=name))

        assert result.success is True
        assert result.changes == 4
        assert catalog.owned["platformv2"] == 4
        assert name not in catalog.roles

    def test_drop_owned_clears_residual_grants(
        self, catalog: InMemoryCatalog, principal: CredentialPrincipal
    ) -> None:
        """Test residual privileges left by earlier phases are cleared before the drop."""
        catalog.memberships.clear()

        result = FinalRemovalPhase("platformv2").execute(catalog, principal)

        assert result.success is True
        assert principal.name not in catalog.roles

    def test_missing_principal_is_already_gone(self, catalog: InMemoryCatalog) -> None:
        result = FinalRemovalPhase("platformv2").execute(catalog, CredentialPrincipal(name="v-kubernet-svc_user-gone"))

        assert result.success is True
        assert result.already_gone is True
        assert catalog.calls == []

    def test_concurrent_removal_is_success(self, catalog: InMemoryCatalog) -> None:
        """Test a drop racing another session that already removed the role."""
        name = catalog.add_leased_role("svc_user", "race", expired(), with_dependencies=False)
        catalog.fail("drop_principal", name, psycopg.errors.UndefinedObject(f'role "{name}" does not exist'))

        result = FinalRemovalPhase("platformv2").execute(catalog, CredentialPrincipal(name=name))

        assert result.success is True
        assert result.already_gone is True

    def test_active_session_blocks_drop(self, catalog: InMemoryCatalog) -> None:
        name = catalog.add_leased_role("svc_noti", "busy", expired(), with_dependencies=False)
        catalog.active_sessions.add(name)

        result = FinalRemovalPhase("platformv2").execute(catalog, CredentialPrincipal(name=name))

        assert result.success is False
        assert result.error_code == "55006"
        assert name in catalog.roles

    def test_reassign_failure_is_warning(self, catalog: InMemoryCatalog) -> None:
        """Test a missing custodian only warns; the drop still decides the result."""
        name = catalog.add_leased_role("svc_user", "orphan", expired(), with_dependencies=False)
        del catalog.roles["platformv2"]

        result = FinalRemovalPhase("platformv2").execute(catalog, CredentialPrincipal(name=name))

        assert result.success is True
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("ownership transfer:")

    def test_remaining_dependency_fails_drop(self, catalog: InMemoryCatalog, principal: CredentialPrincipal) -> None:
        catalog.fail("drop_owned", principal.name)

        result = FinalRemovalPhase("platformv2").execute(catalog, principal)

        assert result.success is False
        assert result.error_code == "2BP01"
        assert result.warnings[0].startswith("drop owned:")
