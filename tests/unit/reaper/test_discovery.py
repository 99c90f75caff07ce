"""Tests for TargetDiscovery."""

from __future__ import annotations

from datetime import timedelta

import pytest

from role_reaper.models.principal import CredentialPrincipal
from role_reaper.reaper.discovery import TargetDiscovery
from role_reaper.reaper.errors import DiscoveryError
from role_reaper.reaper.safety import SafetyChecker
from tests.fixtures.catalog import NOW, PREFIX, InMemoryCatalog, expired, fixed_clock


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def discovery(catalog: InMemoryCatalog) -> TargetDiscovery:
    return TargetDiscovery(catalog, name_prefix=PREFIX, clock=fixed_clock)


class TestTargetDiscovery:
    """Test suite for TargetDiscovery."""

    def test_returns_expired_oldest_first(self, catalog: InMemoryCatalog, discovery: TargetDiscovery) -> None:
        catalog.add_leased_role("svc_user", "recent", expired(hours=1))
        catalog.add_leased_role("svc_user", "old", expired(hours=48))
        catalog.add_leased_role("svc_user", "mid", expired(hours=5))

        found = discovery.discover("svc_user")

        assert [p.name for p in found] == [
            f"{PREFIX}svc_user-old",
            f"{PREFIX}svc_user-mid",
            f"{PREFIX}svc_user-recent",
        ]

    def test_excludes_active_and_unbounded_leases(
        self, catalog: InMemoryCatalog, discovery: TargetDiscovery
    ) -> None:
        """Test null expiry and future expiry are never candidates."""
        catalog.add_leased_role("svc_user", "forever", None)
        catalog.add_leased_role("svc_user", "active", NOW + timedelta(hours=1))
        catalog.add_leased_role("svc_user", "boundary", NOW)

        assert discovery.discover("svc_user") == []

    def test_family_scoping(self, catalog: InMemoryCatalog, discovery: TargetDiscovery) -> None:
        catalog.add_leased_role("svc_user", "a", expired())
        catalog.add_leased_role("svc_file", "b", expired())
        catalog.add_role("svc_user-unprefixed", expired())

        found = discovery.discover("svc_file")

        assert [p.name for p in found] == [f"{PREFIX}svc_file-b"]

    def test_rechecks_expiry_from_store(self, catalog: InMemoryCatalog, discovery: TargetDiscovery) -> None:
        """Test principals returned by a lax store are filtered again."""
        catalog.list_expired_principals = lambda prefix, now: [
            CredentialPrincipal(name=f"{prefix}-x", valid_until=now + timedelta(minutes=5)),
            CredentialPrincipal(name=f"{prefix}-y", valid_until=None),
        ]

        assert discovery.discover("svc_user") == []

    def test_query_failure_raises_discovery_error(
        self, catalog: InMemoryCatalog, discovery: TargetDiscovery
    ) -> None:
        catalog.fail("list_expired_principals", f"{PREFIX}svc_broken")

        with pytest.raises(DiscoveryError) as exc_info:
            discovery.discover("svc_broken")

        assert exc_info.value.family == "svc_broken"
        assert exc_info.value.error_code == "42501"
        assert "svc_broken" in str(exc_info.value)

    def test_protected_principals_skipped(self, catalog: InMemoryCatalog) -> None:
        keep = catalog.add_leased_role("svc_user", "keep-1", expired())
        drop = catalog.add_leased_role("svc_user", "a", expired())
        discovery = TargetDiscovery(
            catalog,
            name_prefix=PREFIX,
            clock=fixed_clock,
            safety_checker=SafetyChecker(protected_patterns=[f"{PREFIX}svc_user-keep-*"]),
        )

        found = discovery.discover("svc_user")

        assert [p.name for p in found] == [drop]
        assert keep in catalog.roles
