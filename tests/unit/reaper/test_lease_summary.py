"""Tests for LeaseSummarizer."""

from __future__ import annotations

from datetime import timedelta

from role_reaper.reaper.summary import LeaseSummarizer
from tests.fixtures.catalog import NOW, PREFIX, InMemoryCatalog, expired


class TestLeaseSummarizer:
    """Test suite for LeaseSummarizer."""

    def _catalog(self) -> InMemoryCatalog:
        catalog = InMemoryCatalog()
        catalog.add_leased_role("svc_user", "a", expired(hours=30), with_dependencies=False)
        catalog.add_leased_role("svc_user", "b", expired(hours=1), with_dependencies=False)
        catalog.add_leased_role("svc_user", "c", NOW + timedelta(hours=2), with_dependencies=False)
        catalog.add_leased_role("svc_file", "d", NOW + timedelta(days=3), with_dependencies=False)
        catalog.add_leased_role("svc_file", "e", None, with_dependencies=False)
        return catalog

    def test_counts_per_family(self) -> None:
        summaries = LeaseSummarizer(self._catalog(), PREFIX).summarize()

        by_family = {s.family: s for s in summaries}
        assert [s.family for s in summaries] == ["svc_user", "svc_file"]
        assert by_family["svc_user"].expired == 2
        assert by_family["svc_user"].active == 1
        assert by_family["svc_user"].expiring_soon == 3
        assert by_family["svc_file"].total_roles == 1
        assert by_family["svc_user"].oldest_expiry == expired(hours=30)

    def test_family_filter(self) -> None:
        summaries = LeaseSummarizer(self._catalog(), PREFIX).summarize(["svc_file"])

        assert [s.family for s in summaries] == ["svc_file"]
