"""Tests for SafetyChecker."""

from __future__ import annotations

from role_reaper.models.principal import CredentialPrincipal
from role_reaper.reaper.safety import SafetyChecker


class TestSafetyChecker:
    """Test suite for SafetyChecker."""

    def test_custodian_always_protected(self) -> None:
        checker = SafetyChecker(custodian_role="platformv2")

        is_protected, reason = checker.is_protected(CredentialPrincipal(name="platformv2"))

        assert is_protected is True
        assert "custodian" in reason

    def test_pattern_match(self) -> None:
        checker = SafetyChecker(protected_patterns=["v-kubernet-migratio-keep-*"])

        is_protected, reason = checker.is_protected(CredentialPrincipal(name="v-kubernet-migratio-keep-01"))

        assert is_protected is True
        assert "v-kubernet-migratio-keep-*" in reason

    def test_patterns_are_case_sensitive(self) -> None:
        checker = SafetyChecker(protected_patterns=["v-kubernet-MIGRATIO-*"])

        assert checker.is_protected(CredentialPrincipal(name="v-kubernet-migratio-1")) == (False, None)

    def test_unprotected(self) -> None:
        assert SafetyChecker().is_protected(CredentialPrincipal(name="v-kubernet-svc_user-a")) == (False, None)
