"""
Decision table tests: the only place missing rows are interpreted.
"""

import pytest

from tarl_portal.core.config import settings
from tarl_portal.core.exceptions import ValidationError
from tarl_portal.services.permission_service import (
    decide_action,
    decide_page_access,
    legacy_allows,
    permission_service,
    validate_action,
)


class TestLegacyFallback:

    @pytest.mark.parametrize("role", ["admin", "director", "partner", "coordinator", "teacher"])
    def test_legacy_roles_allowed(self, role):
        assert legacy_allows(role)

    @pytest.mark.parametrize("role", ["collector", "intern", "participant", "training organizer", ""])
    def test_other_roles_denied(self, role):
        assert not legacy_allows(role)

    def test_role_names_are_canonicalized(self):
        assert legacy_allows("  Teacher ")
        assert legacy_allows("ADMIN")

    def test_allow_list_comes_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "LEGACY_ALLOWED_ROLES", ["intern"])
        assert legacy_allows("intern")
        assert not legacy_allows("admin")

    def test_explicit_allow_list_overrides_settings(self):
        assert legacy_allows("Intern", ["intern"])
        assert not legacy_allows("admin", ["intern"])
        assert decide_action(False, None, None, "intern", ["intern"])
        assert not decide_page_access(False, None, "teacher", [])


class TestPageDecision:

    def test_unknown_page_uses_legacy_table(self):
        assert decide_page_access(False, None, "teacher") is True
        assert decide_page_access(False, None, "collector") is False

    def test_explicit_row_is_verbatim(self):
        assert decide_page_access(True, False, "admin") is False
        assert decide_page_access(True, True, "collector") is True

    def test_missing_row_defaults_to_allow(self):
        assert decide_page_access(True, None, "collector") is True


class TestActionDecision:

    def test_unknown_page_uses_legacy_table(self):
        assert decide_action(False, None, None, "director") is True
        assert decide_action(False, None, None, "intern") is False

    @pytest.mark.parametrize("action_rule", [True, False, None])
    def test_page_deny_wins_over_action_rows(self, action_rule):
        assert decide_action(True, False, action_rule, "admin") is False

    def test_action_row_is_verbatim(self):
        assert decide_action(True, None, False, "teacher") is False
        assert decide_action(True, True, True, "collector") is True

    def test_no_action_row_falls_back_to_legacy(self):
        assert decide_action(True, True, None, "teacher") is True
        assert decide_action(True, True, None, "collector") is False
        assert decide_action(True, None, None, "collector") is False


class TestActionCatalog:

    def test_available_actions(self):
        assert permission_service.get_available_actions() == [
            "view", "create", "update", "delete", "export", "bulk_update",
        ]

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError):
            validate_action("approve")

    def test_default_actions_per_page_type(self):
        assert permission_service.get_default_actions_for_page("Reports") == ["view", "export"]
        assert permission_service.get_default_actions_for_page("settings") == ["view", "update"]
        assert permission_service.get_default_actions_for_page("training-programs") == ["view"]
