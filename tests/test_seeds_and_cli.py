"""
Seed routine and CLI tests.
"""

import json

import pytest
from typer.testing import CliRunner

from tarl_portal.cli import app as cli_app
from tarl_portal.core.config import settings
from tarl_portal.core.security import decode_token
from tarl_portal.db.seeds.run import seed_all
from tarl_portal.models.audit_log import AuditLog
from tarl_portal.models.organization import School
from tarl_portal.models.page import Page
from tarl_portal.models.permission import ActionPermission, PagePermission
from tarl_portal.models.user import User
from tarl_portal.schemas.schemas import SeedRunMetadata
from tarl_portal.services.audit_service import parse_metadata
from tarl_portal.services.menu_service import menu_service
from tarl_portal.services.permission_service import permission_service


class TestSeeds:

    def test_seed_run_is_idempotent_with_one_summary_each(self, session):
        first = seed_all(session, sample_data=True)
        second = seed_all(session, sample_data=True)

        assert first.roles == 9
        assert first.pages == session.query(Page).count()
        assert second == SeedRunMetadata()
        assert session.query(User).filter_by(email=settings.SEED_ADMIN_EMAIL).count() == 1
        assert session.query(School).count() == 5

        entries = session.query(AuditLog).filter_by(action_type="seed_run").order_by(AuditLog.id).all()
        assert len(entries) == 2
        assert parse_metadata(entries[0].metadata_json) == first

    def test_seeded_permissions_drive_the_resolvers(self, session):
        seed_all(session)

        assert session.query(PagePermission).filter_by(role="admin", is_allowed=False).count() == 0
        assert not permission_service.can_access_page(session, "collector", "users")
        assert not permission_service.can_perform_action(session, "teacher", "schools", "delete")
        assert permission_service.can_perform_action(session, "admin", "reports", "export")
        assert session.query(ActionPermission).filter_by(role="partner", is_allowed=False).count() == 3

        teacher_menu = [node.name for node in menu_service.build_menu(session, "teacher")]
        assert teacher_menu == ["dashboard", "students", "observations", "reports"]

        participant_menu = menu_service.build_menu(session, "participant")
        training = next(node for node in participant_menu if node.name == "training")
        assert [child.name for child in training.children] == ["training-feedback"]


@pytest.fixture
def cli_database(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite:///{tmp_path / 'portal.db'}")
    return settings.DATABASE_URL


class TestCli:

    def test_token(self):
        result = CliRunner().invoke(cli_app, ["token", "42"])
        assert result.exit_code == 0
        assert decode_token(result.stdout.strip())["sub"] == "42"

    def test_seed_then_query(self, cli_database):
        runner = CliRunner()
        assert runner.invoke(cli_app, ["db", "seed"]).exit_code == 0

        allowed = runner.invoke(cli_app, ["check-action", "admin", "schools", "delete"])
        assert allowed.exit_code == 0
        assert "allowed" in allowed.stdout

        denied = runner.invoke(cli_app, ["check-action", "teacher", "schools", "delete"])
        assert denied.exit_code == 1

        menu = runner.invoke(cli_app, ["menu", "collector"])
        assert menu.exit_code == 0
        assert [node["path"] for node in json.loads(menu.stdout)] == ["/collector", "/observations"]
