"""
Page and action resolution against a real database, plus bulk updates.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from tarl_portal.core.exceptions import (
    ResourceNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from tarl_portal.core.principal import Principal
from tarl_portal.db.session import Database
from tarl_portal.models.audit_log import AuditLog
from tarl_portal.models.permission import ActionPermission, PagePermission
from tarl_portal.schemas.schemas import (
    ActionBatchMetadata,
    ActionPermissionItem,
    PagePermissionItem,
    PermissionBatchMetadata,
)
from tarl_portal.services import permission_service as permission_module
from tarl_portal.services.audit_service import parse_metadata
from tarl_portal.services.permission_service import permission_service


@pytest.fixture
def admin_principal():
    return Principal(user_id=1, role="admin", hierarchy_level=0)


class TestPageResolver:

    def test_unknown_page_falls_back_to_legacy(self, session):
        assert permission_service.can_access_page(session, "teacher", "nowhere")
        assert not permission_service.can_access_page(session, "collector", "nowhere")

    def test_explicit_deny(self, session, make_page, allow_page):
        page = make_page("reports")
        allow_page("teacher", page, False)
        assert not permission_service.can_access_page(session, "teacher", "reports")

    def test_missing_row_is_allowed(self, session, make_page):
        make_page("reports")
        assert permission_service.can_access_page(session, "collector", "reports")

    def test_role_lookup_is_case_insensitive(self, session, make_page, allow_page):
        page = make_page("reports")
        allow_page("teacher", page, False)
        assert not permission_service.can_access_page(session, "Teacher", "reports")


class TestActionResolver:

    def test_explicit_page_deny_blocks_every_action(self, session, make_page, allow_page, allow_action):
        page = make_page("schools")
        allow_page("director", page, False)
        for action in ("view", "create", "update", "delete", "export", "bulk_update"):
            allow_action("director", page, action, True)

        result = permission_service.check_actions(session, "director", "schools")
        assert result == {action: False for action in result}
        assert len(result) == 6

    def test_explicit_action_deny_without_page_row(self, session, make_page, allow_action):
        page = make_page("training-programs", "/training/programs")
        allow_action("teacher", page, "update", False)

        assert not permission_service.can_perform_action(session, "teacher", "training-programs", "update")
        assert permission_service.can_perform_action(session, "teacher", "training-programs", "view")

    def test_explicit_action_allow_for_non_legacy_role(self, session, make_page, allow_action):
        page = make_page("observations")
        allow_action("collector", page, "create", True)

        assert permission_service.can_perform_action(session, "collector", "observations", "create")
        assert not permission_service.can_perform_action(session, "collector", "observations", "delete")

    def test_no_rows(self, session, make_page):
        make_page("visits")
        assert permission_service.can_perform_action(session, "coordinator", "visits", "delete")
        assert not permission_service.can_perform_action(session, "intern", "visits", "view")

    def test_unknown_action_is_a_validation_error(self, session, make_page):
        make_page("visits")
        with pytest.raises(ValidationError):
            permission_service.can_perform_action(session, "admin", "visits", "approve")

    def test_batch_defaults_to_all_actions(self, session, make_page, allow_action):
        page = make_page("users")
        allow_action("teacher", page, "delete", False)
        result = permission_service.check_actions(session, "teacher", "users")
        assert result == {
            "view": True, "create": True, "update": True,
            "delete": False, "export": True, "bulk_update": True,
        }

    def test_batch_subset(self, session, make_page):
        make_page("users")
        assert permission_service.check_actions(session, "intern", "users", ["view", "export"]) == {
            "view": False, "export": False,
        }

    def test_store_failure_is_fail_closed(self):
        # No tables created: every lookup fails at the driver.
        engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
        broken = Database("sqlite://", engine=engine).SessionLocal()
        try:
            with pytest.raises(StoreUnavailableError):
                permission_service.can_perform_action(broken, "admin", "schools", "view")
            with pytest.raises(StoreUnavailableError):
                permission_service.can_access_page(broken, "admin", "schools")
        finally:
            broken.close()
            engine.dispose()


class TestActionMatrix:

    def test_matrix_covers_every_page(self, session, make_page, allow_page, allow_action):
        schools = make_page("schools", sort_order=1)
        reports = make_page("reports", sort_order=2)
        allow_page("teacher", reports, False)
        allow_action("teacher", schools, "delete", False)

        matrix = permission_service.get_role_action_matrix(session, "teacher")
        assert [entry["page_name"] for entry in matrix] == ["schools", "reports"]
        assert matrix[0]["actions"]["delete"] is False
        assert matrix[0]["actions"]["view"] is True
        assert not any(matrix[1]["actions"].values())

    def test_explicit_rows_listing(self, session, make_page, allow_action):
        page = make_page("schools")
        allow_action("teacher", page, "delete", False)
        allow_action("admin", page, "delete", True)

        rows = permission_service.get_page_action_permissions(session, "schools", "teacher")
        assert len(rows) == 1
        assert rows[0]["page_path"] == "/schools"
        assert rows[0]["is_allowed"] is False


class TestBulkPageUpdate:

    def _pages(self, make_page, count):
        return [make_page(f"page-{i}") for i in range(count)]

    def test_creates_and_updates_rows(self, session, roles, make_page, allow_page, admin_principal):
        pages = self._pages(make_page, 3)
        allow_page("teacher", pages[0], True)

        result = permission_service.bulk_update_page_permissions(
            session,
            roles["teacher"].id,
            [
                PagePermissionItem(page_id=pages[0].id, can_access=False),
                PagePermissionItem(page_id=pages[1].id, can_access=True),
                PagePermissionItem(page_id=pages[2].id, can_access=False),
            ],
            changed_by=admin_principal,
        )

        assert result.changed == 3
        assert result.unchanged == 0
        rows = {r.page_id: r.is_allowed for r in session.query(PagePermission).filter_by(role="teacher")}
        assert rows == {pages[0].id: False, pages[1].id: True, pages[2].id: False}

        entry = session.query(AuditLog).filter(AuditLog.id == result.audit_id).one()
        assert entry.changed_by_user_id == 1
        assert entry.role_name == "teacher"
        metadata = parse_metadata(entry.metadata_json)
        assert isinstance(metadata, PermissionBatchMetadata)
        assert metadata.changes[0].previous is True
        assert metadata.changes[0].new is False

    def test_idempotent_with_one_audit_entry_per_application(self, session, roles, make_page):
        pages = self._pages(make_page, 2)
        items = [PagePermissionItem(page_id=p.id, can_access=True) for p in pages]

        first = permission_service.bulk_update_page_permissions(session, roles["coordinator"].id, items)
        state_after_first = sorted(
            (r.page_id, r.is_allowed) for r in session.query(PagePermission).filter_by(role="coordinator")
        )
        second = permission_service.bulk_update_page_permissions(session, roles["coordinator"].id, items)
        state_after_second = sorted(
            (r.page_id, r.is_allowed) for r in session.query(PagePermission).filter_by(role="coordinator")
        )

        assert state_after_first == state_after_second
        assert (first.changed, second.changed, second.unchanged) == (2, 0, 2)
        assert session.query(AuditLog).filter_by(action_type="page_permissions_bulk_update").count() == 2

    def test_unknown_page_rolls_back_everything(self, session, roles, make_page):
        pages = self._pages(make_page, 4)
        items = [PagePermissionItem(page_id=p.id, can_access=False) for p in pages]
        items.insert(2, PagePermissionItem(page_id=9999, can_access=True))

        with pytest.raises(ResourceNotFoundError):
            permission_service.bulk_update_page_permissions(session, roles["teacher"].id, items)

        assert session.query(PagePermission).count() == 0
        assert session.query(AuditLog).count() == 0

    def test_unknown_role(self, session, make_page):
        page = make_page("schools")
        with pytest.raises(ResourceNotFoundError):
            permission_service.bulk_update_page_permissions(
                session, 404, [PagePermissionItem(page_id=page.id, can_access=True)]
            )

    def test_audit_failure_rolls_back_the_batch(self, session, roles, make_page, monkeypatch):
        page = make_page("schools")

        def failing_record(*args, **kwargs):
            raise OperationalError("INSERT INTO permission_audit_log", {}, Exception("disk full"))

        monkeypatch.setattr(permission_module.audit_service, "record", failing_record)

        with pytest.raises(StoreUnavailableError):
            permission_service.bulk_update_page_permissions(
                session, roles["teacher"].id, [PagePermissionItem(page_id=page.id, can_access=False)]
            )
        assert session.query(PagePermission).count() == 0


class TestBulkActionUpdate:

    def test_upserts_action_rows(self, session, roles, make_page, allow_action, admin_principal):
        page = make_page("observations")
        allow_action("partner", page, "create", True)

        result = permission_service.bulk_update_action_permissions(
            session, page.id, "Partner",
            [
                ActionPermissionItem(action_name="create", is_allowed=False),
                ActionPermissionItem(action_name="export", is_allowed=True),
                ActionPermissionItem(action_name="view", is_allowed=True),
            ],
            changed_by=admin_principal,
        )

        assert result.role == "partner"
        assert result.changed == 3
        rows = {r.action_name: r.is_allowed for r in session.query(ActionPermission).filter_by(role="partner")}
        assert rows == {"create": False, "export": True, "view": True}

        entry = session.query(AuditLog).filter(AuditLog.id == result.audit_id).one()
        assert isinstance(parse_metadata(entry.metadata_json), ActionBatchMetadata)

    def test_unknown_action_rejected_before_any_write(self, session, roles, make_page):
        page = make_page("observations")
        with pytest.raises(ValidationError):
            permission_service.bulk_update_action_permissions(
                session, page.id, "partner",
                [
                    ActionPermissionItem(action_name="view", is_allowed=True),
                    ActionPermissionItem(action_name="approve", is_allowed=True),
                ],
            )
        assert session.query(ActionPermission).count() == 0
        assert session.query(AuditLog).count() == 0

    def test_unknown_page(self, session, roles):
        with pytest.raises(ResourceNotFoundError):
            permission_service.bulk_update_action_permissions(
                session, 77, "partner", [ActionPermissionItem(action_name="view", is_allowed=True)]
            )
