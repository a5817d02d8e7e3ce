"""
Page catalog tests: nesting, re-parenting and ordering.
"""

import pytest

from tarl_portal.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from tarl_portal.models.audit_log import AuditLog
from tarl_portal.models.page import Page
from tarl_portal.schemas.schemas import MenuReorderMetadata, PageOrderItem
from tarl_portal.services.audit_service import parse_metadata
from tarl_portal.services.page_service import page_service


def _create(session, name, parent_id=None, **extra):
    data = {"name": name, "path": f"/{name}", "parent_page_id": parent_id}
    data.update(extra)
    return page_service.create_page(session, data)


class TestPageCreation:

    def test_child_sets_level_and_parent_flag(self, session):
        parent = _create(session, "training")
        child = _create(session, "training-programs", parent.id)
        session.refresh(parent)

        assert child.menu_level == 2
        assert parent.is_parent_menu is True
        assert session.query(AuditLog).filter_by(action_type="page_created").count() == 2

    def test_duplicate_path(self, session):
        _create(session, "schools")
        with pytest.raises(ResourceConflictError):
            page_service.create_page(session, {"name": "schools-2", "path": "/schools"})

    def test_missing_parent(self, session):
        with pytest.raises(ResourceNotFoundError):
            _create(session, "orphan", 42)


class TestPageUpdate:

    def test_cannot_nest_under_descendant(self, session):
        root = _create(session, "settings")
        child = _create(session, "page-permissions", root.id)
        grandchild = _create(session, "advanced", child.id)

        with pytest.raises(ValidationError):
            page_service.update_page(session, root.id, {"parent_page_id": grandchild.id})
        with pytest.raises(ValidationError):
            page_service.update_page(session, root.id, {"parent_page_id": root.id})

    def test_reparent_relevels_subtree(self, session):
        a = _create(session, "a")
        b = _create(session, "b")
        child = _create(session, "child", a.id)
        leaf = _create(session, "leaf", child.id)

        page_service.update_page(session, child.id, {"parent_page_id": b.id})
        session.expire_all()

        assert session.get(Page, child.id).parent_page_id == b.id
        assert session.get(Page, leaf.id).menu_level == 3
        assert session.get(Page, a.id).is_parent_menu is False
        assert session.get(Page, b.id).is_parent_menu is True

    def test_move_to_top_level(self, session):
        a = _create(session, "a")
        child = _create(session, "child", a.id)
        updated = page_service.update_page(session, child.id, {"parent_page_id": None, "title": "Child"})
        assert updated.parent_page_id is None
        assert updated.menu_level == 1
        assert updated.title == "Child"

    def test_null_for_required_field_is_rejected(self, session):
        page = _create(session, "schools", sort_order=3)
        for field in ("name", "path", "sort_order", "is_displayed_in_menu"):
            with pytest.raises(ValidationError):
                page_service.update_page(session, page.id, {field: None})
        session.expire_all()
        assert session.get(Page, page.id).sort_order == 3

    def test_delete_blocked_by_children(self, session):
        parent = _create(session, "training")
        _create(session, "training-sessions", parent.id)
        with pytest.raises(ResourceConflictError):
            page_service.delete_page(session, parent.id)


class TestReorder:

    def test_reorder_writes_one_audit_entry(self, session):
        a, b = _create(session, "a"), _create(session, "b")
        count = page_service.reorder_pages(
            session, [PageOrderItem(page_id=a.id, sort_order=2), PageOrderItem(page_id=b.id, sort_order=1)]
        )
        session.expire_all()

        assert count == 2
        assert session.get(Page, b.id).sort_order == 1
        entry = session.query(AuditLog).filter_by(action_type="menu_reorder").one()
        assert parse_metadata(entry.metadata_json) == MenuReorderMetadata(page_count=2)

    def test_reorder_unknown_page(self, session):
        with pytest.raises(ResourceNotFoundError):
            page_service.reorder_pages(session, [PageOrderItem(page_id=5, sort_order=1)])
