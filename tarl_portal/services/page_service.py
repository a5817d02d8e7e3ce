"""Page catalog maintenance: creation, re-parenting and menu ordering."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from tarl_portal.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from tarl_portal.core.principal import Principal
from tarl_portal.models.page import Page
from tarl_portal.models.permission import ActionPermission, PagePermission
from tarl_portal.schemas.schemas import MenuReorderMetadata, PageChangeMetadata, PageOrderItem
from tarl_portal.services.audit_service import audit_service

logger = logging.getLogger("tarl_portal.pages")

NON_NULLABLE_FIELDS = ("name", "path", "sort_order", "is_displayed_in_menu")


class PageService:

    @staticmethod
    def get_page(db: Session, page_id: int) -> Page:
        page = db.query(Page).filter(Page.id == page_id).first()
        if not page:
            raise ResourceNotFoundError(f"Page {page_id} not found")
        return page

    @staticmethod
    def get_page_by_name(db: Session, name: str) -> Page:
        page = db.query(Page).filter(Page.name == name).first()
        if not page:
            raise ResourceNotFoundError(f"Page '{name}' not found")
        return page

    @staticmethod
    def list_pages(db: Session) -> List[Page]:
        return db.query(Page).order_by(Page.menu_level, Page.sort_order, Page.name).all()

    @staticmethod
    def _ensure_unique(db: Session, name: Optional[str], path: Optional[str], exclude_id: Optional[int] = None) -> None:
        for column, value in (("name", name), ("path", path)):
            if value is None:
                continue
            query = db.query(Page).filter(getattr(Page, column) == value)
            if exclude_id is not None:
                query = query.filter(Page.id != exclude_id)
            if query.first():
                raise ResourceConflictError(f"Page {column} '{value}' already exists")

    @staticmethod
    def _ensure_acyclic(db: Session, page_id: int, parent_id: int) -> None:
        """Walk up from ``parent_id``; reaching ``page_id`` means a cycle."""
        seen = set()
        current = parent_id
        while current is not None:
            if current == page_id:
                raise ValidationError("A page cannot be nested under itself or one of its descendants")
            if current in seen:
                break
            seen.add(current)
            current = db.query(Page.parent_page_id).filter(Page.id == current).scalar()

    @staticmethod
    def _relevel_subtree(db: Session, page: Page) -> None:
        pending = [page]
        while pending:
            node = pending.pop()
            for child in db.query(Page).filter(Page.parent_page_id == node.id).all():
                child.menu_level = node.menu_level + 1
                pending.append(child)

    @staticmethod
    def create_page(db: Session, data: Dict[str, Any], changed_by: Optional[Principal] = None) -> Page:
        PageService._ensure_unique(db, data.get("name"), data.get("path"))

        page = Page(**data)
        parent_id = data.get("parent_page_id")
        if parent_id is not None:
            parent = PageService.get_page(db, parent_id)
            parent.is_parent_menu = True
            page.menu_level = parent.menu_level + 1
        else:
            page.menu_level = 1

        db.add(page)
        db.commit()
        db.refresh(page)

        audit_service.record_after_commit(
            db, "page_created", "page",
            f'Created page "{page.name}" at {page.path}',
            changed_by=changed_by,
            entity_id=page.id,
            new_value=page.path,
            metadata=PageChangeMetadata(page_id=page.id, page_path=page.path, action="created"),
        )
        return page

    @staticmethod
    def update_page(db: Session, page_id: int, changes: Dict[str, Any], changed_by: Optional[Principal] = None) -> Page:
        """Apply only the fields present in ``changes``; ``parent_page_id=None`` moves a page to the top level."""
        nulls = [field for field in NON_NULLABLE_FIELDS if field in changes and changes[field] is None]
        if nulls:
            raise ValidationError(f"Fields cannot be null: {', '.join(nulls)}")
        page = PageService.get_page(db, page_id)
        previous_path = page.path
        PageService._ensure_unique(db, changes.get("name"), changes.get("path"), exclude_id=page.id)

        if "parent_page_id" in changes and changes["parent_page_id"] != page.parent_page_id:
            old_parent_id = page.parent_page_id
            new_parent_id = changes.pop("parent_page_id")
            if new_parent_id is not None:
                parent = PageService.get_page(db, new_parent_id)
                PageService._ensure_acyclic(db, page.id, parent.id)
                parent.is_parent_menu = True
                page.menu_level = parent.menu_level + 1
            else:
                page.menu_level = 1
            page.parent_page_id = new_parent_id
            db.flush()

            if old_parent_id is not None:
                remaining = db.query(Page.id).filter(Page.parent_page_id == old_parent_id).count()
                if remaining == 0:
                    PageService.get_page(db, old_parent_id).is_parent_menu = False
            PageService._relevel_subtree(db, page)
        changes.pop("parent_page_id", None)

        for field, value in changes.items():
            setattr(page, field, value)

        db.commit()
        db.refresh(page)

        audit_service.record_after_commit(
            db, "page_updated", "page",
            f'Updated page "{page.name}"',
            changed_by=changed_by,
            entity_id=page.id,
            previous_value=previous_path,
            new_value=page.path,
            metadata=PageChangeMetadata(page_id=page.id, page_path=page.path, action="updated"),
        )
        return page

    @staticmethod
    def delete_page(db: Session, page_id: int, changed_by: Optional[Principal] = None) -> None:
        page = PageService.get_page(db, page_id)
        if db.query(Page.id).filter(Page.parent_page_id == page.id).count():
            raise ResourceConflictError(f"Page '{page.name}' still has child pages")

        name, path, parent_id = page.name, page.path, page.parent_page_id
        db.query(PagePermission).filter(PagePermission.page_id == page.id).delete(synchronize_session=False)
        db.query(ActionPermission).filter(ActionPermission.page_id == page.id).delete(synchronize_session=False)
        db.delete(page)
        db.flush()
        if parent_id is not None and not db.query(Page.id).filter(Page.parent_page_id == parent_id).count():
            PageService.get_page(db, parent_id).is_parent_menu = False
        db.commit()

        audit_service.record_after_commit(
            db, "page_deleted", "page",
            f'Deleted page "{name}"',
            changed_by=changed_by,
            entity_id=page_id,
            previous_value=path,
            metadata=PageChangeMetadata(page_id=page_id, page_path=path, action="deleted"),
        )

    @staticmethod
    def reorder_pages(db: Session, items: List[PageOrderItem], changed_by: Optional[Principal] = None) -> int:
        """Set sort_order for several pages in one commit."""
        ids = [item.page_id for item in items]
        pages = {page.id: page for page in db.query(Page).filter(Page.id.in_(ids))}
        missing = [page_id for page_id in ids if page_id not in pages]
        if missing:
            raise ResourceNotFoundError(f"Unknown page id(s): {', '.join(map(str, missing))}")

        for item in items:
            pages[item.page_id].sort_order = item.sort_order
        db.commit()
        logger.info("Reordered %d pages", len(items))

        audit_service.record_after_commit(
            db, "menu_reorder", "menu",
            f"Reordered {len(items)} menu item(s)",
            changed_by=changed_by,
            metadata=MenuReorderMetadata(page_count=len(items)),
        )
        return len(items)


page_service = PageService()
