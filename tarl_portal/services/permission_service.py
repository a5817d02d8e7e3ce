"""Page and action permission resolution plus admin bulk updates.

Every decision is made by ``decide_page_access`` or ``decide_action``; the
service methods only load the tri-state inputs (row present and allowed,
row present and denied, row absent) and hand them over.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tarl_portal.core.config import settings
from tarl_portal.core.exceptions import (
    PortalError,
    ResourceNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from tarl_portal.core.principal import Principal
from tarl_portal.models.page import Page
from tarl_portal.models.permission import ActionPermission, PagePermission
from tarl_portal.schemas.schemas import (
    ACTION_NAMES,
    ActionBatchMetadata,
    ActionChangeItem,
    ActionPermissionItem,
    BatchResult,
    PageChangeItem,
    PagePermissionItem,
    PermissionBatchMetadata,
)
from tarl_portal.services.audit_service import audit_service
from tarl_portal.services.role_service import normalize_role, role_service

logger = logging.getLogger("tarl_portal.permissions")

DEFAULT_PAGE_ACTIONS = {
    "schools": ["view", "create", "update", "delete", "export"],
    "users": ["view", "create", "update", "delete", "export"],
    "observations": ["view", "create", "update", "delete", "export"],
    "reports": ["view", "export"],
    "settings": ["view", "update"],
}


def legacy_allows(role: str, legacy_roles: Optional[Iterable[str]] = None) -> bool:
    """Role-gated fallback used where no explicit rule exists."""
    if legacy_roles is None:
        legacy_roles = settings.LEGACY_ALLOWED_ROLES
    allowed = {normalize_role(r) for r in legacy_roles}
    return normalize_role(role) in allowed


def decide_page_access(
    page_exists: bool,
    page_rule: Optional[bool],
    role: str,
    legacy_roles: Optional[Iterable[str]] = None,
) -> bool:
    if not page_exists:
        return legacy_allows(role, legacy_roles)
    if page_rule is not None:
        return page_rule
    return True


def decide_action(
    page_exists: bool,
    page_rule: Optional[bool],
    action_rule: Optional[bool],
    role: str,
    legacy_roles: Optional[Iterable[str]] = None,
) -> bool:
    """Resolve one action in strict order.

    1. unknown page -> legacy role table
    2. explicit page deny -> deny
    3. explicit action row -> verbatim
    4. otherwise -> legacy role table
    """
    if not page_exists:
        return legacy_allows(role, legacy_roles)
    if page_rule is False:
        return False
    if action_rule is not None:
        return action_rule
    return legacy_allows(role, legacy_roles)


def validate_action(action: str) -> str:
    if action not in ACTION_NAMES:
        raise ValidationError(
            f"Unknown action '{action}'. Expected one of: {', '.join(ACTION_NAMES)}"
        )
    return action


class PermissionService:
    """Reads and writes the page and action permission tables."""

    @staticmethod
    def get_available_actions() -> List[str]:
        return list(ACTION_NAMES)

    @staticmethod
    def get_default_actions_for_page(page_name: str) -> List[str]:
        key = "_".join(page_name.lower().split())
        return list(DEFAULT_PAGE_ACTIONS.get(key, ["view"]))

    # ---- Resolvers ----

    @staticmethod
    def _load_page_rule(db: Session, role: str, page_name: str) -> Tuple[Optional[Page], Optional[bool]]:
        page = db.query(Page).filter(Page.name == page_name).first()
        if page is None:
            return None, None
        row = (
            db.query(PagePermission)
            .filter(PagePermission.role == role, PagePermission.page_id == page.id)
            .first()
        )
        return page, (row.is_allowed if row else None)

    @staticmethod
    def can_access_page(
        db: Session, role: str, page_name: str, legacy_roles: Optional[Iterable[str]] = None,
    ) -> bool:
        role = normalize_role(role)
        try:
            page, page_rule = PermissionService._load_page_rule(db, role, page_name)
        except SQLAlchemyError as exc:
            logger.exception("Page permission lookup failed for %s on %s", role, page_name)
            raise StoreUnavailableError("Permission store unavailable") from exc
        return decide_page_access(page is not None, page_rule, role, legacy_roles)

    @staticmethod
    def can_perform_action(
        db: Session, role: str, page_name: str, action: str, legacy_roles: Optional[Iterable[str]] = None,
    ) -> bool:
        return PermissionService.check_actions(db, role, page_name, [action], legacy_roles)[action]

    @staticmethod
    def check_actions(
        db: Session,
        role: str,
        page_name: str,
        actions: Optional[Iterable[str]] = None,
        legacy_roles: Optional[Iterable[str]] = None,
    ) -> Dict[str, bool]:
        """Resolve several actions on one page; page rows are loaded once."""
        role = normalize_role(role)
        wanted = [validate_action(a) for a in (actions or ACTION_NAMES)]

        try:
            page, page_rule = PermissionService._load_page_rule(db, role, page_name)
            action_rules: Dict[str, bool] = {}
            if page is not None:
                rows = (
                    db.query(ActionPermission)
                    .filter(
                        ActionPermission.page_id == page.id,
                        ActionPermission.role == role,
                        ActionPermission.action_name.in_(wanted),
                    )
                    .all()
                )
                action_rules = {row.action_name: row.is_allowed for row in rows}
        except SQLAlchemyError as exc:
            logger.exception("Action permission lookup failed for %s on %s", role, page_name)
            raise StoreUnavailableError("Permission store unavailable") from exc

        return {
            action: decide_action(page is not None, page_rule, action_rules.get(action), role, legacy_roles)
            for action in wanted
        }

    @staticmethod
    def get_role_action_matrix(
        db: Session, role: str, legacy_roles: Optional[Iterable[str]] = None,
    ) -> List[dict]:
        """Effective action map of every catalogued page for one role."""
        role = normalize_role(role)
        try:
            pages = db.query(Page).order_by(Page.sort_order, Page.name).all()
            page_rules = {
                row.page_id: row.is_allowed
                for row in db.query(PagePermission).filter(PagePermission.role == role)
            }
            action_rules = {
                (row.page_id, row.action_name): row.is_allowed
                for row in db.query(ActionPermission).filter(ActionPermission.role == role)
            }
        except SQLAlchemyError as exc:
            logger.exception("Action matrix lookup failed for %s", role)
            raise StoreUnavailableError("Permission store unavailable") from exc

        return [
            {
                "page_name": page.name,
                "page_path": page.path,
                "actions": {
                    action: decide_action(
                        True, page_rules.get(page.id), action_rules.get((page.id, action)), role, legacy_roles,
                    )
                    for action in ACTION_NAMES
                },
            }
            for page in pages
        ]

    @staticmethod
    def get_page_action_permissions(db: Session, page_name: Optional[str] = None, role: Optional[str] = None) -> List[dict]:
        """Explicit action rows, optionally narrowed to a page and/or role."""
        query = db.query(ActionPermission, Page).join(Page, Page.id == ActionPermission.page_id)
        if page_name:
            query = query.filter(Page.name == page_name)
        if role:
            query = query.filter(ActionPermission.role == normalize_role(role))
        rows = query.order_by(Page.name, ActionPermission.role, ActionPermission.action_name).all()
        return [
            {
                "id": perm.id,
                "page_id": page.id,
                "page_name": page.name,
                "page_path": page.path,
                "role": perm.role,
                "action_name": perm.action_name,
                "is_allowed": perm.is_allowed,
            }
            for perm, page in rows
        ]

    @staticmethod
    def list_page_permissions(db: Session, role: Optional[str] = None) -> List[dict]:
        query = db.query(PagePermission, Page).join(Page, Page.id == PagePermission.page_id)
        if role:
            query = query.filter(PagePermission.role == normalize_role(role))
        rows = query.order_by(PagePermission.role, Page.sort_order, Page.name).all()
        return [
            {
                "id": perm.id,
                "role": perm.role,
                "page_id": page.id,
                "page_name": page.name,
                "page_path": page.path,
                "can_access": perm.is_allowed,
                "updated_at": perm.updated_at,
            }
            for perm, page in rows
        ]

    # ---- Bulk updates ----

    @staticmethod
    def bulk_update_page_permissions(
        db: Session,
        role_id: int,
        permissions: List[PagePermissionItem],
        changed_by: Optional[Principal] = None,
    ) -> BatchResult:
        """Apply a role's page permissions atomically with one audit entry.

        An unknown page id aborts the whole batch.
        """
        try:
            role = role_service.get_role_by_id(db, role_id)
            page_ids = {item.page_id for item in permissions}
            known = {
                page_id for (page_id,) in db.query(Page.id).filter(Page.id.in_(page_ids))
            } if page_ids else set()
            missing = sorted(page_ids - known)
            if missing:
                raise ResourceNotFoundError(f"Unknown page id(s): {', '.join(map(str, missing))}")

            existing = {
                row.page_id: row
                for row in db.query(PagePermission).filter(
                    PagePermission.role == role.name,
                    PagePermission.page_id.in_(page_ids),
                )
            } if page_ids else {}

            changes: List[PageChangeItem] = []
            unchanged = 0
            for item in permissions:
                row = existing.get(item.page_id)
                if row is None:
                    row = PagePermission(role=role.name, page_id=item.page_id, is_allowed=item.can_access)
                    db.add(row)
                    existing[item.page_id] = row
                    changes.append(PageChangeItem(page_id=item.page_id, previous=None, new=item.can_access))
                elif row.is_allowed != item.can_access:
                    changes.append(PageChangeItem(page_id=item.page_id, previous=row.is_allowed, new=item.can_access))
                    row.is_allowed = item.can_access
                else:
                    unchanged += 1

            entry = audit_service.record(
                db, "page_permissions_bulk_update", "page_permission",
                f'Updated {len(changes)} page permission(s) for role "{role.name}"',
                changed_by=changed_by,
                entity_id=role.id,
                role_name=role.name,
                metadata=PermissionBatchMetadata(role_id=role.id, changes=changes, unchanged=unchanged),
            )
            db.commit()
        except PortalError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Bulk page permission update failed for role %s", role_id)
            raise StoreUnavailableError("Permission store unavailable") from exc

        logger.info("Page permissions for %s: %d changed, %d unchanged", role.name, len(changes), unchanged)
        return BatchResult(role=role.name, changed=len(changes), unchanged=unchanged, audit_id=entry.id)

    @staticmethod
    def bulk_update_action_permissions(
        db: Session,
        page_id: int,
        role: str,
        actions: List[ActionPermissionItem],
        changed_by: Optional[Principal] = None,
    ) -> BatchResult:
        """Apply one role's action rules on one page atomically with one audit entry."""
        for item in actions:
            validate_action(item.action_name)

        try:
            role_obj = role_service.get_role(db, role)
            page = db.query(Page).filter(Page.id == page_id).first()
            if page is None:
                raise ResourceNotFoundError(f"Page {page_id} not found")

            existing = {
                row.action_name: row
                for row in db.query(ActionPermission).filter(
                    ActionPermission.page_id == page.id,
                    ActionPermission.role == role_obj.name,
                )
            }

            changes: List[ActionChangeItem] = []
            unchanged = 0
            for item in actions:
                row = existing.get(item.action_name)
                if row is None:
                    row = ActionPermission(
                        page_id=page.id,
                        role=role_obj.name,
                        action_name=item.action_name,
                        is_allowed=item.is_allowed,
                    )
                    db.add(row)
                    existing[item.action_name] = row
                    changes.append(ActionChangeItem(action_name=item.action_name, previous=None, new=item.is_allowed))
                elif row.is_allowed != item.is_allowed:
                    changes.append(ActionChangeItem(action_name=item.action_name, previous=row.is_allowed, new=item.is_allowed))
                    row.is_allowed = item.is_allowed
                else:
                    unchanged += 1

            entry = audit_service.record(
                db, "action_permissions_bulk_update", "action_permission",
                f'Updated {len(changes)} action permission(s) for role "{role_obj.name}" on "{page.name}"',
                changed_by=changed_by,
                entity_id=page.id,
                role_name=role_obj.name,
                metadata=ActionBatchMetadata(page_id=page.id, changes=changes, unchanged=unchanged),
            )
            db.commit()
        except PortalError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Bulk action permission update failed for %s on page %s", role, page_id)
            raise StoreUnavailableError("Permission store unavailable") from exc

        return BatchResult(role=role_obj.name, changed=len(changes), unchanged=unchanged, audit_id=entry.id)


permission_service = PermissionService()
