"""Action permissions API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarl_portal.core.config import Settings, get_settings
from tarl_portal.core.exceptions import AuthorizationError
from tarl_portal.core.principal import Principal
from tarl_portal.core.security import get_current_principal, require_admin
from tarl_portal.db.session import get_db
from tarl_portal.schemas.schemas import (
    ActionBatchResponse,
    ActionCheckRequest,
    ActionCheckResponse,
    ActionPermissionBatch,
    ActionPermissionOut,
    BatchResult,
    PageActionMatrix,
)
from tarl_portal.services.permission_service import permission_service
from tarl_portal.services.role_service import normalize_role

router = APIRouter(prefix="/action-permissions", tags=["action-permissions"])


def _role_to_check(principal: Principal, requested: Optional[str]) -> str:
    """Only admins may ask on behalf of another role."""
    if not requested or normalize_role(requested) == principal.role:
        return principal.role
    if not principal.is_admin:
        raise AuthorizationError("Only admins may check permissions for another role")
    return normalize_role(requested)


@router.post("/check", response_model=ActionCheckResponse)
async def check_action(
    body: ActionCheckRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    app_settings: Settings = Depends(get_settings),
):
    role = _role_to_check(principal, body.user_role)
    allowed = permission_service.can_perform_action(
        db, role, body.page_name, body.action_name, app_settings.LEGACY_ALLOWED_ROLES,
    )
    return ActionCheckResponse(
        can_perform=allowed,
        user_role=role,
        page_name=body.page_name,
        action_name=body.action_name,
    )


@router.get("/check", response_model=ActionBatchResponse)
async def check_actions(
    page_name: str = Query(..., min_length=1),
    actions: Optional[str] = Query(None, description="Comma-separated action names"),
    user_role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    app_settings: Settings = Depends(get_settings),
):
    """Check several actions at once; defaults to every available action."""
    role = _role_to_check(principal, user_role)
    wanted = [a.strip() for a in actions.split(",") if a.strip()] if actions else None
    return ActionBatchResponse(
        permissions=permission_service.check_actions(
            db, role, page_name, wanted, app_settings.LEGACY_ALLOWED_ROLES,
        ),
        user_role=role,
        page_name=page_name,
    )


@router.get("/available", response_model=List[str])
async def available_actions(principal: Principal = Depends(get_current_principal)):
    return permission_service.get_available_actions()


@router.get("/matrix", response_model=List[PageActionMatrix])
async def action_matrix(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    app_settings: Settings = Depends(get_settings),
):
    """Effective actions of every page for the caller's role."""
    return permission_service.get_role_action_matrix(db, principal.role, app_settings.LEGACY_ALLOWED_ROLES)


@router.get("", response_model=List[ActionPermissionOut])
async def list_action_permissions(
    page_name: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return permission_service.get_page_action_permissions(db, page_name, role)


@router.put("", response_model=BatchResult)
async def update_action_permissions(
    body: ActionPermissionBatch,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Set one role's action rules on one page (admin only)."""
    return permission_service.bulk_update_action_permissions(
        db, body.page_id, body.role, body.actions, changed_by=principal,
    )
