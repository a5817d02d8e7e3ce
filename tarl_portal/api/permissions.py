"""Page permissions API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarl_portal.core.config import Settings, get_settings
from tarl_portal.core.principal import Principal
from tarl_portal.core.security import get_current_principal, require_admin
from tarl_portal.db.session import get_db
from tarl_portal.schemas.schemas import (
    BatchResult,
    PageAccessResponse,
    PagePermissionBatch,
    PagePermissionOut,
)
from tarl_portal.services.permission_service import permission_service

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/pages/{page_name}", response_model=PageAccessResponse)
async def check_page_access(
    page_name: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    app_settings: Settings = Depends(get_settings),
):
    """Route guard for the UI: may the caller open this page?"""
    allowed = permission_service.can_access_page(db, principal.role, page_name, app_settings.LEGACY_ALLOWED_ROLES)
    return PageAccessResponse(page_name=page_name, role=principal.role, can_access=allowed)


@router.get("", response_model=List[PagePermissionOut])
async def list_page_permissions(
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return permission_service.list_page_permissions(db, role)


@router.put("", response_model=BatchResult)
async def update_page_permissions(
    body: PagePermissionBatch,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Replace a role's page permissions in one transaction (admin only)."""
    return permission_service.bulk_update_page_permissions(
        db, body.role_id, body.permissions, changed_by=principal,
    )
