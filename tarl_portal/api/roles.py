"""Roles API router."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tarl_portal.core.principal import Principal
from tarl_portal.core.security import get_current_principal, require_admin
from tarl_portal.db.session import get_db
from tarl_portal.schemas.schemas import MessageResponse, RoleCreate, RoleOut, RoleUpdate
from tarl_portal.services.role_service import role_service

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return role_service.list_roles(db)


@router.post("", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Create a new role (admin only)."""
    return role_service.create_role(db, changed_by=principal, **body.model_dump())


@router.get("/{name}", response_model=RoleOut)
async def get_role(
    name: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return role_service.get_role(db, name)


@router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return role_service.update_role(db, role_id, changed_by=principal, **body.model_dump(exclude_unset=True))


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Delete a role that no user holds (admin only)."""
    role_service.delete_role(db, role_id, changed_by=principal)
    return MessageResponse(message="Role deleted")
