"""Pages API router."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tarl_portal.core.principal import Principal
from tarl_portal.core.security import get_current_principal, require_admin
from tarl_portal.db.session import get_db
from tarl_portal.schemas.schemas import MessageResponse, PageCreate, PageOrderRequest, PageOut, PageUpdate
from tarl_portal.services.page_service import page_service

router = APIRouter(prefix="/pages", tags=["pages"])


@router.get("", response_model=List[PageOut])
async def list_pages(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return page_service.list_pages(db)


@router.post("", response_model=PageOut, status_code=201)
async def create_page(
    body: PageCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return page_service.create_page(db, body.model_dump(), changed_by=principal)


# Declared before /{page_id} so "order" is not parsed as an id.
@router.put("/order", response_model=MessageResponse)
async def reorder_pages(
    body: PageOrderRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Persist a new menu order (admin only)."""
    count = page_service.reorder_pages(db, body.items, changed_by=principal)
    return MessageResponse(message="Menu order updated", detail=f"{count} page(s) reordered")


@router.put("/{page_id}", response_model=PageOut)
async def update_page(
    page_id: int,
    body: PageUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return page_service.update_page(db, page_id, body.model_dump(exclude_unset=True), changed_by=principal)


@router.delete("/{page_id}", response_model=MessageResponse)
async def delete_page(
    page_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    page_service.delete_page(db, page_id, changed_by=principal)
    return MessageResponse(message="Page deleted")
