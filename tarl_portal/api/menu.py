"""Menu API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarl_portal.core.config import Settings, get_settings
from tarl_portal.core.principal import Principal
from tarl_portal.core.security import get_current_principal
from tarl_portal.db.session import get_db
from tarl_portal.schemas.schemas import MenuResponse
from tarl_portal.services.menu_service import count_nodes, menu_service

router = APIRouter(prefix="/menu", tags=["menu"])


@router.get("", response_model=MenuResponse)
async def get_menu(
    locale: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    app_settings: Settings = Depends(get_settings),
):
    """Navigation tree for the caller's role."""
    items = menu_service.build_menu(db, principal.role, locale or app_settings.DEFAULT_LOCALE)
    return MenuResponse(menu_items=items, user_role=principal.role, total_allowed=count_nodes(items))
