"""Admin / Audit API router."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tarl_portal.core.config import Settings, get_settings
from tarl_portal.core.principal import Principal
from tarl_portal.core.security import require_admin
from tarl_portal.db.session import get_db
from tarl_portal.schemas.schemas import AuditSummary
from tarl_portal.services.audit_service import audit_service

logger = logging.getLogger("tarl_portal.admin")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit")
async def get_audit_logs(
    actor_id: Optional[int] = Query(None),
    entity_type: Optional[str] = Query(None),
    action_type: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Query audit logs (admin only)."""
    result = audit_service.query_logs(
        db, actor_id, entity_type, action_type, start, end, page, page_size,
    )
    return {
        "logs": [audit_service.to_out(log) for log in result["logs"]],
        "total": result["total"],
        "page": result["page"],
        "page_size": result["page_size"],
    }


@router.get("/audit/summary", response_model=AuditSummary)
async def get_audit_summary(
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
    app_settings: Settings = Depends(get_settings),
):
    return audit_service.summarize(db, days or app_settings.AUDIT_SUMMARY_DAYS)


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """System health check."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.exception("Database health check failed")

    return {
        "database": "ok" if db_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }
