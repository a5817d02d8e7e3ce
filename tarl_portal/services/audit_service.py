"""Audit service: append-only trail of permission, role and page changes."""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Dict, Union

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tarl_portal.core.principal import Principal
from tarl_portal.models.audit_log import AuditLog
from tarl_portal.schemas.schemas import (
    AuditLogOut,
    PermissionBatchMetadata,
    ActionBatchMetadata,
    RoleChangeMetadata,
    PageChangeMetadata,
    MenuReorderMetadata,
    SeedRunMetadata,
)

logger = logging.getLogger("tarl_portal.audit")

METADATA_KINDS = {
    "page_permission_batch": PermissionBatchMetadata,
    "action_permission_batch": ActionBatchMetadata,
    "role_change": RoleChangeMetadata,
    "page_change": PageChangeMetadata,
    "menu_reorder": MenuReorderMetadata,
    "seed_run": SeedRunMetadata,
}


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def serialize_metadata(metadata: Union[BaseModel, Dict[str, Any], None]) -> Optional[str]:
    if metadata is None:
        return None
    if isinstance(metadata, BaseModel):
        return metadata.model_dump_json()
    return json.dumps(metadata, default=str)


def parse_metadata(raw: Optional[str]) -> Union[BaseModel, Dict[str, Any], None]:
    """Turn stored JSON back into its typed payload; unknown shapes stay a dict."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Unparseable audit metadata: %r", raw[:200])
        return {"raw": raw}
    if isinstance(data, dict):
        model = METADATA_KINDS.get(data.get("kind"))
        if model is not None:
            return model.model_validate(data)
        return data
    return {"value": data}


class AuditService:
    """Records immutable audit log entries for permission-table mutations."""

    @staticmethod
    def record(
        db: Session,
        action_type: str,
        entity_type: str,
        description: str,
        changed_by: Optional[Principal] = None,
        entity_id: Optional[int] = None,
        role_name: Optional[str] = None,
        previous_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        metadata: Union[BaseModel, Dict[str, Any], None] = None,
    ) -> AuditLog:
        """Add an audit row to the caller's transaction.

        The row is flushed but not committed, so it lands or rolls back
        together with the mutation it describes.
        """
        entry = AuditLog(
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            role_name=role_name,
            previous_value=_to_text(previous_value),
            new_value=_to_text(new_value),
            changed_by_user_id=changed_by.user_id if changed_by else None,
            changed_by_role=changed_by.role if changed_by else None,
            description=description,
            metadata_json=serialize_metadata(metadata),
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def record_after_commit(db: Session, action_type: str, entity_type: str, description: str, **kwargs) -> Optional[AuditLog]:
        """Write an audit row for a mutation that has already been committed.

        A failure here is logged and the committed mutation stays in place.
        """
        try:
            entry = AuditService.record(db, action_type, entity_type, description, **kwargs)
            db.commit()
            return entry
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to write audit entry %s for %s", action_type, entity_type)
            return None

    @staticmethod
    def query_logs(
        db: Session,
        actor_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        action_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Query audit logs with filters and pagination, newest first."""
        query = db.query(AuditLog)

        if actor_id:
            query = query.filter(AuditLog.changed_by_user_id == actor_id)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if action_type:
            query = query.filter(AuditLog.action_type.ilike(f"%{action_type}%"))
        if start:
            query = query.filter(AuditLog.created_at >= start)
        if end:
            query = query.filter(AuditLog.created_at <= end)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    @staticmethod
    def summarize(db: Session, days: int = 30) -> Dict[str, Any]:
        """Counts by action type and distinct actors over the last ``days`` days."""
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
        window = db.query(AuditLog).filter(AuditLog.created_at >= cutoff)

        by_action_type = {
            action_type: count
            for action_type, count in (
                window.with_entities(AuditLog.action_type, func.count(AuditLog.id))
                .group_by(AuditLog.action_type)
                .all()
            )
        }
        distinct_actors = (
            window.with_entities(func.count(func.distinct(AuditLog.changed_by_user_id))).scalar() or 0
        )

        return {
            "days": days,
            "total": sum(by_action_type.values()),
            "by_action_type": by_action_type,
            "distinct_actors": distinct_actors,
        }

    @staticmethod
    def to_out(entry: AuditLog) -> AuditLogOut:
        return AuditLogOut(
            id=entry.id,
            action_type=entry.action_type,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            role_name=entry.role_name,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            changed_by_user_id=entry.changed_by_user_id,
            changed_by_role=entry.changed_by_role,
            description=entry.description,
            metadata=parse_metadata(entry.metadata_json),
            created_at=entry.created_at,
        )


audit_service = AuditService()
