"""Permission audit log model: append-only."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func
from tarl_portal.db.base import Base


class AuditLog(Base):
    """Immutable trail of permission, role, page and menu changes.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level).
    """
    __tablename__ = "permission_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action_type = Column(String(100), nullable=False, index=True)  # e.g. "page_permissions_updated"
    entity_type = Column(String(50), nullable=False, index=True)  # permission, action_permission, role, page, menu
    entity_id = Column(Integer, nullable=True)
    role_name = Column(String(50), nullable=True)
    previous_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    changed_by_user_id = Column(Integer, nullable=True, index=True)
    changed_by_role = Column(String(50), nullable=True)
    description = Column(Text, nullable=False)
    metadata_json = Column("metadata", Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
