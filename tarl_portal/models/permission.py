"""Role x page and role x page x action permission rows.

A missing row means "fall back", never "denied".
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Index, func
from tarl_portal.db.base import Base


class PagePermission(Base):
    __tablename__ = "role_page_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(String(50), nullable=False)
    page_id = Column(Integer, ForeignKey("pages.id", ondelete="CASCADE"), nullable=False)
    is_allowed = Column(Boolean, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("role", "page_id", name="uq_role_page"),
        Index("ix_role_page_permissions_role", "role"),
    )


class ActionPermission(Base):
    __tablename__ = "page_action_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(Integer, ForeignKey("pages.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(50), nullable=False)
    action_name = Column(String(20), nullable=False)
    is_allowed = Column(Boolean, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("page_id", "role", "action_name", name="uq_page_role_action"),
        Index("ix_page_action_permissions_role", "role"),
    )
