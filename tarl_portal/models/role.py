"""Role model for the permission hierarchy."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from tarl_portal.db.base import Base


class Role(Base):
    """System role. Lower hierarchy_level means broader authority."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)  # stored lowercase
    hierarchy_level = Column(Integer, nullable=False, default=4)
    can_manage_hierarchy = Column(Boolean, nullable=False, default=False)
    max_hierarchy_depth = Column(Integer, nullable=False, default=0)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
