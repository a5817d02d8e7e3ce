"""Hierarchy-scoped records: students and classroom observations."""

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, func
from tarl_portal.db.base import Base


class Student(Base):
    """Individual-level data. Roles without individual access never see rows."""
    __tablename__ = "students"
    __individual_data__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class Observation(Base):
    __tablename__ = "observations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    observed_on = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
