"""Explicit hierarchy assignments for users."""

from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from tarl_portal.db.base import Base


class UserZoneAssignment(Base):
    __tablename__ = "user_zone_assignments"
    __table_args__ = (UniqueConstraint("user_id", "zone_id", name="uq_user_zone"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)


class UserProvinceAssignment(Base):
    __tablename__ = "user_province_assignments"
    __table_args__ = (UniqueConstraint("user_id", "province_id", name="uq_user_province"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    province_id = Column(Integer, ForeignKey("provinces.id"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)


class UserDistrictAssignment(Base):
    __tablename__ = "user_district_assignments"
    __table_args__ = (UniqueConstraint("user_id", "district_id", name="uq_user_district"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    district_id = Column(Integer, ForeignKey("districts.id"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)


class UserSchoolAssignment(Base):
    __tablename__ = "user_school_assignments"
    __table_args__ = (UniqueConstraint("user_id", "school_id", name="uq_user_school"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)


class TeacherClassAssignment(Base):
    __tablename__ = "teacher_class_assignments"
    __table_args__ = (UniqueConstraint("teacher_id", "class_id", name="uq_teacher_class"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)
