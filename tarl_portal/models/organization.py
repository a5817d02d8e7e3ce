"""Organization tree: zone > province > district > school > class.

``__scope_level__`` names the hierarchy level a table's own primary key
belongs to, so scope filters can match ``School.id`` against the accessible
schools instead of looking for a ``school_id`` column.
"""

from sqlalchemy import Column, Integer, String, ForeignKey
from tarl_portal.db.base import Base


class Zone(Base):
    __tablename__ = "zones"
    __scope_level__ = "zone"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)


class Province(Base):
    __tablename__ = "provinces"
    __scope_level__ = "province"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True, index=True)


class District(Base):
    __tablename__ = "districts"
    __scope_level__ = "district"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    province_id = Column(Integer, ForeignKey("provinces.id"), nullable=False, index=True)


class School(Base):
    """School with its region columns denormalized for cheap OR filters."""
    __tablename__ = "schools"
    __scope_level__ = "school"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=True)
    district_id = Column(Integer, ForeignKey("districts.id"), nullable=True, index=True)
    province_id = Column(Integer, ForeignKey("provinces.id"), nullable=True, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True, index=True)


class SchoolClass(Base):
    __tablename__ = "classes"
    __scope_level__ = "class"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    grade = Column(Integer, nullable=True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
