"""Models package: import all models so metadata.create_all can discover them."""

from tarl_portal.models.role import Role
from tarl_portal.models.organization import Zone, Province, District, School, SchoolClass
from tarl_portal.models.user import User
from tarl_portal.models.assignment import (
    UserZoneAssignment, UserProvinceAssignment, UserDistrictAssignment,
    UserSchoolAssignment, TeacherClassAssignment,
)
from tarl_portal.models.student import Student, Observation
from tarl_portal.models.page import Page
from tarl_portal.models.permission import PagePermission, ActionPermission
from tarl_portal.models.audit_log import AuditLog

__all__ = [
    "Role", "User",
    "Zone", "Province", "District", "School", "SchoolClass",
    "UserZoneAssignment", "UserProvinceAssignment", "UserDistrictAssignment",
    "UserSchoolAssignment", "TeacherClassAssignment",
    "Student", "Observation",
    "Page", "PagePermission", "ActionPermission",
    "AuditLog",
]
