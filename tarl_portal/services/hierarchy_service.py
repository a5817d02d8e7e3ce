"""Hierarchy scope resolution: which slice of the organization tree a user sees.

A user's scope is recomputed from the database on every call and turned
into a SQLAlchemy filter with ``scope_condition``. Only admins get an
always-true filter; anything without an applicable condition is always-false.
"""

import logging
from typing import Dict, Optional, Set

from sqlalchemy import false, or_, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from tarl_portal.core.exceptions import AuthorizationError, ResourceNotFoundError, StoreUnavailableError
from tarl_portal.core.principal import Principal
from tarl_portal.models.assignment import (
    TeacherClassAssignment,
    UserDistrictAssignment,
    UserProvinceAssignment,
    UserSchoolAssignment,
    UserZoneAssignment,
)
from tarl_portal.models.organization import District, Province, School, SchoolClass, Zone
from tarl_portal.models.user import User
from tarl_portal.schemas.schemas import UserHierarchy
from tarl_portal.services.audit_service import audit_service
from tarl_portal.services.role_service import normalize_role

logger = logging.getLogger("tarl_portal.hierarchy")

EXPANDING_ROLES = {"director", "partner"}
NO_INDIVIDUAL_ACCESS_ROLES = {"collector"}

# level -> (assignment model, assignment column, target model)
ASSIGNMENT_TABLES = {
    "zone": (UserZoneAssignment, "zone_id", Zone),
    "province": (UserProvinceAssignment, "province_id", Province),
    "district": (UserDistrictAssignment, "district_id", District),
    "school": (UserSchoolAssignment, "school_id", School),
    "class": (TeacherClassAssignment, "class_id", SchoolClass),
}

SCOPE_COLUMNS = (
    ("zone", "zone_id"),
    ("province", "province_id"),
    ("district", "district_id"),
    ("school", "school_id"),
    ("class", "class_id"),
)


def _owner_column(model):
    return model.teacher_id if model is TeacherClassAssignment else model.user_id


def _accessible(hierarchy: UserHierarchy, level: str):
    return {
        "zone": hierarchy.accessible_zones,
        "province": hierarchy.accessible_provinces,
        "district": hierarchy.accessible_districts,
        "school": hierarchy.accessible_schools,
        "class": hierarchy.accessible_classes,
    }[level]


class HierarchyService:

    @staticmethod
    def _direct_assignments(db: Session, user: User) -> Dict[str, Set[int]]:
        ids: Dict[str, Set[int]] = {level: set() for level in ASSIGNMENT_TABLES}
        for level in ("zone", "province", "district", "school"):
            own = getattr(user, f"{level}_id")
            if own is not None:
                ids[level].add(own)
            model, column, _ = ASSIGNMENT_TABLES[level]
            rows = (
                db.query(getattr(model, column))
                .filter(model.user_id == user.id, model.is_active.is_(True))
                .all()
            )
            ids[level].update(value for (value,) in rows)
        return ids

    @staticmethod
    def _expand_down(db: Session, ids: Dict[str, Set[int]]) -> None:
        """Zones pull in their provinces, provinces their districts, and any of them their schools."""
        if ids["zone"]:
            ids["province"].update(
                pid for (pid,) in db.query(Province.id).filter(Province.zone_id.in_(ids["zone"]))
            )
        if ids["province"]:
            ids["district"].update(
                did for (did,) in db.query(District.id).filter(District.province_id.in_(ids["province"]))
            )

        school_filters = []
        if ids["district"]:
            school_filters.append(School.district_id.in_(ids["district"]))
        if ids["province"]:
            school_filters.append(School.province_id.in_(ids["province"]))
        if ids["zone"]:
            school_filters.append(School.zone_id.in_(ids["zone"]))
        if school_filters:
            ids["school"].update(sid for (sid,) in db.query(School.id).filter(or_(*school_filters)))

    @staticmethod
    def get_user_hierarchy(db: Session, user_id: int) -> UserHierarchy:
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise ResourceNotFoundError(f"User {user_id} not found")

            role = normalize_role(user.role.name)
            hierarchy = UserHierarchy(
                user_id=user.id,
                role=role,
                hierarchy_level=user.role.hierarchy_level,
                can_manage_hierarchy=user.role.can_manage_hierarchy,
                max_hierarchy_depth=user.role.max_hierarchy_depth,
            )

            if role == "admin":
                hierarchy.unrestricted = True
                hierarchy.accessible_zones = [i for (i,) in db.query(Zone.id).order_by(Zone.id)]
                hierarchy.accessible_provinces = [i for (i,) in db.query(Province.id).order_by(Province.id)]
                hierarchy.accessible_districts = [i for (i,) in db.query(District.id).order_by(District.id)]
                hierarchy.accessible_schools = [i for (i,) in db.query(School.id).order_by(School.id)]
                hierarchy.accessible_classes = [i for (i,) in db.query(SchoolClass.id).order_by(SchoolClass.id)]
                return hierarchy

            if role in NO_INDIVIDUAL_ACCESS_ROLES:
                hierarchy.individual_access = False
                return hierarchy

            if role == "teacher":
                rows = (
                    db.query(TeacherClassAssignment.class_id)
                    .filter(
                        TeacherClassAssignment.teacher_id == user.id,
                        TeacherClassAssignment.is_active.is_(True),
                    )
                    .all()
                )
                hierarchy.accessible_classes = sorted({class_id for (class_id,) in rows})
                return hierarchy

            ids = HierarchyService._direct_assignments(db, user)
            if role in EXPANDING_ROLES:
                HierarchyService._expand_down(db, ids)

            hierarchy.accessible_zones = sorted(ids["zone"])
            hierarchy.accessible_provinces = sorted(ids["province"])
            hierarchy.accessible_districts = sorted(ids["district"])
            hierarchy.accessible_schools = sorted(ids["school"])
            return hierarchy
        except SQLAlchemyError as exc:
            logger.exception("Hierarchy lookup failed for user %s", user_id)
            raise StoreUnavailableError("Hierarchy store unavailable") from exc

    @staticmethod
    def scope_condition(hierarchy: UserHierarchy, entity):
        """Boolean SQL expression restricting ``entity`` rows to the user's scope."""
        if hierarchy.unrestricted:
            return true()
        if getattr(entity, "__individual_data__", False) and not hierarchy.individual_access:
            return false()

        conditions = []
        own_level = getattr(entity, "__scope_level__", None)
        for level, column in SCOPE_COLUMNS:
            ids = _accessible(hierarchy, level)
            if level == own_level:
                column = "id"
            if ids and hasattr(entity, column):
                conditions.append(getattr(entity, column).in_(ids))

        if entity is User:
            conditions.append(User.id == hierarchy.user_id)
        if hasattr(entity, "created_by"):
            conditions.append(entity.created_by == hierarchy.user_id)

        if not conditions:
            return false()
        return or_(*conditions)

    @staticmethod
    def apply_scope(query: Query, hierarchy: UserHierarchy, entity) -> Query:
        return query.filter(HierarchyService.scope_condition(hierarchy, entity))

    @staticmethod
    def can_access_record(db: Session, hierarchy: UserHierarchy, entity, record_id: int) -> bool:
        query = db.query(entity.id).filter(entity.id == record_id)
        return HierarchyService.apply_scope(query, hierarchy, entity).first() is not None

    # ---- Assignments ----

    @staticmethod
    def _target_in_scope(db: Session, hierarchy: UserHierarchy, level: str, target_id: int) -> bool:
        if level == "class":
            school_id = db.query(SchoolClass.school_id).filter(SchoolClass.id == target_id).scalar()
            return school_id is not None and HierarchyService.can_access_record(db, hierarchy, School, school_id)
        _, _, target_model = ASSIGNMENT_TABLES[level]
        return HierarchyService.can_access_record(db, hierarchy, target_model, target_id)

    @staticmethod
    def ensure_can_manage(db: Session, actor: Principal, user_id: int, level: str, target_id: int) -> None:
        """Raise unless ``actor`` may change ``user_id``'s assignment to ``level``/``target_id``.

        Admins may change anything. Other managers are limited to users whose
        role sits between one and ``max_hierarchy_depth`` levels below their own,
        never themselves, and only to targets inside their own scope.
        """
        if actor.is_admin:
            return
        manager = HierarchyService.get_user_hierarchy(db, actor.user_id)
        if not manager.can_manage_hierarchy:
            raise AuthorizationError(f"Role '{actor.role}' cannot manage hierarchy assignments")
        if user_id == actor.user_id:
            raise AuthorizationError("Users cannot change their own hierarchy assignments")

        assignee = db.query(User).filter(User.id == user_id).first()
        if assignee is None:
            raise ResourceNotFoundError(f"User {user_id} not found")
        depth = assignee.role.hierarchy_level - manager.hierarchy_level
        if not 0 < depth <= manager.max_hierarchy_depth:
            raise AuthorizationError(
                f"Role '{actor.role}' cannot manage users with role '{normalize_role(assignee.role.name)}'"
            )

        if not HierarchyService._target_in_scope(db, manager, level, target_id):
            logger.warning(
                "User %s tried to assign user %s to %s %s outside their scope",
                actor.user_id, user_id, level, target_id,
            )
            raise AuthorizationError(f"{level.capitalize()} {target_id} is outside your hierarchy")

    @staticmethod
    def _assignment_query(db: Session, level: str, user_id: int, target_id: int):
        model, column, _ = ASSIGNMENT_TABLES[level]
        return db.query(model).filter(_owner_column(model) == user_id, getattr(model, column) == target_id)

    @staticmethod
    def assign_user_to_hierarchy(
        db: Session,
        user_id: int,
        level: str,
        target_id: int,
        assigned_by: Optional[Principal] = None,
    ):
        """Create the assignment or re-activate an existing one."""
        model, column, target_model = ASSIGNMENT_TABLES[level]
        if db.query(User.id).filter(User.id == user_id).first() is None:
            raise ResourceNotFoundError(f"User {user_id} not found")
        if db.query(target_model.id).filter(target_model.id == target_id).first() is None:
            raise ResourceNotFoundError(f"{level.capitalize()} {target_id} not found")

        row = HierarchyService._assignment_query(db, level, user_id, target_id).first()
        if row is None:
            owner = "teacher_id" if model is TeacherClassAssignment else "user_id"
            row = model(**{owner: user_id, column: target_id})
            db.add(row)
        row.is_active = True
        row.assigned_by = assigned_by.user_id if assigned_by else None
        db.commit()
        db.refresh(row)

        audit_service.record_after_commit(
            db, "hierarchy_assigned", "user",
            f"Assigned user {user_id} to {level} {target_id}",
            changed_by=assigned_by,
            entity_id=user_id,
            metadata={"level": level, "target_id": target_id},
        )
        return row

    @staticmethod
    def revoke_user_assignment(
        db: Session,
        user_id: int,
        level: str,
        target_id: int,
        revoked_by: Optional[Principal] = None,
    ) -> None:
        row = HierarchyService._assignment_query(db, level, user_id, target_id).first()
        if row is None or not row.is_active:
            raise ResourceNotFoundError(f"User {user_id} has no active {level} assignment to {target_id}")
        row.is_active = False
        db.commit()

        audit_service.record_after_commit(
            db, "hierarchy_revoked", "user",
            f"Revoked user {user_id} from {level} {target_id}",
            changed_by=revoked_by,
            entity_id=user_id,
            metadata={"level": level, "target_id": target_id},
        )


hierarchy_service = HierarchyService()
