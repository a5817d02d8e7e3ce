"""Role registry: lookup, creation and guarded deletion of roles."""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tarl_portal.core.exceptions import (
    ResourceConflictError,
    ResourceNotFoundError,
    RoleInUseError,
    ValidationError,
)
from tarl_portal.core.principal import Principal
from tarl_portal.models.permission import ActionPermission, PagePermission
from tarl_portal.models.role import Role
from tarl_portal.models.user import User
from tarl_portal.schemas.schemas import RoleChangeMetadata
from tarl_portal.services.audit_service import audit_service

logger = logging.getLogger("tarl_portal.roles")


def normalize_role(name: Optional[str]) -> str:
    """Canonical form of a role name: every stored and compared name goes through here."""
    return (name or "").strip().lower()


class RoleService:
    """Named roles with a hierarchy level. Lower level = broader authority."""

    @staticmethod
    def get_role(db: Session, name: str) -> Role:
        role = db.query(Role).filter(Role.name == normalize_role(name)).first()
        if not role:
            raise ResourceNotFoundError(f"Role '{name}' not found")
        return role

    @staticmethod
    def get_role_by_id(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        return db.query(Role).order_by(Role.hierarchy_level, Role.name).all()

    @staticmethod
    def _ensure_name_free(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
        query = db.query(Role).filter(Role.name == name)
        if exclude_id is not None:
            query = query.filter(Role.id != exclude_id)
        if query.first():
            raise ResourceConflictError(f"Role name '{name}' already exists")

    @staticmethod
    def _commit_unique(db: Session, name: str) -> None:
        """Commit, turning a unique-name race into a conflict."""
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning("Role name %r collided on commit: %s", name, exc.orig)
            raise ResourceConflictError(f"Role name '{name}' already exists") from exc

    @staticmethod
    def create_role(
        db: Session,
        name: str,
        hierarchy_level: int,
        can_manage_hierarchy: bool = False,
        max_hierarchy_depth: int = 0,
        description: Optional[str] = None,
        changed_by: Optional[Principal] = None,
    ) -> Role:
        canonical = normalize_role(name)
        if not canonical:
            raise ValidationError("Role name must not be empty")
        RoleService._ensure_name_free(db, canonical)

        role = Role(
            name=canonical,
            hierarchy_level=hierarchy_level,
            can_manage_hierarchy=can_manage_hierarchy,
            max_hierarchy_depth=max_hierarchy_depth,
            description=description,
        )
        db.add(role)
        RoleService._commit_unique(db, canonical)
        db.refresh(role)

        audit_service.record_after_commit(
            db, "role_created", "role",
            f'Created new role "{canonical}"',
            changed_by=changed_by,
            entity_id=role.id,
            role_name=canonical,
            new_value=canonical,
            metadata=RoleChangeMetadata(role_id=role.id, action="created"),
        )
        return role

    @staticmethod
    def update_role(db: Session, role_id: int, changed_by: Optional[Principal] = None, **changes) -> Role:
        """Update a role. A rename carries its permission rows along."""
        role = RoleService.get_role_by_id(db, role_id)
        previous_name = role.name

        if changes.get("name") is not None:
            new_name = normalize_role(changes.pop("name"))
            if not new_name:
                raise ValidationError("Role name must not be empty")
            if new_name != previous_name:
                RoleService._ensure_name_free(db, new_name, exclude_id=role.id)
                db.query(PagePermission).filter(PagePermission.role == previous_name).update(
                    {"role": new_name}, synchronize_session=False
                )
                db.query(ActionPermission).filter(ActionPermission.role == previous_name).update(
                    {"role": new_name}, synchronize_session=False
                )
                role.name = new_name
        changes.pop("name", None)

        for field, value in changes.items():
            if value is not None:
                setattr(role, field, value)

        RoleService._commit_unique(db, role.name)
        db.refresh(role)

        audit_service.record_after_commit(
            db, "role_updated", "role",
            f'Updated role "{previous_name}" to "{role.name}"',
            changed_by=changed_by,
            entity_id=role.id,
            role_name=role.name,
            previous_value=previous_name,
            new_value=role.name,
            metadata=RoleChangeMetadata(role_id=role.id, action="updated"),
        )
        return role

    @staticmethod
    def delete_role(db: Session, role_id: int, changed_by: Optional[Principal] = None) -> None:
        """Delete a role and its permission rows.

        Raises:
            RoleInUseError: If any user is still assigned the role.
        """
        role = RoleService.get_role_by_id(db, role_id)
        users = db.query(func.count(User.id)).filter(User.role_id == role.id).scalar()
        if users:
            raise RoleInUseError(
                f"Cannot delete role '{role.name}'. There are {users} users assigned to this role."
            )

        name = role.name
        db.query(PagePermission).filter(PagePermission.role == name).delete(synchronize_session=False)
        db.query(ActionPermission).filter(ActionPermission.role == name).delete(synchronize_session=False)
        db.delete(role)
        db.commit()
        logger.info("Deleted role %s", name)

        audit_service.record_after_commit(
            db, "role_deleted", "role",
            f'Deleted role "{name}"',
            changed_by=changed_by,
            entity_id=role_id,
            role_name=name,
            previous_value=name,
            metadata=RoleChangeMetadata(role_id=role_id, action="deleted"),
        )


role_service = RoleService()
