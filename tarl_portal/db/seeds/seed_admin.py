"""Seed the admin user from settings."""

from typing import Optional

from sqlalchemy.orm import Session
from tarl_portal.models.user import User
from tarl_portal.models.role import Role
from tarl_portal.core.config import settings


def seed_admin(db: Session) -> Optional[User]:
    """Create the admin user if not already present."""
    admin_role = db.query(Role).filter(Role.name == "admin").first()
    if not admin_role:
        print("⚠️  admin role not found. Run seed_roles first.")
        return None

    existing = db.query(User).filter(User.email == settings.SEED_ADMIN_EMAIL).first()
    if existing:
        print(f"ℹ️  Admin '{settings.SEED_ADMIN_EMAIL}' already exists, skipping.")
        return existing

    admin = User(
        email=settings.SEED_ADMIN_EMAIL,
        full_name="System Admin",
        is_active=True,
        role_id=admin_role.id,
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created admin: {settings.SEED_ADMIN_EMAIL}")
    return admin
