"""Seed default roles into the database."""

from sqlalchemy.orm import Session
from tarl_portal.models.role import Role

ROLES = [
    {"name": "admin", "hierarchy_level": 0, "can_manage_hierarchy": True, "max_hierarchy_depth": 5,
     "description": "Full system access"},
    {"name": "director", "hierarchy_level": 1, "can_manage_hierarchy": True, "max_hierarchy_depth": 4,
     "description": "Oversees assigned zones and provinces"},
    {"name": "partner", "hierarchy_level": 1, "can_manage_hierarchy": False, "max_hierarchy_depth": 4,
     "description": "Partner organization staff with regional oversight"},
    {"name": "coordinator", "hierarchy_level": 2, "can_manage_hierarchy": True, "max_hierarchy_depth": 2,
     "description": "Coordinates assigned districts and schools"},
    {"name": "teacher", "hierarchy_level": 3, "description": "Teaches assigned classes"},
    {"name": "training organizer", "hierarchy_level": 3, "description": "Runs training programs"},
    {"name": "collector", "hierarchy_level": 4, "description": "Collects assessment data, no individual records"},
    {"name": "intern", "hierarchy_level": 4, "description": "Read-only intern access"},
    {"name": "participant", "hierarchy_level": 4, "description": "Training participant"},
]


def seed_roles(db: Session) -> int:
    """Insert default roles if they don't already exist. Returns how many were added."""
    added = 0
    for role_data in ROLES:
        existing = db.query(Role).filter(Role.name == role_data["name"]).first()
        if not existing:
            db.add(Role(**role_data))
            added += 1

    db.commit()
    print(f"✅ Seeded {added} roles ({len(ROLES)} defined)")
    return added
