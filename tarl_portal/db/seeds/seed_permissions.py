"""Seed default page and action permissions per role.

Only missing rows are inserted, so an admin's later edits survive re-seeding.
"""

from typing import Tuple

from sqlalchemy.orm import Session

from tarl_portal.models.page import Page
from tarl_portal.models.permission import ActionPermission, PagePermission
from tarl_portal.schemas.schemas import ACTION_NAMES
from tarl_portal.services.permission_service import permission_service

ALL_PAGES = "*"

ROLE_PAGES = {
    "admin": ALL_PAGES,
    "director": ["dashboard", "schools", "students", "observations", "visits", "reports",
                 "analytics", "users", "training", "training-programs", "training-sessions"],
    "partner": ["dashboard", "schools", "observations", "visits", "reports", "analytics"],
    "coordinator": ["dashboard", "schools", "students", "observations", "visits", "reports",
                    "training", "training-programs", "training-sessions", "training-participants"],
    "teacher": ["dashboard", "students", "observations", "reports"],
    "training organizer": ["dashboard", "training", "training-programs", "training-sessions",
                           "training-participants", "training-feedback"],
    "collector": ["dashboard", "observations"],
    "intern": ["dashboard", "reports"],
    "participant": ["dashboard", "training", "training-feedback"],
}

# Explicit denials layered over the legacy fallback.
ACTION_DENIALS = {
    "teacher": {"schools": ["create", "delete"], "users": ["create", "update", "delete", "bulk_update"]},
    "partner": {"observations": ["create", "update", "delete"]},
}


def seed_permissions(db: Session) -> Tuple[int, int]:
    """Returns (page rows added, action rows added)."""
    pages = {page.name: page for page in db.query(Page).all()}
    existing_pages = {(row.role, row.page_id) for row in db.query(PagePermission).all()}
    existing_actions = {
        (row.role, row.page_id, row.action_name) for row in db.query(ActionPermission).all()
    }

    page_rows = 0
    for role, allowed in ROLE_PAGES.items():
        for page in pages.values():
            if (role, page.id) in existing_pages:
                continue
            is_allowed = allowed == ALL_PAGES or page.name in allowed
            db.add(PagePermission(role=role, page_id=page.id, is_allowed=is_allowed))
            page_rows += 1

    action_rows = 0
    for page in pages.values():
        for action in permission_service.get_default_actions_for_page(page.name):
            if ("admin", page.id, action) not in existing_actions:
                db.add(ActionPermission(page_id=page.id, role="admin", action_name=action, is_allowed=True))
                action_rows += 1

    for role, denials in ACTION_DENIALS.items():
        for page_name, actions in denials.items():
            page = pages.get(page_name)
            if page is None:
                continue
            for action in actions:
                if action in ACTION_NAMES and (role, page.id, action) not in existing_actions:
                    db.add(ActionPermission(page_id=page.id, role=role, action_name=action, is_allowed=False))
                    action_rows += 1

    db.commit()
    print(f"✅ Seeded {page_rows} page permissions and {action_rows} action permissions")
    return page_rows, action_rows
