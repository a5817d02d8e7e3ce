"""Run every seed routine and record one audit summary for the run."""

from sqlalchemy.orm import Session

from tarl_portal.db.seeds.seed_roles import seed_roles
from tarl_portal.db.seeds.seed_pages import seed_pages
from tarl_portal.db.seeds.seed_permissions import seed_permissions
from tarl_portal.db.seeds.seed_admin import seed_admin
from tarl_portal.db.seeds.seed_sample_data import seed_sample_data
from tarl_portal.schemas.schemas import SeedRunMetadata
from tarl_portal.services.audit_service import audit_service


def seed_all(db: Session, sample_data: bool = False) -> SeedRunMetadata:
    roles = seed_roles(db)
    pages = seed_pages(db)
    page_permissions, action_permissions = seed_permissions(db)
    seed_admin(db)
    if sample_data:
        seed_sample_data(db)

    summary = SeedRunMetadata(
        roles=roles,
        pages=pages,
        page_permissions=page_permissions,
        action_permissions=action_permissions,
    )
    audit_service.record_after_commit(
        db, "seed_run", "permission",
        f"Seeded {roles} roles, {pages} pages, {page_permissions} page and "
        f"{action_permissions} action permissions",
        metadata=summary,
    )
    return summary
