"""Menu assembly: the role's visible pages as a sorted, pruned tree."""

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tarl_portal.core.exceptions import StoreUnavailableError
from tarl_portal.models.page import Page
from tarl_portal.models.permission import PagePermission
from tarl_portal.schemas.schemas import MenuNode
from tarl_portal.services.role_service import normalize_role

logger = logging.getLogger("tarl_portal.menu")

DASHBOARD_PATH = "/dashboard"

ROLE_DASHBOARDS = {
    "admin": "/admin",
    "director": "/director",
    "partner": "/partner",
    "coordinator": "/coordinator",
    "teacher": "/teacher",
    "collector": "/collector",
    "intern": "/intern",
    "training organizer": "/training-organizer",
    "participant": "/participant/dashboard",
}


def dashboard_for_role(role: str) -> str:
    return ROLE_DASHBOARDS.get(normalize_role(role), DASHBOARD_PATH)


def localized_label(page: Page, locale: str) -> str:
    if locale == "km" and page.title_kh:
        return page.title_kh
    return page.title or page.name


class MenuService:

    @staticmethod
    def allowed_menu_pages(db: Session, role: str) -> List[Page]:
        return (
            db.query(Page)
            .join(PagePermission, PagePermission.page_id == Page.id)
            .filter(
                PagePermission.role == normalize_role(role),
                PagePermission.is_allowed.is_(True),
                Page.is_displayed_in_menu.is_(True),
            )
            .all()
        )

    @staticmethod
    def build_menu(db: Session, role: str, locale: str = "en") -> List[MenuNode]:
        """Build the menu tree for ``role``.

        Pages are held in a flat list with an id -> index map; a page is kept
        only if every ancestor up to the root is also allowed. Parent-menu
        pages that end up with no children are dropped.
        """
        try:
            pages = MenuService.allowed_menu_pages(db, role)
        except SQLAlchemyError as exc:
            logger.exception("Menu lookup failed for %s", role)
            raise StoreUnavailableError("Permission store unavailable") from exc

        index: Dict[int, int] = {page.id: i for i, page in enumerate(pages)}
        children: Dict[Optional[int], List[int]] = {}

        def reachable(i: int) -> bool:
            seen = set()
            while True:
                parent_id = pages[i].parent_page_id
                if parent_id is None:
                    return True
                if parent_id not in index or parent_id in seen:
                    return False
                seen.add(parent_id)
                i = index[parent_id]

        for i, page in enumerate(pages):
            if reachable(i):
                children.setdefault(page.parent_page_id, []).append(i)

        dashboard = dashboard_for_role(role)

        def build(i: int) -> Optional[MenuNode]:
            page = pages[i]
            kids = [node for node in (build(j) for j in children.get(page.id, [])) if node is not None]
            if page.is_parent_menu and not kids:
                return None
            kids.sort(key=lambda node: (node.sort_order, node.name))
            return MenuNode(
                id=page.id,
                name=page.name,
                label=localized_label(page, locale),
                path=dashboard if page.path == DASHBOARD_PATH else page.path,
                icon=page.icon_name,
                parent_page_id=page.parent_page_id,
                sort_order=page.sort_order,
                children=kids,
            )

        roots = [node for node in (build(i) for i in children.get(None, [])) if node is not None]
        roots.sort(key=lambda node: (node.sort_order, node.name))
        return roots


def count_nodes(nodes: List[MenuNode]) -> int:
    return sum(1 + count_nodes(node.children) for node in nodes)


menu_service = MenuService()
