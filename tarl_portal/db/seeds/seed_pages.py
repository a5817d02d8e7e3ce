"""Seed the page catalog and its menu tree."""

from sqlalchemy.orm import Session
from tarl_portal.models.page import Page

# (name, path, title, title_kh, icon, parent name, sort order, parent menu)
PAGES = [
    ("dashboard", "/dashboard", "Dashboard", "ផ្ទាំងគ្រប់គ្រង", "home", None, 1, False),
    ("schools", "/schools", "Schools", "សាលារៀន", "school", None, 10, False),
    ("students", "/students", "Students", "សិស្ស", "users", None, 20, False),
    ("observations", "/observations", "Observations", "ការសង្កេត", "eye", None, 30, False),
    ("visits", "/visits", "Visits", "ការចុះទស្សនកិច្ច", "map-pin", None, 40, False),
    ("reports", "/reports", "Reports", "របាយការណ៍", "file-text", None, 50, False),
    ("analytics", "/analytics", "Analytics", "ការវិភាគ", "bar-chart", None, 60, False),
    ("users", "/users", "Users", "អ្នកប្រើប្រាស់", "user", None, 70, False),
    ("training", "/training", "Training", "វគ្គបណ្តុះបណ្តាល", "book", None, 80, True),
    ("training-programs", "/training/programs", "Programs", "កម្មវិធី", None, "training", 1, False),
    ("training-sessions", "/training/sessions", "Sessions", "វគ្គ", None, "training", 2, False),
    ("training-participants", "/training/participants", "Participants", "អ្នកចូលរួម", None, "training", 3, False),
    ("training-feedback", "/training/feedback", "Feedback", "មតិកែលម្អ", None, "training", 4, False),
    ("settings", "/settings", "Settings", "ការកំណត់", "settings", None, 90, True),
    ("page-permissions", "/settings/page-permissions", "Page Permissions", "សិទ្ធិទំព័រ", None, "settings", 1, False),
    ("menu-management", "/settings/menu-management", "Menu Management", "គ្រប់គ្រងម៉ឺនុយ", None, "settings", 2, False),
    ("audit-logs", "/admin/audit-logs", "Audit Logs", "កំណត់ហេតុសវនកម្ម", "shield", None, 100, False),
]


def seed_pages(db: Session) -> int:
    """Insert missing pages, parents first. Returns how many were added."""
    added = 0
    for name, path, title, title_kh, icon, parent_name, sort_order, is_parent in PAGES:
        if db.query(Page).filter(Page.name == name).first():
            continue
        parent = db.query(Page).filter(Page.name == parent_name).first() if parent_name else None
        db.add(Page(
            name=name,
            path=path,
            title=title,
            title_kh=title_kh,
            icon_name=icon,
            parent_page_id=parent.id if parent else None,
            sort_order=sort_order,
            is_parent_menu=is_parent,
            menu_level=parent.menu_level + 1 if parent else 1,
        ))
        db.flush()
        added += 1

    db.commit()
    print(f"✅ Seeded {added} pages")
    return added
