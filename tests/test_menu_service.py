"""
Menu assembly tests.
"""

from tarl_portal.services.menu_service import count_nodes, dashboard_for_role, menu_service
from tarl_portal.services.permission_service import permission_service


def _walk(nodes):
    for node in nodes:
        yield node
        yield from _walk(node.children)


class TestMenuTree:

    def test_child_of_denied_parent_is_dropped(self, session, make_page, allow_page):
        training = make_page("training", is_parent_menu=True)
        programs = make_page("training-programs", "/training/programs", parent=training)
        allow_page("teacher", training, False)
        allow_page("teacher", programs, True)

        menu = menu_service.build_menu(session, "teacher")

        assert all(node.name != "training-programs" for node in _walk(menu))
        assert permission_service.can_access_page(session, "teacher", "training-programs")

    def test_every_parent_id_is_in_the_tree(self, session, make_page, allow_page):
        root = make_page("settings")
        child = make_page("page-permissions", "/settings/page-permissions", parent=root)
        grandchild = make_page("advanced", "/settings/page-permissions/advanced", parent=child)
        stray = make_page("stray", parent=grandchild)
        overview = make_page("overview", "/settings/overview", parent=root)
        for page in (root, child, stray, overview):
            allow_page("director", page)

        menu = menu_service.build_menu(session, "director")
        ids = {node.id for node in _walk(menu)}

        assert all(node.parent_page_id is None or node.parent_page_id in ids for node in _walk(menu))
        # child lost its only allowed descendant, so only root and overview remain
        assert ids == {root.id, overview.id}

    def test_empty_parent_menus_are_pruned(self, session, make_page, allow_page):
        training = make_page("training")
        sessions = make_page("training-sessions", "/training/sessions", parent=training)
        reports = make_page("reports")
        allow_page("coordinator", training)
        allow_page("coordinator", sessions, False)
        allow_page("coordinator", reports)

        menu = menu_service.build_menu(session, "coordinator")
        assert [node.name for node in menu] == ["reports"]

    def test_pages_without_rows_or_hidden_are_excluded(self, session, make_page, allow_page):
        make_page("visits")
        hidden = make_page("setup", is_displayed_in_menu=False)
        allow_page("admin", hidden)
        assert menu_service.build_menu(session, "admin") == []

    def test_siblings_sorted_by_order_then_name(self, session, make_page, allow_page):
        for name, order in (("zeta", 1), ("alpha", 2), ("beta", 1)):
            allow_page("admin", make_page(name, sort_order=order))
        menu = menu_service.build_menu(session, "admin")
        assert [node.name for node in menu] == ["beta", "zeta", "alpha"]
        assert count_nodes(menu) == 3


class TestMenuPresentation:

    def test_dashboard_path_rewritten_per_role(self, session, make_page, allow_page):
        page = make_page("dashboard", "/dashboard", title="Dashboard")
        for role in ("teacher", "participant", "collector"):
            allow_page(role, page)

        assert menu_service.build_menu(session, "teacher")[0].path == "/teacher"
        assert menu_service.build_menu(session, "participant")[0].path == "/participant/dashboard"
        assert menu_service.build_menu(session, "collector")[0].path == "/collector"

    def test_unknown_role_keeps_generic_dashboard(self):
        assert dashboard_for_role("observer") == "/dashboard"
        assert dashboard_for_role("Training Organizer") == "/training-organizer"

    def test_khmer_labels(self, session, make_page, allow_page):
        allow_page("teacher", make_page("schools", title="Schools", title_kh="សាលារៀន"))
        allow_page("teacher", make_page("reports", title="Reports"))
        allow_page("teacher", make_page("misc"))

        labels = {node.name: node.label for node in menu_service.build_menu(session, "teacher", "km")}
        assert labels == {"schools": "សាលារៀន", "reports": "Reports", "misc": "misc"}

        english = {node.name: node.label for node in menu_service.build_menu(session, "teacher", "en")}
        assert english["schools"] == "Schools"
