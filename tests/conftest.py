"""
Pytest configuration and fixtures for all tests.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tarl_portal.core.security import create_access_token
from tarl_portal.db.seeds.seed_roles import seed_roles
from tarl_portal.db.session import Database
from tarl_portal.main import create_app
from tarl_portal.models.organization import District, Province, School, SchoolClass, Zone
from tarl_portal.models.page import Page
from tarl_portal.models.permission import ActionPermission, PagePermission
from tarl_portal.models.role import Role
from tarl_portal.models.user import User


@pytest.fixture
def engine():
    """One in-memory SQLite database shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def database(engine):
    database = Database("sqlite://", engine=engine)
    database.create_all()
    return database


@pytest.fixture
def session(database):
    """Create a new database session for a test."""
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def roles(session):
    """Default role catalog, keyed by name."""
    seed_roles(session)
    return {role.name: role for role in session.query(Role).all()}


@pytest.fixture
def app(database):
    return create_app(database=database)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(session, roles):
    """Factory: ``make_user("teacher", school_id=3)``."""
    counter = {"n": 0}

    def _make(role_name, **columns):
        counter["n"] += 1
        user = User(
            email=f"{role_name.replace(' ', '-')}{counter['n']}@example.org",
            full_name=f"{role_name.title()} {counter['n']}",
            role_id=roles[role_name].id,
            **columns,
        )
        session.add(user)
        session.commit()
        return user

    return _make


@pytest.fixture
def make_page(session):
    """Factory for catalog pages; keeps parent flags and menu levels consistent."""

    def _make(name, path=None, parent=None, **columns):
        page = Page(
            name=name,
            path=path or f"/{name}",
            parent_page_id=parent.id if parent else None,
            menu_level=parent.menu_level + 1 if parent else 1,
            **columns,
        )
        if parent is not None:
            parent.is_parent_menu = True
        session.add(page)
        session.commit()
        return page

    return _make


@pytest.fixture
def allow_page(session):
    def _allow(role, page, is_allowed=True):
        session.add(PagePermission(role=role, page_id=page.id, is_allowed=is_allowed))
        session.commit()

    return _allow


@pytest.fixture
def allow_action(session):
    def _allow(role, page, action, is_allowed=True):
        session.add(ActionPermission(role=role, page_id=page.id, action_name=action, is_allowed=is_allowed))
        session.commit()

    return _allow


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}

    return _headers


@pytest.fixture
def org_tree(session):
    """Two zones; zone 1 has provinces P1 (districts D1, D2) and P2 (D3); zone 2 has P3 (D4).

    One school per district, one class per school.
    """
    z1, z2 = Zone(name="Z1"), Zone(name="Z2")
    session.add_all([z1, z2])
    session.flush()
    p1, p2, p3 = Province(name="P1", zone_id=z1.id), Province(name="P2", zone_id=z1.id), Province(name="P3", zone_id=z2.id)
    session.add_all([p1, p2, p3])
    session.flush()
    d1, d2 = District(name="D1", province_id=p1.id), District(name="D2", province_id=p1.id)
    d3, d4 = District(name="D3", province_id=p2.id), District(name="D4", province_id=p3.id)
    session.add_all([d1, d2, d3, d4])
    session.flush()

    schools = {}
    for district, province, zone in ((d1, p1, z1), (d2, p1, z1), (d3, p2, z1), (d4, p3, z2)):
        school = School(
            name=f"School {district.name}",
            district_id=district.id,
            province_id=province.id,
            zone_id=zone.id,
        )
        session.add(school)
        session.flush()
        schools[district.name] = school

    classes = {}
    for key, school in schools.items():
        school_class = SchoolClass(name=f"Grade 4 {key}", grade=4, school_id=school.id)
        session.add(school_class)
        session.flush()
        classes[key] = school_class

    session.commit()
    return {
        "zones": {"Z1": z1, "Z2": z2},
        "provinces": {"P1": p1, "P2": p2, "P3": p3},
        "districts": {"D1": d1, "D2": d2, "D3": d3, "D4": d4},
        "schools": schools,
        "classes": classes,
    }
