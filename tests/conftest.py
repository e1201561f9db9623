"""
Shared pytest fixtures for the PICA Monitor test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context, rollback + recreate tables (autouse)
    - client: Flask test client (function-scoped)
    - tenant_a / tenant_b: an organization with an admin, a user, a project
      site and a person, created through the SQL models
    - auth_headers: factory building a Bearer header for an actor
    - fixed_today: pins the server clock used by status derivation
    - pica_payload: factory for a valid create payload
"""

from datetime import date

import pytest

from pica_monitor import create_app
from pica_monitor.models import db as _db
from pica_monitor.models.organization import Organization, User
from pica_monitor.models.reference import Department, Person, ProjectSite
from pica_monitor.services.jwt_service import generate_access_token

SERVER_TODAY = date(2025, 4, 10)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def fixed_today(app, monkeypatch):
    """Pin the derivation clock to SERVER_TODAY for the duration of a test."""
    monkeypatch.setitem(app.extensions, "pica_clock", lambda: SERVER_TODAY)
    return SERVER_TODAY


# ── Tenant fixtures ──────────────────────────────────────────────────────


def make_tenant(name: str, slug: str) -> dict:
    """Create an organization with one admin, one user, one site and one person.

    Returns the ids as a dict so tests never hold on to expired instances.
    """
    org = Organization(name=name, has_paid=True, subscription_active=True)
    _db.session.add(org)
    _db.session.flush()

    admin = User(organization_id=org.id, username=f"{slug}-admin", full_name=f"{name} Admin", role="admin")
    user = User(organization_id=org.id, username=f"{slug}-user", full_name=f"{name} User", role="user")
    dept = Department(organization_id=org.id, name="Operations")
    _db.session.add_all([admin, user, dept])
    _db.session.flush()

    site = ProjectSite(organization_id=org.id, code=f"{slug.upper()}-01", name=f"{name} Site", location="North")
    person = Person(
        organization_id=org.id, name=f"{name} Lead", email=f"lead@{slug}.example",
        position="Supervisor", department_id=dept.id,
    )
    _db.session.add_all([site, person])
    _db.session.commit()

    return {
        "organization_id": org.id,
        "admin_id": admin.id,
        "user_id": user.id,
        "site_id": site.id,
        "person_id": person.id,
    }


@pytest.fixture()
def tenant_a():
    return make_tenant("Alpha Mining", "alpha")


@pytest.fixture()
def tenant_b():
    return make_tenant("Beta Energy", "beta")


@pytest.fixture()
def auth_headers():
    """Factory: auth_headers(user_id, organization_id, role) -> request headers."""

    def _make(user_id: int, organization_id: int | None, role: str = "user") -> dict:
        token = generate_access_token(user_id, organization_id, role)
        return {"Authorization": f"Bearer {token}"}

    return _make


def make_pica_payload(tenant: dict, **overrides) -> dict:
    """A valid create payload for *tenant*."""
    payload = {
        "business_key": "2504NPR01",
        "project_site_id": tenant["site_id"],
        "date": "2025-04-01",
        "issue": "Conveyor belt misalignment",
        "problem_description": "Belt drifts off the idler on the return side",
        "corrective_action": "Re-align idlers and add tracking rollers",
        "person_in_charge_id": tenant["person_id"],
        "due_date": "2025-04-20",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def pica_payload():
    """Factory: pica_payload(tenant, **overrides) -> valid create payload."""
    return make_pica_payload
