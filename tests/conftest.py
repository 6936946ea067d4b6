"""
Shared pytest fixtures for the Project Portfolio Manager test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - register_user: factory posting to /auth/register
    - user / auth_headers: a registered MEMBER and a bearer token for it
    - project: Pre-created Project via the API
    - make_task: factory creating tasks via the API
"""

import pytest

from app import create_app
from app.models import db as _db

TEST_PASSWORD = "correct-horse-battery"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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


# ── Convenience fixtures ─────────────────────────────────────────────────


def register(client, username="alice", email=None, password=TEST_PASSWORD, **extra):
    payload = {
        "username": username,
        "email": email or f"{username}@example.org",
        "password": password,
    }
    payload.update(extra)
    return client.post("/api/v1/auth/register", json=payload)


@pytest.fixture()
def register_user(client):
    """``register_user("bob", role="MANAGER")`` → raw register response."""

    def _register(username="alice", **kwargs):
        return register(client, username, **kwargs)

    return _register


@pytest.fixture()
def user(client):
    """A registered MEMBER; returns the user summary dict."""
    res = register(client, "alice", name="Alice Doe")
    assert res.status_code == 201, res.get_json()
    return res.get_json()["user"]


@pytest.fixture()
def auth_headers(client, user):
    res = client.post("/api/v1/auth/login", json={"username": "alice", "password": TEST_PASSWORD})
    assert res.status_code == 200, res.get_json()
    return {"Authorization": f"Bearer {res.get_json()['token']}"}


@pytest.fixture()
def project(client):
    """Create and return a test Project via the API."""
    res = client.post("/api/v1/projects", json={
        "name": "Billing Revamp",
        "status": "IN_PROGRESS",
        "businessImpact": 8,
        "techEffort": 4,
        "projectValue": 250000,
    })
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]


@pytest.fixture()
def make_task(client, user, project):
    """Factory: ``make_task("Title", columnId="todo", ...)`` → task dict."""

    def _make(title="Task", project_id=None, **fields):
        payload = {
            "title": title,
            "projectId": project_id or project["id"],
            "createdById": user["id"],
        }
        payload.update(fields)
        res = client.post("/api/v1/tasks", json=payload)
        assert res.status_code == 201, res.get_json()
        return res.get_json()["data"]

    return _make
