"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against the TestingConfig database (in-memory SQLite unless
    TEST_DATABASE_URL points at PostgreSQL).
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - make_user(app, ...)        → user dict (users are seeded, there is no signup)
  - login(client, ...)         → dict with token + user
  - auth_headers(token)        → {"Authorization": "Bearer <token>"}
  - make_room(client, ...)     → room dict (caller becomes admin)
  - join(client, ...)          → HTTP response of POST /invitations/<code>
  - add_member(...)            → request + approve in one step

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from chatrooms.app import create_app
from chatrooms.app.extensions import db as _db
from chatrooms.app.services import auth_service

PASSWORD = "Password1"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests in FK-safe order.

    Thread replies point at their root message, so parent links are cleared
    before messages are deleted.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        _db.session.execute(text("DELETE FROM incoming_requests"))
        _db.session.execute(text("UPDATE messages SET parent_id = NULL"))
        _db.session.execute(text("DELETE FROM messages"))
        _db.session.execute(text("DELETE FROM memberships"))
        _db.session.execute(text("DELETE FROM rooms"))
        _db.session.execute(text("DELETE FROM users"))
        _db.session.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_user(
    app,
    name: str = "alice",
    email: str | None = None,
    password: str = PASSWORD,
) -> dict:
    """Seeds a user directly through the service layer and commits."""
    if email is None:
        email = f"{name}@test.com"
    with app.app_context():
        user = auth_service.create_user(
            email=email,
            display_name=name.capitalize(),
            password=password,
            session=_db.session,
        )
        _db.session.commit()
    return user


def login(client, email: str, password: str = PASSWORD) -> dict:
    """
    Logs in a user and returns the response data dict.
    Returns: {"token": "...", "expires_in": n, "user": {...}}
    """
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def user_with_token(app, client, name: str) -> tuple[dict, str]:
    """Seeds a user and logs them in. Returns (user, token)."""
    user = make_user(app, name)
    return user, login(client, user["email"])["token"]


def make_room(client, token: str, name: str = "General") -> dict:
    """
    Creates a room and returns the room data dict.
    The caller (token owner) becomes the room's first admin.
    """
    resp = client.post("/api/v1/rooms/", json={"name": name}, headers=auth_headers(token))
    assert resp.status_code == 201, f"make_room failed: {resp.get_json()}"
    return resp.get_json()["data"]


def join(client, token: str, invitation_code: str):
    """Presents an invitation code. Returns the HTTP response."""
    return client.post(f"/api/v1/invitations/{invitation_code}", headers=auth_headers(token))


def add_member(client, admin_token: str, room: dict, user_id: int, user_token: str, role: str = "member"):
    """Requests to join with the user's token, then approves with the admin's."""
    resp = join(client, user_token, room["invitation_code"])
    assert resp.status_code == 201, f"join failed: {resp.get_json()}"
    resp = client.post(
        f"/api/v1/rooms/{room['id']}/requests/{user_id}/approve",
        json={"role": role},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 200, f"approve failed: {resp.get_json()}"
    return resp
