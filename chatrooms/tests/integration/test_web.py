"""
tests/integration/test_web.py — Browser routes authenticated by the session cookie.
"""

from __future__ import annotations

from .conftest import PASSWORD, make_user


def test_anonymous_home_redirects_to_login(client):
    resp = client.get("/")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/login")


def test_login_returns_to_the_page_first_requested(app, client):
    make_user(app, "alice")
    client.get("/?tab=rooms")

    resp = client.post("/login", data={"email": "alice@test.com", "password": PASSWORD})

    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/?tab=rooms")


def test_logged_in_home_page(app, client):
    make_user(app, "alice")
    client.post("/login", data={"email": "alice@test.com", "password": PASSWORD})

    resp = client.get("/")

    assert resp.status_code == 200
    assert b"Signed in as Alice" in resp.data


def test_wrong_password_goes_back_to_login_with_message(app, client):
    make_user(app, "alice")

    resp = client.post(
        "/login",
        data={"email": "alice@test.com", "password": "nope"},
        follow_redirects=True,
    )

    assert resp.status_code == 200
    assert b"The email or password is incorrect." in resp.data


def test_logout_clears_session(app, client):
    make_user(app, "alice")
    client.post("/login", data={"email": "alice@test.com", "password": PASSWORD})

    client.post("/logout")

    assert client.get("/").status_code == 302


def test_login_form_renders(client):
    resp = client.get("/login")
    assert resp.status_code == 200
    assert b"<form" in resp.data
