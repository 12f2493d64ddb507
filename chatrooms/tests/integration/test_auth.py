"""
tests/integration/test_auth.py — Integration tests for authentication endpoints.

Endpoints covered:
  POST  /auth/login       → 200
  GET   /auth/me          → 200
  PATCH /users/:user_id   → 200

Error cases:
  auth.invalid_credentials 401 — wrong password / unknown email
  token.error              401 — missing, malformed, forged or expired token
  error.not_authorized     403 — editing someone else's profile
  MISSING_FIELD            400 — schema errors

CLI:
  flask create-user       seeds an account with the configured bcrypt cost
"""

from __future__ import annotations

import time

import jwt

from chatrooms.app.extensions import db
from chatrooms.app.models.user import User
from chatrooms.app.services.token_service import Identity

from .conftest import PASSWORD, auth_headers, login, make_user, user_with_token


# ═══════════════════════════════════════════════════════════════════════════
# POST /auth/login
# ═══════════════════════════════════════════════════════════════════════════

class TestLogin:

    def test_login_success_returns_token_and_user(self, app, client):
        make_user(app, "alice")
        data = login(client, "alice@test.com")

        assert data["user"]["email"] == "alice@test.com"
        assert data["user"]["display_name"] == "Alice"
        assert data["expires_in"] == 300
        # password_hash must NEVER appear in the response
        assert "password_hash" not in data["user"]

    def test_token_claims_carry_identity_and_lifetime(self, app, client):
        user = make_user(app, "alice")
        claims = jwt.decode(login(client, user["email"])["token"], options={"verify_signature": False})
        assert claims["sub"] == str(user["id"])
        assert claims["exp"] - claims["iat"] == 300

    def test_wrong_password_returns_401(self, app, client):
        make_user(app, "alice")
        resp = client.post("/api/v1/auth/login", json={
            "email": "alice@test.com", "password": "wrong",
        })
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "auth.invalid_credentials"

    def test_unknown_email_returns_same_401(self, client):
        resp = client.post("/api/v1/auth/login", json={
            "email": "nobody@test.com", "password": PASSWORD,
        })
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "auth.invalid_credentials"

    def test_missing_field_returns_400(self, client):
        resp = client.post("/api/v1/auth/login", json={"email": "alice@test.com"})
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "MISSING_FIELD"
        assert error["field"] == "password"


# ═══════════════════════════════════════════════════════════════════════════
# GET /auth/me
# ═══════════════════════════════════════════════════════════════════════════

class TestMe:

    def test_me_returns_profile(self, app, client):
        user, token = user_with_token(app, client, "alice")
        resp = client.get("/api/v1/auth/me", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.get_json() == {"data": user, "warnings": []}

    def test_bare_token_header_is_accepted(self, app, client):
        _, token = user_with_token(app, client, "alice")
        resp = client.get("/api/v1/auth/me", headers={"Authorization": token})
        assert resp.status_code == 200

    def test_missing_token_is_401_error_token(self, client):
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        body = resp.get_json()
        assert body["status"] == 401
        assert body["error"] == {"code": "token.error", "message": "Error token"}

    def test_forged_token_is_401(self, app, client):
        user = make_user(app, "alice")
        forged = jwt.encode(
            {"sub": str(user["id"]), "iat": int(time.time()), "exp": int(time.time()) + 60},
            "not-the-server-secret-but-long-enough",
            algorithm="HS256",
        )
        resp = client.get("/api/v1/auth/me", headers=auth_headers(forged))
        assert resp.status_code == 401

    def test_expired_token_is_the_same_generic_401(self, app, client):
        user = make_user(app, "alice")
        tokens = app.extensions["token_service"]
        expired = tokens.issue(
            Identity(id=user["id"], email=user["email"], display_name=user["display_name"]),
            ttl_seconds=1,
            now=int(time.time()) - 10,
        )

        expired_resp = client.get("/api/v1/auth/me", headers=auth_headers(expired))
        garbage_resp = client.get("/api/v1/auth/me", headers=auth_headers("garbage"))

        assert expired_resp.status_code == 401
        assert expired_resp.get_json() == garbage_resp.get_json()


# ═══════════════════════════════════════════════════════════════════════════
# PATCH /users/:user_id
# ═══════════════════════════════════════════════════════════════════════════

class TestUpdateProfile:

    def test_owner_updates_display_name(self, app, client):
        user, token = user_with_token(app, client, "alice")
        resp = client.patch(
            f"/api/v1/users/{user['id']}",
            json={"display_name": "  Ally "},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["display_name"] == "Ally"

    def test_other_user_is_403_not_authorized(self, app, client):
        alice = make_user(app, "alice")
        _, bob_token = user_with_token(app, client, "bob")
        resp = client.patch(
            f"/api/v1/users/{alice['id']}",
            json={"display_name": "Hacked"},
            headers=auth_headers(bob_token),
        )
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "error.not_authorized"

    def test_blank_name_is_400(self, app, client):
        user, token = user_with_token(app, client, "alice")
        resp = client.patch(
            f"/api/v1/users/{user['id']}",
            json={"display_name": "   "},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "display_name"


def test_unknown_route_keeps_404(client):
    resp = client.get("/api/v1/nothing-here")
    assert resp.status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# flask create-user
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateUserCommand:

    def _invoke(self, app, email="dana@test.com"):
        return app.test_cli_runner().invoke(args=[
            "create-user", "--email", email, "--name", "Dana", "--password", PASSWORD,
        ])

    def test_seeded_user_can_log_in(self, app, client):
        result = self._invoke(app)

        assert result.exit_code == 0, result.output
        assert "dana@test.com" in result.output
        assert login(client, "dana@test.com")["user"]["display_name"] == "Dana"

    def test_hash_uses_configured_cost(self, app):
        self._invoke(app)

        with app.app_context():
            user = db.session.query(User).filter_by(email="dana@test.com").one()
            rounds = app.config["BCRYPT_LOG_ROUNDS"]
            assert user.password_hash.startswith(f"$2b${rounds:02d}$")

    def test_duplicate_email_fails(self, app):
        self._invoke(app)

        result = self._invoke(app)

        assert result.exit_code != 0
        assert "already registered" in result.output
