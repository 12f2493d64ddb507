"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the standard response envelope: {"data": {...}, "warnings": []}

No business logic here. No DB queries. No bare SQL.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

Endpoints (base url_prefix=/api/v1/auth):
  POST   /auth/login     → 200
  GET    /auth/me        → 200
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from chatrooms.app.extensions import db
from chatrooms.app.middleware.auth_middleware import current_identity, require_auth
from chatrooms.app.middleware.pipeline import get_token_service, request_body
from chatrooms.app.schemas.auth_schema import LoginSchema
from chatrooms.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Check credentials; return a signed identity token."""
    data = LoginSchema().load(request_body())
    result = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
        tokens=get_token_service(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return the profile of the token's user."""
    result = auth_service.get_profile(
        user_id=current_identity().id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
