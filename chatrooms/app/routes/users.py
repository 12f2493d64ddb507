"""
routes/users.py — User profile route handlers.

Endpoints (base url_prefix=/api/v1/users):
  PATCH  /users/:user_id   → 200  update display name (own profile only)
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from chatrooms.app.extensions import db
from chatrooms.app.middleware.guards import profile_owner, require_api_token, require_resource_owner
from chatrooms.app.middleware.pipeline import guarded, request_body
from chatrooms.app.schemas.auth_schema import UpdateProfileSchema
from chatrooms.app.services import auth_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/<int:user_id>", methods=["PATCH"])
@guarded(require_api_token, require_resource_owner("profile", profile_owner))
def update_profile(user_id: int):
    data = UpdateProfileSchema().load(request_body())
    result = auth_service.update_profile(
        user_id=user_id,
        display_name=data["display_name"].strip(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
