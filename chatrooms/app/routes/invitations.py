"""
routes/invitations.py — Joining rooms by invitation code.

Endpoints (base url_prefix=/api/v1/invitations):
  GET    /invitations/requests    → 200  rooms the caller is waiting to join
  POST   /invitations/:code       → 200  IN_ROOM / HAVE_REQUEST_BEFORE (answered
                                         by the resolve_join_by_code guard)
                                  → 201  REQUEST_SENT
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from chatrooms.app.extensions import db
from chatrooms.app.middleware.auth_middleware import current_identity
from chatrooms.app.middleware.guards import require_api_token, resolve_join_by_code
from chatrooms.app.middleware.pipeline import get_room_store, guarded
from chatrooms.app.services import invitation_service

invitations_bp = Blueprint("invitations", __name__)


@invitations_bp.route("/requests", methods=["GET"])
@guarded(require_api_token)
async def my_requests():
    result = await invitation_service.list_my_requests(get_room_store(), current_identity().id)
    return jsonify({"data": result, "warnings": []}), 200


@invitations_bp.route("/<string:invitation_code>", methods=["POST"])
@guarded(require_api_token, resolve_join_by_code)
async def join_by_code(invitation_code: str):
    """Only reached when the caller is neither a member nor already waiting."""
    result = await invitation_service.request_to_join(
        get_room_store(),
        room_id=g.resolution.room_id,
        user_id=current_identity().id,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201
