"""
routes/rooms.py — Room, membership and join-request route handlers.

Layer rules:
  - Guards (listed in @guarded) authorize; the view parses, validates, calls
    ONE service, commits, and returns the envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/rooms):
  GET    /rooms                                  → 200  caller's rooms
  POST   /rooms                                  → 201  create room (caller is admin)
  GET    /rooms/:id                              → 200  room + active members
  DELETE /rooms/:id                              → 200  soft-delete (admin)
  GET    /rooms/:id/members                      → 200  active members
  PATCH  /rooms/:id/members/:member_id           → 200  change role (admin)
  DELETE /rooms/:id/members                      → 200  remove member in body (admin, not self)
  POST   /rooms/:id/leave                        → 200  leave room (any member)
  GET    /rooms/:id/requests                     → 200  pending join requests (admin)
  POST   /rooms/:id/requests/:user_id/approve    → 200  (admin)
  POST   /rooms/:id/requests/:user_id/reject     → 200  (admin)
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from chatrooms.app.extensions import db
from chatrooms.app.middleware.auth_middleware import current_identity
from chatrooms.app.middleware.guards import (
    deny_self_target,
    require_api_token,
    require_room_admin,
    require_room_membership,
)
from chatrooms.app.middleware.pipeline import get_room_store, guarded, request_body
from chatrooms.app.schemas.output import MemberOutSchema, RoomOutSchema, RoomSummarySchema
from chatrooms.app.schemas.room_schema import (
    ApproveRequestSchema,
    ChangeRoleSchema,
    CreateRoomSchema,
    RemoveMemberSchema,
)
from chatrooms.app.services import invitation_service, room_service
from chatrooms.app.services.membership_service import MembershipQuery

rooms_bp = Blueprint("rooms", __name__)


# ── Rooms ──────────────────────────────────────────────────────────────────

@rooms_bp.route("/", methods=["GET"])
@guarded(require_api_token)
async def list_rooms():
    rooms = await room_service.list_rooms(get_room_store(), current_identity().id)
    return jsonify({"data": RoomSummarySchema(many=True).dump(rooms), "warnings": []}), 200


@rooms_bp.route("/", methods=["POST"])
@guarded(require_api_token)
async def create_room():
    """POST /rooms — Create a room. Caller becomes its first admin."""
    data = CreateRoomSchema().load(request_body())
    room = await room_service.create_room(
        get_room_store(),
        name=data["name"].strip(),
        creator_id=current_identity().id,
        code_bytes=current_app.config["INVITATION_CODE_BYTES"],
    )
    db.session.commit()
    return jsonify({"data": RoomOutSchema().dump(room), "warnings": []}), 201


@rooms_bp.route("/<int:room_id>", methods=["GET"])
@guarded(require_api_token, require_room_membership)
async def get_room(room_id: int):
    room = await room_service.get_room(get_room_store(), room_id)
    return jsonify({"data": RoomOutSchema().dump(room), "warnings": []}), 200


@rooms_bp.route("/<int:room_id>", methods=["DELETE"])
@guarded(require_api_token, require_room_admin)
async def delete_room(room_id: int):
    await room_service.delete_room(get_room_store(), room_id)
    db.session.commit()
    return jsonify({"data": {"room_id": room_id, "deleted": True}, "warnings": []}), 200


# ── Members ────────────────────────────────────────────────────────────────

@rooms_bp.route("/<int:room_id>/members", methods=["GET"])
@guarded(require_api_token, require_room_membership)
async def list_members(room_id: int):
    members = await room_service.list_members(get_room_store(), room_id)
    return jsonify({"data": MemberOutSchema(many=True).dump(members), "warnings": []}), 200


@rooms_bp.route("/<int:room_id>/members/<int:member_id>", methods=["PATCH"])
@guarded(require_api_token, require_room_admin)
async def change_member_role(room_id: int, member_id: int):
    data = ChangeRoleSchema().load(request_body())
    member = await room_service.change_member_role(
        get_room_store(), room_id, member_id, data["role"],
    )
    db.session.commit()
    return jsonify({"data": MemberOutSchema().dump(member), "warnings": []}), 200


@rooms_bp.route("/<int:room_id>/members", methods=["DELETE"])
@guarded(require_api_token, require_room_admin, deny_self_target)
async def remove_member(room_id: int):
    """DELETE /rooms/:id/members — body {"member_id": n}. Admins leave via /leave."""
    data = RemoveMemberSchema().load(request_body())
    await room_service.remove_member(get_room_store(), room_id, data["member_id"])
    db.session.commit()
    return jsonify({
        "data": {"room_id": room_id, "member_id": data["member_id"], "removed": True},
        "warnings": [],
    }), 200


@rooms_bp.route("/<int:room_id>/leave", methods=["POST"])
@guarded(require_api_token, require_room_membership)
async def leave_room(room_id: int):
    await room_service.leave_room(get_room_store(), room_id, current_identity().id)
    db.session.commit()
    return jsonify({"data": {"room_id": room_id, "left": True}, "warnings": []}), 200


# ── Join requests (admin side) ─────────────────────────────────────────────

@rooms_bp.route("/<int:room_id>/requests", methods=["GET"])
@guarded(require_api_token, require_room_admin)
async def list_requests(room_id: int):
    user_ids = await invitation_service.list_pending_requests(
        MembershipQuery(get_room_store()), room_id,
    )
    return jsonify({"data": {"room_id": room_id, "user_ids": user_ids}, "warnings": []}), 200


@rooms_bp.route("/<int:room_id>/requests/<int:user_id>/approve", methods=["POST"])
@guarded(require_api_token, require_room_admin)
async def approve_request(room_id: int, user_id: int):
    data = ApproveRequestSchema().load(request_body())
    result = await invitation_service.approve_request(
        get_room_store(), room_id, user_id, data["role"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@rooms_bp.route("/<int:room_id>/requests/<int:user_id>/reject", methods=["POST"])
@guarded(require_api_token, require_room_admin)
async def reject_request(room_id: int, user_id: int):
    result = await invitation_service.reject_request(get_room_store(), room_id, user_id)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
