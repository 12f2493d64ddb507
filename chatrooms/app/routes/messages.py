"""
routes/messages.py — Room messages and thread replies.

Endpoints (base url_prefix=/api/v1/rooms):
  GET    /rooms/:id/messages                                 → 200  (member)
  POST   /rooms/:id/messages                                 → 201  (writable member)
  DELETE /rooms/:id/messages/:message_id                     → 200  (own message)
  DELETE /rooms/:id/messages/:parent_id/replies/:message_id  → 200  (reply or thread owner)
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from chatrooms.app.extensions import db
from chatrooms.app.middleware.auth_middleware import current_identity
from chatrooms.app.middleware.guards import (
    reply_or_thread_owner,
    require_api_token,
    require_message_deletion,
    require_resource_owner,
    require_room_membership,
    require_writable_membership,
)
from chatrooms.app.middleware.pipeline import get_room_store, guarded, request_body
from chatrooms.app.schemas.output import MessageOutSchema
from chatrooms.app.schemas.room_schema import PostMessageSchema
from chatrooms.app.services import room_service

messages_bp = Blueprint("messages", __name__)


@messages_bp.route("/<int:room_id>/messages", methods=["GET"])
@guarded(require_api_token, require_room_membership)
async def list_messages(room_id: int):
    messages = await room_service.list_messages(get_room_store(), room_id)
    return jsonify({"data": MessageOutSchema(many=True).dump(messages), "warnings": []}), 200


@messages_bp.route("/<int:room_id>/messages", methods=["POST"])
@guarded(require_api_token, require_writable_membership)
async def post_message(room_id: int):
    data = PostMessageSchema().load(request_body())
    message = await room_service.post_message(
        get_room_store(),
        room_id=room_id,
        user_id=current_identity().id,
        content=data["content"],
        parent_id=data["parent_id"],
    )
    db.session.commit()
    return jsonify({"data": MessageOutSchema().dump(message), "warnings": []}), 201


@messages_bp.route("/<int:room_id>/messages/<int:message_id>", methods=["DELETE"])
@guarded(require_api_token, require_message_deletion)
async def delete_message(room_id: int, message_id: int):
    await room_service.delete_message(get_room_store(), room_id, message_id)
    db.session.commit()
    return jsonify({"data": {"message_id": message_id, "deleted": True}, "warnings": []}), 200


@messages_bp.route(
    "/<int:room_id>/messages/<int:parent_id>/replies/<int:message_id>",
    methods=["DELETE"],
)
@guarded(
    require_api_token,
    require_room_membership,
    require_resource_owner("reply", reply_or_thread_owner),
)
async def delete_reply(room_id: int, parent_id: int, message_id: int):
    """The reply's author or the thread starter may remove a reply."""
    await room_service.delete_message(get_room_store(), room_id, message_id)
    db.session.commit()
    return jsonify({"data": {"message_id": message_id, "deleted": True}, "warnings": []}), 200
