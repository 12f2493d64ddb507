"""
schemas/output.py — Response serialisation for room read models.

These run inside a request only, so they use flask-marshmallow's ma.Schema.
They dump the frozen dataclasses from repositories/room_store.py.
"""

from __future__ import annotations

from marshmallow import fields

from chatrooms.app.enums import MemberRole
from chatrooms.app.extensions import ma


class MemberOutSchema(ma.Schema):
    user_id = fields.Int()
    role = fields.Enum(MemberRole, by_value=True)


class MessageOutSchema(ma.Schema):
    id = fields.Int()
    user_id = fields.Int()
    parent_id = fields.Int(allow_none=True)
    content = fields.Str()


class RoomOutSchema(ma.Schema):
    id = fields.Int()
    name = fields.Str()
    invitation_code = fields.Str()
    members = fields.Method("_active_members")

    def _active_members(self, room) -> list[dict]:
        return MemberOutSchema(many=True).dump(room.active_members())


class RoomSummarySchema(ma.Schema):
    id = fields.Int()
    name = fields.Str()
