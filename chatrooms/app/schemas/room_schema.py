"""
schemas/room_schema.py — Marshmallow schemas for room, member and message endpoints.

Validation responsibility:
  - This file: field types, lengths, enum values.
  - Guards (middleware/guards.py): membership, roles, ownership.
  - services/room_service.py: existence checks that need the store.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate

from chatrooms.app.enums import MemberRole


def _validate_non_empty_after_trim(value: str) -> None:
    """Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraint at the API layer."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateRoomSchema(Schema):
    """POST /rooms — name non-empty after trim, max 100 chars."""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Room name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )


class ChangeRoleSchema(Schema):
    """PATCH /rooms/:id/members/:member_id"""

    role = fields.Enum(MemberRole, by_value=True, required=True)


class RemoveMemberSchema(Schema):
    """DELETE /rooms/:id/members — the member is named in the body."""

    member_id = fields.Int(
        required=True,
        strict=True,  # reject floats like 1.0 — integers only
        validate=validate.Range(
            min=1,
            error="member_id must be a positive integer.",
        ),
    )


class PostMessageSchema(Schema):
    """POST /rooms/:id/messages — parent_id makes the message a thread reply."""

    content = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=4000,
                error="Message content must be between 1 and 4000 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )
    parent_id = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        validate=validate.Range(min=1),
    )


class ApproveRequestSchema(Schema):
    """POST /rooms/:id/requests/:user_id/approve — role defaults to member."""

    role = fields.Enum(MemberRole, by_value=True, load_default=MemberRole.MEMBER)
