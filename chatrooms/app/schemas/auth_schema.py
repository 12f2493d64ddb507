"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/auth_service.py: credential correctness (INVALID_CREDENTIALS).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class LoginSchema(Schema):
    """
    POST /auth/login (and the browser login form)

    Accepts email + password. Whether they match is checked in auth_service.
    """

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )
    password = fields.Str(required=True, load_only=True)


class UpdateProfileSchema(Schema):
    """PATCH /users/:id — only the display name is editable here."""

    display_name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Display name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )
