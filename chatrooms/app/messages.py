"""
messages.py — Human-readable text for localizable error and status keys.

Only English ships today. Lookups of an unknown key fall back to the generic
message so a missing translation never turns into a 500.
"""

from __future__ import annotations

DEFAULT_LANGUAGE = "en"

_CATALOG: dict[str, dict[str, str]] = {
    "en": {
        "token.error": "Error token",
        "auth.login_required": "Authentication required.",
        "auth.invalid_credentials": "The email or password is incorrect.",
        "room.user_not_in_room": "You are not a member of this room.",
        "room.not_admin": "You are not an admin of this room.",
        "room.read_only": "You have read-only access to this room.",
        "room.already_member": "The user is already a member of this room.",
        "room.not_found": "The room does not exist.",
        "room.invitation.in_room": "You are already in this room.",
        "room.invitation.requested": "You have already requested to join this room.",
        "room.invitation.sent": "Your request to join has been sent.",
        "member.not_found": "The member does not exist in this room.",
        "message.not_found": "The message does not exist.",
        "request.not_found": "There is no pending request for this user.",
        "user.not_found": "The user does not exist.",
        "user.duplicate_email": "This email address is already registered.",
        "error.not_authorized": "You are not authorized.",
        "error.403": "You do not have permission to perform this action.",
        "error.common": "An unexpected error occurred. Please try again later.",
    },
}


def translate(key: str, language: str = DEFAULT_LANGUAGE) -> str:
    catalog = _CATALOG.get(language, _CATALOG[DEFAULT_LANGUAGE])
    if key in catalog:
        return catalog[key]
    return _CATALOG[DEFAULT_LANGUAGE].get(key, _CATALOG[DEFAULT_LANGUAGE]["error.common"])
