"""
enums.py — Closed enumerations for room roles and invitation outcomes.

Values are the strings stored in the database and sent over the wire.
"""

from __future__ import annotations

import enum


class MemberRole(str, enum.Enum):
    ADMIN     = "admin"
    MEMBER    = "member"
    READ_ONLY = "read_only"


class InvitationStatus(str, enum.Enum):
    IN_ROOM             = "IN_ROOM"
    HAVE_REQUEST_BEFORE = "HAVE_REQUEST_BEFORE"
    CAN_REQUEST         = "CAN_REQUEST"
    REQUEST_SENT        = "REQUEST_SENT"
