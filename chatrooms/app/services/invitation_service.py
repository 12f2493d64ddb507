"""
services/invitation_service.py — Joining a room by invitation code.

Per (room, user) pair the states are:

    NOT_RELATED ──► PENDING_REQUEST ──(admin approves)──► ACTIVE_MEMBER
         │                 └──────────(admin rejects)───► NOT_RELATED
         └──────────────────────────────────────────────► ACTIVE_MEMBER

resolve_join_by_code() is the read-only decision step run as a guard:
  1. load the non-deleted room by code (membership + request data only)
  2. active member          → IN_ROOM            (terminal, no mutation)
  3. already pending        → HAVE_REQUEST_BEFORE (terminal, no mutation)
  4. otherwise              → CAN_REQUEST        (the join handler runs next)

The membership check always runs first: an approved member must never be
reported as merely pending, even if a stale request row exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from chatrooms.app.enums import InvitationStatus, MemberRole
from chatrooms.app.errors import ConflictError, ErrorCode, NotFoundError
from chatrooms.app.repositories.room_store import MEMBERS, REQUESTS, RoomStore
from chatrooms.app.services.membership_service import MembershipQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinResolution:
    status: InvitationStatus
    room_id: int

    @property
    def is_terminal(self) -> bool:
        return self.status in (InvitationStatus.IN_ROOM, InvitationStatus.HAVE_REQUEST_BEFORE)


async def resolve_join_by_code(
        memberships: MembershipQuery,
        invitation_code: str,
        user_id: int,
) -> JoinResolution:
    """
    Raises:
      NotFoundError(room) — no non-deleted room carries this code
    """
    room = await memberships.find_room(
        invitation_code=invitation_code,
        projection=MEMBERS | REQUESTS,
    )
    if room is None:
        raise NotFoundError("room", ErrorCode.ROOM_NOT_FOUND)

    if room.active_membership(user_id) is not None:
        return JoinResolution(InvitationStatus.IN_ROOM, room.id)

    if room.has_request(user_id):
        return JoinResolution(InvitationStatus.HAVE_REQUEST_BEFORE, room.id)

    return JoinResolution(InvitationStatus.CAN_REQUEST, room.id)


# ── Handlers (run after the guards pass) ───────────────────────────────────

async def request_to_join(store: RoomStore, room_id: int, user_id: int) -> dict:
    """
    Appends the user to the room's incoming requests.

    Raises:
      ConflictError(ALREADY_REQUESTED, 409) — a concurrent request won the race,
        or the user became a member after the guard ran
    """
    if not await store.add_incoming_request(room_id, user_id):
        raise ConflictError(ErrorCode.ALREADY_REQUESTED)

    logger.info("User %s requested to join room %s", user_id, room_id)
    return {"status": InvitationStatus.REQUEST_SENT.value, "room_id": room_id}


async def list_pending_requests(memberships: MembershipQuery, room_id: int) -> list[int]:
    """User ids waiting for approval in a room (admin view)."""
    room = await memberships.find_room(room_id=room_id, projection=REQUESTS)
    if room is None:
        raise NotFoundError("room", ErrorCode.ROOM_NOT_FOUND)
    return list(room.incoming_requests)


async def list_my_requests(store: RoomStore, user_id: int) -> list[dict]:
    """Rooms where the user is still waiting for approval."""
    rooms = await store.find_rooms_with_request(user_id)
    return [{"room_id": room.id, "name": room.name} for room in rooms]


async def approve_request(
        store: RoomStore,
        room_id: int,
        user_id: int,
        role: MemberRole = MemberRole.MEMBER,
) -> dict:
    """
    Raises:
      NotFoundError(request, 404) — the user has no pending request here
    """
    if not await store.approve_request(room_id, user_id, role):
        raise NotFoundError("request", ErrorCode.REQUEST_NOT_FOUND)

    logger.info("Approved user %s into room %s as %s", user_id, room_id, role.value)
    return {"room_id": room_id, "user_id": user_id, "role": role.value}


async def reject_request(store: RoomStore, room_id: int, user_id: int) -> dict:
    if not await store.reject_request(room_id, user_id):
        raise NotFoundError("request", ErrorCode.REQUEST_NOT_FOUND)

    logger.info("Rejected join request of user %s for room %s", user_id, room_id)
    return {"room_id": room_id, "user_id": user_id, "rejected": True}
