"""
services/room_service.py — Room, member and message handlers.

These run only after a route's guards have passed, so they do not repeat
authorization checks. They do re-check existence, because a guard's snapshot
may be older than the write (e.g. a member removed concurrently).

Layer rules:
  - No Flask imports. The store is passed in by the route.
  - Commits are the route's responsibility — the store only flushes.
"""

from __future__ import annotations

import logging
import secrets

from chatrooms.app.enums import MemberRole
from chatrooms.app.errors import ErrorCode, NotFoundError
from chatrooms.app.repositories.room_store import (
    MEMBERS,
    MESSAGES,
    MembershipRecord,
    MessageRecord,
    RoomDocument,
    RoomStore,
)

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _generate_invitation_code(num_bytes: int) -> str:
    return secrets.token_urlsafe(num_bytes)


async def _get_room_or_404(store: RoomStore, room_id: int, projection: frozenset[str]) -> RoomDocument:
    room = await store.find_one(room_id=room_id, projection=projection)
    if room is None:
        raise NotFoundError("room", ErrorCode.ROOM_NOT_FOUND)
    return room


# ── Rooms ──────────────────────────────────────────────────────────────────

async def create_room(
        store: RoomStore,
        name: str,
        creator_id: int,
        code_bytes: int = 12,
) -> RoomDocument:
    """Creates a room; the creator becomes its first ADMIN member."""
    room = await store.create_room(name, creator_id, _generate_invitation_code(code_bytes))
    logger.info("User %s created room %s", creator_id, room.id)
    return room


async def list_rooms(store: RoomStore, user_id: int) -> list[RoomDocument]:
    return await store.list_rooms_for_user(user_id)


async def get_room(store: RoomStore, room_id: int) -> RoomDocument:
    return await _get_room_or_404(store, room_id, MEMBERS)


async def delete_room(store: RoomStore, room_id: int) -> None:
    if not await store.soft_delete_room(room_id):
        raise NotFoundError("room", ErrorCode.ROOM_NOT_FOUND)
    logger.info("Room %s soft-deleted", room_id)


# ── Members ────────────────────────────────────────────────────────────────

async def list_members(store: RoomStore, room_id: int) -> list[MembershipRecord]:
    room = await _get_room_or_404(store, room_id, MEMBERS)
    return room.active_members()


async def change_member_role(
        store: RoomStore,
        room_id: int,
        member_id: int,
        role: MemberRole,
) -> MembershipRecord:
    if not await store.set_member_role(room_id, member_id, role):
        raise NotFoundError("member", ErrorCode.MEMBER_NOT_FOUND)
    logger.info("Member %s of room %s is now %s", member_id, room_id, role.value)
    return MembershipRecord(user_id=member_id, role=role)


async def remove_member(store: RoomStore, room_id: int, member_id: int) -> None:
    if not await store.soft_delete_member(room_id, member_id):
        raise NotFoundError("member", ErrorCode.MEMBER_NOT_FOUND)
    logger.info("Member %s removed from room %s", member_id, room_id)


async def leave_room(store: RoomStore, room_id: int, user_id: int) -> None:
    """Self-removal; the only membership mutation a non-admin may perform."""
    if not await store.soft_delete_member(room_id, user_id):
        raise NotFoundError("member", ErrorCode.MEMBER_NOT_FOUND)
    logger.info("User %s left room %s", user_id, room_id)


# ── Messages ───────────────────────────────────────────────────────────────

async def list_messages(store: RoomStore, room_id: int) -> list[MessageRecord]:
    room = await _get_room_or_404(store, room_id, MESSAGES)
    return [m for m in room.messages if m.is_active]


async def post_message(
        store: RoomStore,
        room_id: int,
        user_id: int,
        content: str,
        parent_id: int | None = None,
) -> MessageRecord:
    """
    Posts a message, or a reply when `parent_id` is given. Replies always
    attach to the root of the thread, never to another reply.

    Raises:
      NotFoundError(MESSAGE_NOT_FOUND, 404) — parent missing or deleted
    """
    if parent_id is not None:
        room = await _get_room_or_404(store, room_id, MESSAGES)
        parent = room.find_message(parent_id)
        if parent is None or not parent.is_active:
            raise NotFoundError("message", ErrorCode.MESSAGE_NOT_FOUND)
        parent_id = parent.parent_id if parent.parent_id is not None else parent.id

    return await store.add_message(room_id, user_id, content, parent_id)


async def delete_message(store: RoomStore, room_id: int, message_id: int) -> None:
    if not await store.soft_delete_message(room_id, message_id):
        raise NotFoundError("message", ErrorCode.MESSAGE_NOT_FOUND)
    logger.info("Message %s in room %s soft-deleted", message_id, room_id)
