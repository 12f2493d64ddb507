"""
services/membership_service.py — "Is user U an active member/admin of room R?"

Rules:
  - Deleted rooms and deleted memberships never count.
  - Role matching is exact. There is no role hierarchy: ADMIN does not satisfy
    a MEMBER-only filter. Callers that accept several roles pass the set.

Layer rules:
  - No Flask imports. The store is handed to the constructor so tests can
    substitute an in-memory fake.
"""

from __future__ import annotations

from typing import Iterable

from chatrooms.app.enums import MemberRole
from chatrooms.app.repositories.room_store import (
    FULL,
    MEMBERS,
    MembershipRecord,
    RoomDocument,
    RoomStore,
)


def _role_set(required: MemberRole | Iterable[MemberRole]) -> frozenset[MemberRole]:
    if isinstance(required, MemberRole):
        return frozenset({required})
    roles = frozenset(required)
    unknown = [r for r in roles if not isinstance(r, MemberRole)]
    if unknown:
        raise TypeError(f"Unknown member roles: {unknown!r}")
    return roles


class MembershipQuery:

    def __init__(self, store: RoomStore) -> None:
        self._store = store

    @property
    def store(self) -> RoomStore:
        return self._store

    async def find_room(
            self,
            room_id: int | None = None,
            invitation_code: str | None = None,
            projection: frozenset[str] = FULL,
    ) -> RoomDocument | None:
        """Non-deleted room by id or invitation code."""
        room = await self._store.find_one(
            room_id=room_id,
            invitation_code=invitation_code,
            projection=projection,
        )
        if room is None or not room.is_active:
            return None
        return room

    async def find_active_membership(
            self,
            room_id: int,
            user_id: int,
    ) -> MembershipRecord | None:
        room = await self.find_room(room_id=room_id, projection=MEMBERS)
        if room is None:
            return None
        return room.active_membership(user_id)

    async def find_active_membership_with_role(
            self,
            room_id: int,
            user_id: int,
            required_role: MemberRole | Iterable[MemberRole],
    ) -> MembershipRecord | None:
        roles = _role_set(required_role)
        membership = await self.find_active_membership(room_id, user_id)
        if membership is None or membership.role not in roles:
            return None
        return membership
