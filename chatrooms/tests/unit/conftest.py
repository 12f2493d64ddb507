"""
tests/unit/conftest.py — In-memory doubles for DB-free unit tests.

FakeRoomStore implements the RoomStore contract over a dict of immutable
RoomDocuments. It counts lookups (so tests can prove a single snapshot read)
and can be switched into a failing mode that raises StoreFaultError the way
SqlRoomStore does when the database is unreachable.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from chatrooms.app.enums import MemberRole
from chatrooms.app.errors import ConflictError, ErrorCode, StoreFaultError
from chatrooms.app.middleware.pipeline import GuardContext
from chatrooms.app.repositories.room_store import (
    FULL,
    MembershipRecord,
    MessageRecord,
    RoomDocument,
    SnapshotRoomStore,
)
from chatrooms.app.services.membership_service import MembershipQuery
from chatrooms.app.services.token_service import Identity, TokenService

TEST_SECRET = "unit-test-secret-that-is-long-enough-for-hs256"
NOW = 1_700_000_000

DELETED_AT = "2024-01-01T00:00:00+00:00"


def run(coro):
    """Drives a guard/service coroutine to completion."""
    return asyncio.run(coro)


def make_room(
        room_id: int = 1,
        members: list[tuple[int, MemberRole]] | None = None,
        removed: list[int] | None = None,
        messages: list[MessageRecord] | None = None,
        requests: list[int] | None = None,
        code: str | None = None,
        deleted: bool = False,
        name: str = "General",
) -> RoomDocument:
    records = [MembershipRecord(user_id=u, role=r) for u, r in (members or [])]
    records += [
        MembershipRecord(user_id=u, role=MemberRole.MEMBER, deleted_at=DELETED_AT)
        for u in (removed or [])
    ]
    return RoomDocument(
        id=room_id,
        name=name,
        invitation_code=code or f"code-{room_id}",
        deleted_at=DELETED_AT if deleted else None,
        members=tuple(records),
        messages=tuple(messages or ()),
        incoming_requests=tuple(requests or ()),
    )


class FakeRoomStore:

    def __init__(self, *rooms: RoomDocument) -> None:
        self.rooms: dict[int, RoomDocument] = {room.id: room for room in rooms}
        self.find_calls = 0
        self.projections: list[frozenset[str]] = []
        self.failing = False
        self._next_message_id = 1000

    def _check(self) -> None:
        if self.failing:
            try:
                raise ConnectionError("database unreachable")
            except ConnectionError as exc:
                raise StoreFaultError("fake") from exc

    def _live(self, room_id: int) -> RoomDocument | None:
        room = self.rooms.get(room_id)
        if room is None or not room.is_active:
            return None
        return room

    # ── Reads ──────────────────────────────────────────────────────────────

    async def find_one(
            self,
            *,
            room_id: int | None = None,
            invitation_code: str | None = None,
            projection: frozenset[str] = FULL,
            include_deleted: bool = False,
    ) -> RoomDocument | None:
        self.find_calls += 1
        self.projections.append(projection)
        self._check()
        for room in self.rooms.values():
            if room_id is not None and room.id != room_id:
                continue
            if invitation_code is not None and room.invitation_code != invitation_code:
                continue
            if not include_deleted and not room.is_active:
                continue
            # Only the projected relations come back, as with SqlRoomStore.
            return replace(room, **{name: () for name in FULL - projection})
        return None

    async def find_rooms_with_request(self, user_id, *, invitation_code=None):
        self._check()
        return [
            room for room in self.rooms.values()
            if room.is_active
            and room.has_request(user_id)
            and (invitation_code is None or room.invitation_code == invitation_code)
        ]

    async def list_rooms_for_user(self, user_id):
        self._check()
        return [
            room for room in self.rooms.values()
            if room.is_active and room.active_membership(user_id) is not None
        ]

    # ── Writes ─────────────────────────────────────────────────────────────

    async def create_room(self, name, creator_id, invitation_code):
        self._check()
        room_id = max(self.rooms, default=0) + 1
        room = RoomDocument(
            id=room_id,
            name=name,
            invitation_code=invitation_code,
            members=(MembershipRecord(user_id=creator_id, role=MemberRole.ADMIN),),
        )
        self.rooms[room_id] = room
        return room

    async def soft_delete_room(self, room_id):
        self._check()
        room = self._live(room_id)
        if room is None:
            return False
        self.rooms[room_id] = replace(room, deleted_at=DELETED_AT)
        return True

    async def add_incoming_request(self, room_id, user_id):
        self._check()
        room = self._live(room_id)
        if room is None or room.has_request(user_id) or room.active_membership(user_id):
            return False
        self.rooms[room_id] = replace(
            room, incoming_requests=room.incoming_requests + (user_id,),
        )
        return True

    async def approve_request(self, room_id, user_id, role):
        self._check()
        room = self._live(room_id)
        if room is None or not room.has_request(user_id):
            return False
        if room.active_membership(user_id) is not None:
            raise ConflictError(ErrorCode.ALREADY_MEMBER)
        self.rooms[room_id] = replace(
            room,
            incoming_requests=tuple(u for u in room.incoming_requests if u != user_id),
            members=room.members + (MembershipRecord(user_id=user_id, role=role),),
        )
        return True

    async def reject_request(self, room_id, user_id):
        self._check()
        room = self._live(room_id)
        if room is None or not room.has_request(user_id):
            return False
        self.rooms[room_id] = replace(
            room,
            incoming_requests=tuple(u for u in room.incoming_requests if u != user_id),
        )
        return True

    def _replace_member(self, room_id, user_id, **changes) -> bool:
        room = self._live(room_id)
        if room is None or room.active_membership(user_id) is None:
            return False
        members = tuple(
            replace(m, **changes) if m.user_id == user_id and m.is_active else m
            for m in room.members
        )
        self.rooms[room_id] = replace(room, members=members)
        return True

    async def set_member_role(self, room_id, user_id, role):
        self._check()
        return self._replace_member(room_id, user_id, role=role)

    async def soft_delete_member(self, room_id, user_id):
        self._check()
        return self._replace_member(room_id, user_id, deleted_at=DELETED_AT)

    async def add_message(self, room_id, user_id, content, parent_id=None):
        self._check()
        self._next_message_id += 1
        record = MessageRecord(
            id=self._next_message_id,
            user_id=user_id,
            content=content,
            parent_id=parent_id,
        )
        room = self.rooms[room_id]
        self.rooms[room_id] = replace(room, messages=room.messages + (record,))
        return record

    async def soft_delete_message(self, room_id, message_id):
        self._check()
        room = self._live(room_id)
        message = room.find_message(message_id) if room is not None else None
        if message is None or not message.is_active:
            return False
        self.rooms[room_id] = replace(room, messages=tuple(
            replace(m, deleted_at=DELETED_AT) if m.id == message_id else m
            for m in room.messages
        ))
        return True


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def tokens() -> TokenService:
    """TokenService with a frozen clock at NOW and a one-hour TTL."""
    return TokenService(TEST_SECRET, ttl_seconds=3600, clock=lambda: NOW)


@pytest.fixture
def alice() -> Identity:
    return Identity(id=1, email="alice@test.com", display_name="Alice")


@pytest.fixture
def bob() -> Identity:
    return Identity(id=2, email="bob@test.com", display_name="Bob")


@pytest.fixture
def make_ctx(tokens):
    """
    Builds a GuardContext over a FakeRoomStore, wrapped in the same
    request-scoped SnapshotRoomStore the Flask adapter uses.
    """
    def _make(store: FakeRoomStore, identity: Identity | None = None, **kwargs) -> GuardContext:
        ctx = GuardContext(
            tokens=tokens,
            memberships=MembershipQuery(SnapshotRoomStore(store)),
            **kwargs,
        )
        ctx.identity = identity
        return ctx

    return _make
