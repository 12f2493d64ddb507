"""
repositories/room_store.py — The room store contract and its SQL backing.

The authorization core reads rooms through a narrow contract:
  - find_one(...)               a filtered, projected point lookup
  - find_rooms_with_request(...) rooms whose incoming requests contain a user

Rooms come back as immutable RoomDocument snapshots (members, messages and
pending requests embedded), so a guard can never observe a half-updated room.

Mutations are single conditional statements keyed by room id + member id
(UPDATE ... WHERE deleted_at IS NULL, INSERT ... SELECT ... WHERE NOT EXISTS),
which is the only atomicity the core relies on.

Layer rules:
  - No Flask imports. The store receives a SQLAlchemy session.
  - Commits are the route's responsibility — only flush here.
  - Every SQLAlchemyError is re-raised as StoreFaultError with the cause chained.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterator, Protocol

from sqlalchemy import delete, insert, literal, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from chatrooms.app.enums import MemberRole
from chatrooms.app.errors import ConflictError, ErrorCode, StoreFaultError
from chatrooms.app.models.incoming_request import IncomingRequest
from chatrooms.app.models.membership import Membership
from chatrooms.app.models.message import Message
from chatrooms.app.models.room import Room


# ── Projections ────────────────────────────────────────────────────────────

MEMBERS  = frozenset({"members"})
MESSAGES = frozenset({"messages"})
REQUESTS = frozenset({"incoming_requests"})
FULL     = MEMBERS | MESSAGES | REQUESTS


# ── Read model ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MembershipRecord:
    user_id: int
    role: MemberRole
    deleted_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


@dataclass(frozen=True)
class MessageRecord:
    id: int
    user_id: int
    content: str = ""
    parent_id: int | None = None
    deleted_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


@dataclass(frozen=True)
class RoomDocument:
    id: int
    name: str
    invitation_code: str
    deleted_at: datetime | None = None
    members: tuple[MembershipRecord, ...] = ()
    messages: tuple[MessageRecord, ...] = ()
    incoming_requests: tuple[int, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def active_membership(self, user_id: int) -> MembershipRecord | None:
        """The user's non-deleted membership, ignoring historical rows."""
        for member in self.members:
            if member.user_id == user_id and member.is_active:
                return member
        return None

    def active_members(self) -> list[MembershipRecord]:
        return [m for m in self.members if m.is_active]

    def find_message(self, message_id: int) -> MessageRecord | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def has_request(self, user_id: int) -> bool:
        return user_id in self.incoming_requests


# ── Contract ───────────────────────────────────────────────────────────────

class RoomStore(Protocol):

    async def find_one(
            self,
            *,
            room_id: int | None = None,
            invitation_code: str | None = None,
            projection: frozenset[str] = FULL,
            include_deleted: bool = False,
    ) -> RoomDocument | None: ...

    async def find_rooms_with_request(
            self,
            user_id: int,
            *,
            invitation_code: str | None = None,
    ) -> list[RoomDocument]: ...

    async def list_rooms_for_user(self, user_id: int) -> list[RoomDocument]: ...

    async def create_room(self, name: str, creator_id: int, invitation_code: str) -> RoomDocument: ...

    async def soft_delete_room(self, room_id: int) -> bool: ...

    async def add_incoming_request(self, room_id: int, user_id: int) -> bool: ...

    async def approve_request(self, room_id: int, user_id: int, role: MemberRole) -> bool: ...

    async def reject_request(self, room_id: int, user_id: int) -> bool: ...

    async def set_member_role(self, room_id: int, user_id: int, role: MemberRole) -> bool: ...

    async def soft_delete_member(self, room_id: int, user_id: int) -> bool: ...

    async def add_message(
            self,
            room_id: int,
            user_id: int,
            content: str,
            parent_id: int | None = None,
    ) -> MessageRecord: ...

    async def soft_delete_message(self, room_id: int, message_id: int) -> bool: ...


# ── Private helpers ────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _load_options(projection: frozenset[str]) -> list:
    options = []
    if "members" in projection:
        options.append(selectinload(Room.members))
    if "messages" in projection:
        options.append(selectinload(Room.messages))
    if "incoming_requests" in projection:
        options.append(selectinload(Room.incoming_requests))
    return options


def _to_document(room: Room, projection: frozenset[str]) -> RoomDocument:
    members: tuple[MembershipRecord, ...] = ()
    messages: tuple[MessageRecord, ...] = ()
    requests: tuple[int, ...] = ()

    if "members" in projection:
        members = tuple(
            MembershipRecord(user_id=m.user_id, role=m.role, deleted_at=m.deleted_at)
            for m in room.members
        )
    if "messages" in projection:
        messages = tuple(
            MessageRecord(
                id=m.id,
                user_id=m.user_id,
                content=m.content,
                parent_id=m.parent_id,
                deleted_at=m.deleted_at,
            )
            for m in room.messages
        )
    if "incoming_requests" in projection:
        requests = tuple(r.user_id for r in room.incoming_requests)

    return RoomDocument(
        id=room.id,
        name=room.name,
        invitation_code=room.invitation_code,
        deleted_at=room.deleted_at,
        members=members,
        messages=messages,
        incoming_requests=requests,
    )


# ── SQL implementation ─────────────────────────────────────────────────────

class SqlRoomStore:
    """
    RoomStore over a SQLAlchemy session.

    The methods are coroutines so guards can await them uniformly; the
    statements themselves run on the request's synchronous session.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @contextmanager
    def _fault(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StoreFaultError(operation) from exc

    def _flushed(self) -> None:
        # Later snapshot reads in the same request must see the write.
        self._session.flush()
        self._session.expire_all()

    # ── Reads ──────────────────────────────────────────────────────────────

    async def find_one(
            self,
            *,
            room_id: int | None = None,
            invitation_code: str | None = None,
            projection: frozenset[str] = FULL,
            include_deleted: bool = False,
    ) -> RoomDocument | None:
        if room_id is None and invitation_code is None:
            raise ValueError("find_one requires room_id or invitation_code.")

        stmt = select(Room)
        if room_id is not None:
            stmt = stmt.where(Room.id == room_id)
        if invitation_code is not None:
            stmt = stmt.where(Room.invitation_code == invitation_code)
        if not include_deleted:
            stmt = stmt.where(Room.deleted_at.is_(None))
        stmt = stmt.options(*_load_options(projection))

        with self._fault("find_one"):
            room = self._session.execute(stmt).scalar_one_or_none()
            if room is None:
                return None
            return _to_document(room, projection)

    async def find_rooms_with_request(
            self,
            user_id: int,
            *,
            invitation_code: str | None = None,
    ) -> list[RoomDocument]:
        stmt = (
            select(Room)
            .join(IncomingRequest, IncomingRequest.room_id == Room.id)
            .where(
                IncomingRequest.user_id == user_id,
                Room.deleted_at.is_(None),
            )
            .order_by(IncomingRequest.requested_at.asc(), Room.id.asc())
            .options(*_load_options(REQUESTS))
        )
        if invitation_code is not None:
            stmt = stmt.where(Room.invitation_code == invitation_code)

        with self._fault("find_rooms_with_request"):
            rooms = self._session.execute(stmt).scalars().unique().all()
            return [_to_document(room, REQUESTS) for room in rooms]

    async def list_rooms_for_user(self, user_id: int) -> list[RoomDocument]:
        stmt = (
            select(Room)
            .join(Membership, Membership.room_id == Room.id)
            .where(
                Membership.user_id == user_id,
                Membership.deleted_at.is_(None),
                Room.deleted_at.is_(None),
            )
            .order_by(Room.created_at.asc(), Room.id.asc())
            .options(*_load_options(MEMBERS))
        )
        with self._fault("list_rooms_for_user"):
            rooms = self._session.execute(stmt).scalars().unique().all()
            return [_to_document(room, MEMBERS) for room in rooms]

    # ── Writes ─────────────────────────────────────────────────────────────

    async def create_room(self, name: str, creator_id: int, invitation_code: str) -> RoomDocument:
        with self._fault("create_room"):
            room = Room(name=name, invitation_code=invitation_code)
            self._session.add(room)
            self._session.flush()  # populate room.id before creating membership

            self._session.add(Membership(
                room_id=room.id,
                user_id=creator_id,
                role=MemberRole.ADMIN,
            ))
            self._session.flush()

            return RoomDocument(
                id=room.id,
                name=room.name,
                invitation_code=room.invitation_code,
                members=(MembershipRecord(user_id=creator_id, role=MemberRole.ADMIN),),
            )

    async def soft_delete_room(self, room_id: int) -> bool:
        stmt = (
            update(Room)
            .where(Room.id == room_id, Room.deleted_at.is_(None))
            .values(deleted_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        with self._fault("soft_delete_room"):
            result = self._session.execute(stmt)
            self._flushed()
            return result.rowcount == 1

    async def add_incoming_request(self, room_id: int, user_id: int) -> bool:
        """
        Records a pending join request unless the user is already an active
        member or already waiting. Returns False when nothing was inserted.
        """
        room_is_open = (
            select(Room.id)
            .where(Room.id == room_id, Room.deleted_at.is_(None))
            .correlate(None)
            .exists()
        )
        already_member = (
            select(Membership.id)
            .where(
                Membership.room_id == room_id,
                Membership.user_id == user_id,
                Membership.deleted_at.is_(None),
            )
            .correlate(None)
            .exists()
        )
        already_requested = (
            select(IncomingRequest.id)
            .where(
                IncomingRequest.room_id == room_id,
                IncomingRequest.user_id == user_id,
            )
            .correlate(None)
            .exists()
        )
        stmt = insert(IncomingRequest).from_select(
            ["room_id", "user_id"],
            select(literal(room_id), literal(user_id))
            .where(room_is_open, ~already_member, ~already_requested),
        )

        with self._fault("add_incoming_request"):
            try:
                result = self._session.execute(stmt)
            except IntegrityError:
                # Lost a race against a concurrent identical request.
                self._session.rollback()
                return False
            self._flushed()
            return result.rowcount == 1

    async def approve_request(
            self,
            room_id: int,
            user_id: int,
            role: MemberRole = MemberRole.MEMBER,
    ) -> bool:
        """Moves a pending requester into the room. False if no request exists."""
        stmt = (
            delete(IncomingRequest)
            .where(
                IncomingRequest.room_id == room_id,
                IncomingRequest.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        with self._fault("approve_request"):
            result = self._session.execute(stmt)
            if result.rowcount != 1:
                return False
            self._session.add(Membership(room_id=room_id, user_id=user_id, role=role))
            try:
                self._flushed()
            except IntegrityError:
                self._session.rollback()
                raise ConflictError(ErrorCode.ALREADY_MEMBER)
            return True

    async def reject_request(self, room_id: int, user_id: int) -> bool:
        stmt = (
            delete(IncomingRequest)
            .where(
                IncomingRequest.room_id == room_id,
                IncomingRequest.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        with self._fault("reject_request"):
            result = self._session.execute(stmt)
            self._flushed()
            return result.rowcount == 1

    async def set_member_role(self, room_id: int, user_id: int, role: MemberRole) -> bool:
        stmt = (
            update(Membership)
            .where(
                Membership.room_id == room_id,
                Membership.user_id == user_id,
                Membership.deleted_at.is_(None),
            )
            .values(role=role)
            .execution_options(synchronize_session=False)
        )
        with self._fault("set_member_role"):
            result = self._session.execute(stmt)
            self._flushed()
            return result.rowcount == 1

    async def soft_delete_member(self, room_id: int, user_id: int) -> bool:
        stmt = (
            update(Membership)
            .where(
                Membership.room_id == room_id,
                Membership.user_id == user_id,
                Membership.deleted_at.is_(None),
            )
            .values(deleted_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        with self._fault("soft_delete_member"):
            result = self._session.execute(stmt)
            self._flushed()
            return result.rowcount == 1

    async def add_message(
            self,
            room_id: int,
            user_id: int,
            content: str,
            parent_id: int | None = None,
    ) -> MessageRecord:
        with self._fault("add_message"):
            message = Message(
                room_id=room_id,
                user_id=user_id,
                content=content,
                parent_id=parent_id,
            )
            self._session.add(message)
            self._session.flush()
            return MessageRecord(
                id=message.id,
                user_id=user_id,
                content=content,
                parent_id=parent_id,
            )

    async def soft_delete_message(self, room_id: int, message_id: int) -> bool:
        stmt = (
            update(Message)
            .where(
                Message.room_id == room_id,
                Message.id == message_id,
                Message.deleted_at.is_(None),
            )
            .values(deleted_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        with self._fault("soft_delete_message"):
            result = self._session.execute(stmt)
            self._flushed()
            return result.rowcount == 1


# ── Request-scoped snapshot ────────────────────────────────────────────────

class SnapshotRoomStore:
    """
    Memoizes room documents for the lifetime of one guard pipeline.

    A room is loaded with the projection its first caller asks for. A later
    lookup needing relations that are not loaded yet reads ONLY those
    relations and merges them into the cached document; a relation already
    read is never read again. No two guards in one request therefore see
    different versions of the same data, and a membership check never pulls
    the room's message history.
    Everything else is delegated to the wrapped store unchanged.
    """

    def __init__(self, store: RoomStore) -> None:
        self._store = store
        self._by_id: dict[int, RoomDocument | None] = {}
        self._by_code: dict[str, int | None] = {}
        self._loaded: dict[int, frozenset[str]] = {}

    async def find_one(
            self,
            *,
            room_id: int | None = None,
            invitation_code: str | None = None,
            projection: frozenset[str] = FULL,
            include_deleted: bool = False,
    ) -> RoomDocument | None:
        if include_deleted:
            return await self._store.find_one(
                room_id=room_id,
                invitation_code=invitation_code,
                projection=projection,
                include_deleted=True,
            )

        cached_id = room_id
        if cached_id is None and invitation_code in self._by_code:
            cached_id = self._by_code[invitation_code]
            if cached_id is None:
                return None

        if cached_id is not None and cached_id in self._by_id:
            room = self._by_id[cached_id]
            if room is not None:
                missing = projection - self._loaded[room.id]
                if missing:
                    room = await self._widen(room, missing)
        elif room_id is not None:
            room = await self._store.find_one(room_id=room_id, projection=projection)
            self._remember(room, projection)
            if room is None:
                self._by_id[room_id] = None
        else:
            room = await self._store.find_one(invitation_code=invitation_code, projection=projection)
            self._remember(room, projection)
            if room is None:
                self._by_code[invitation_code] = None

        if room is None:
            return None
        if invitation_code is not None and room.invitation_code != invitation_code:
            return None
        return room

    def _remember(self, room: RoomDocument | None, projection: frozenset[str]) -> None:
        if room is None:
            return
        self._by_id[room.id] = room
        self._by_code[room.invitation_code] = room.id
        self._loaded[room.id] = projection

    async def _widen(self, room: RoomDocument, missing: frozenset[str]) -> RoomDocument:
        extra = await self._store.find_one(room_id=room.id, projection=missing)
        # A room deleted mid-request keeps the snapshot already handed out.
        if extra is not None:
            room = replace(room, **{name: getattr(extra, name) for name in missing})
        self._by_id[room.id] = room
        self._loaded[room.id] = self._loaded[room.id] | missing
        return room

    def __getattr__(self, name: str):
        return getattr(self._store, name)
