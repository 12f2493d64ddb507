"""
models/room.py — Room table definition.

Rooms are soft-deleted: deleted_at is set instead of removing the row, and
every query must filter deleted_at IS NULL explicitly.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatrooms.app.extensions import db


class Room(db.Model):
    __tablename__ = "rooms"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_rooms_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Stable unless explicitly rotated.
    invitation_code: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────
    # Read-only navigation — all mutations go through SqlRoomStore.

    members: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="room",
        order_by="Membership.id",
    )

    messages: Mapped[list["Message"]] = relationship(  # noqa: F821
        "Message",
        back_populates="room",
        order_by="Message.id",
    )

    incoming_requests: Mapped[list["IncomingRequest"]] = relationship(  # noqa: F821
        "IncomingRequest",
        back_populates="room",
        order_by="IncomingRequest.id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Room id={self.id} name={self.name!r}>"
