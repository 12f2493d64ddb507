"""
models/incoming_request.py — Pending join requests awaiting admin approval.

A user is in at most one of {active member, pending requester} for a room.
UNIQUE(room_id, user_id) stops duplicate requests; the "not already a member"
half is enforced by SqlRoomStore.add_incoming_request.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatrooms.app.extensions import db


class IncomingRequest(db.Model):
    __tablename__ = "incoming_requests"

    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_incoming_requests_room_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    room_id: Mapped[int] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    room: Mapped["Room"] = relationship(  # noqa: F821
        "Room",
        back_populates="incoming_requests",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<IncomingRequest room_id={self.room_id} user_id={self.user_id}>"
