"""
models/message.py — Message table definition.

Ownership is by user_id. A message with a parent_id is a reply inside the
thread started by the parent message. Deletion is soft (deleted_at).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatrooms.app.extensions import db


class Message(db.Model):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(primary_key=True)

    room_id: Mapped[int] = mapped_column(
        ForeignKey("rooms.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("messages.id", ondelete="RESTRICT"),
        nullable=True,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
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

    room: Mapped["Room"] = relationship(  # noqa: F821
        "Room",
        back_populates="messages",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Message id={self.id} room_id={self.room_id} user_id={self.user_id}>"
