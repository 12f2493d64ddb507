"""
models/membership.py — Membership table definition.

A membership is a user's role in a room. Removing a member sets deleted_at;
the row stays as history and is ignored by every authorization check.

A user holds at most one non-deleted membership per room. That invariant is a
partial unique index (WHERE deleted_at IS NULL) on PostgreSQL and SQLite.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatrooms.app.enums import MemberRole
from chatrooms.app.extensions import db


member_role_enum = Enum(
    MemberRole,
    name="member_role_enum",
    native_enum=False,
    length=20,
    values_callable=lambda roles: [r.value for r in roles],
    validate_strings=True,
)


class Membership(db.Model):
    __tablename__ = "memberships"

    __table_args__ = (
        Index(
            "uq_memberships_active_room_user",
            "room_id",
            "user_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    room_id: Mapped[int] = mapped_column(
        ForeignKey("rooms.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        member_role_enum,
        nullable=False,
        default=MemberRole.MEMBER,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    room: Mapped["Room"] = relationship(  # noqa: F821
        "Room",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Membership id={self.id} "
            f"user_id={self.user_id} "
            f"room_id={self.room_id} "
            f"role={self.role.value}>"
        )
