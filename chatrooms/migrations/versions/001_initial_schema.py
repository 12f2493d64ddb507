"""Initial schema — users, rooms, memberships, messages, join requests.

Revision: 001_initial_schema

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. Tables in FK dependency order (users → rooms → memberships, messages,
     incoming_requests)
  2. Indexes (including the partial unique index on active memberships)

The member role is stored as VARCHAR (native_enum=False in the model) so the
same schema runs on PostgreSQL and SQLite.

ON DELETE policies:
  memberships.*             → RESTRICT  (rooms are soft-deleted, never removed)
  messages.*                → RESTRICT
  incoming_requests.*       → CASCADE   (a pending request has no history value)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── Step 1: users ──────────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    # ── Step 2: rooms ──────────────────────────────────────────────────────
    # Soft delete: deleted_at IS NULL means the room is live.

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("invitation_code", sa.String(64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_rooms"),
        sa.UniqueConstraint("invitation_code", name="uq_rooms_invitation_code"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_rooms_name_nonempty",
        ),
    )

    # ── Step 3: memberships ────────────────────────────────────────────────

    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "room_id",
            sa.Integer(),
            sa.ForeignKey("rooms.id", ondelete="RESTRICT", name="fk_memberships_room"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_memberships_user"),
            nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_memberships"),
        sa.CheckConstraint(
            "role IN ('admin', 'member', 'read_only')",
            name="ck_memberships_role",
        ),
    )

    # ── Step 4: messages ───────────────────────────────────────────────────
    # parent_id points at the message that started the thread.

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "room_id",
            sa.Integer(),
            sa.ForeignKey("rooms.id", ondelete="RESTRICT", name="fk_messages_room"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_messages_user"),
            nullable=False,
        ),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("messages.id", ondelete="RESTRICT", name="fk_messages_parent"),
            nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_messages"),
    )

    # ── Step 5: incoming_requests ──────────────────────────────────────────

    op.create_table(
        "incoming_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "room_id",
            sa.Integer(),
            sa.ForeignKey("rooms.id", ondelete="CASCADE", name="fk_incoming_requests_room"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_incoming_requests_user"),
            nullable=False,
        ),
        sa.Column(
            "requested_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_incoming_requests"),
        sa.UniqueConstraint("room_id", "user_id", name="uq_incoming_requests_room_user"),
    )

    # ── Step 6: indexes ────────────────────────────────────────────────────

    # At most one live membership per (room, user).
    op.create_index(
        "uq_memberships_active_room_user",
        "memberships",
        ["room_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL"),
    )
    op.create_index("ix_memberships_room_id", "memberships", ["room_id"])
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index("ix_messages_room_id", "messages", ["room_id"])
    op.create_index("ix_incoming_requests_room_id", "incoming_requests", ["room_id"])
    op.create_index("ix_incoming_requests_user_id", "incoming_requests", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_incoming_requests_user_id", table_name="incoming_requests")
    op.drop_index("ix_incoming_requests_room_id", table_name="incoming_requests")
    op.drop_index("ix_messages_room_id", table_name="messages")
    op.drop_index("ix_memberships_user_id", table_name="memberships")
    op.drop_index("ix_memberships_room_id", table_name="memberships")
    op.drop_index("uq_memberships_active_room_user", table_name="memberships")

    op.drop_table("incoming_requests")
    op.drop_table("messages")
    op.drop_table("memberships")
    op.drop_table("rooms")
    op.drop_table("users")
