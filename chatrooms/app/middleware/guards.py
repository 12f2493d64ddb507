"""
middleware/guards.py — The concrete authorization guards.

Every guard has the same shape: `async def guard(ctx) -> Decision`. Guards
assume the earlier guards of the route already ran: anything after
require_api_token (or require_session) may rely on ctx.identity.

| Guard                        | Passes when                                   | Deny            |
|------------------------------|-----------------------------------------------|-----------------|
| require_session              | session is authenticated                      | redirect /login |
| require_api_token            | Authorization token verifies                  | 401             |
| require_room_membership      | active membership in room_id                  | 403             |
| require_room_admin           | active membership with role ADMIN             | 403             |
| require_writable_membership  | active membership, role can write             | 403             |
| require_resource_owner(kind) | identity is one of the resolved owners        | 403 / redirect  |
| deny_self_target             | member_id is not the caller                   | 403             |
| require_message_deletion     | writable membership AND own, undeleted message| 403             |
| resolve_join_by_code         | not a member and no pending request           | 200 / 404       |
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from chatrooms.app.enums import InvitationStatus, MemberRole
from chatrooms.app.errors import ErrorCode, NotFoundError, TokenError
from chatrooms.app.messages import translate
from chatrooms.app.middleware.pipeline import CONTINUE, Decision, Deny, Guard, GuardContext
from chatrooms.app.repositories.room_store import MEMBERS, MESSAGES
from chatrooms.app.services import invitation_service
from chatrooms.app.services.token_service import Identity, strip_bearer

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"

OwnerResolver = Callable[[GuardContext], Awaitable[tuple[int | None, ...]]]


def can_write(role: MemberRole) -> bool:
    """Whether a role may post and delete its own messages."""
    if role is MemberRole.ADMIN or role is MemberRole.MEMBER:
        return True
    if role is MemberRole.READ_ONLY:
        return False
    raise ValueError(f"Unhandled member role: {role!r}")


def _unauthenticated() -> Deny:
    return Deny(401, ErrorCode.TOKEN_ERROR)


# ── Identity ───────────────────────────────────────────────────────────────

async def require_session(ctx: GuardContext) -> Decision:
    """Browser routes: the session must carry a logged-in identity."""
    stored = ctx.session.get("identity")
    if ctx.session.get("authenticated") and isinstance(stored, dict):
        try:
            ctx.identity = Identity(
                id=int(stored["id"]),
                email=str(stored.get("email", "")),
                display_name=str(stored.get("display_name", "")),
            )
        except (KeyError, TypeError, ValueError):
            ctx.identity = None
        if ctx.identity is not None:
            return CONTINUE

    if ctx.method == "GET":
        ctx.session["return_to"] = ctx.path
    return Deny(302, ErrorCode.LOGIN_REQUIRED, location=LOGIN_PATH)


async def require_api_token(ctx: GuardContext) -> Decision:
    """API routes: verify the Authorization token and set ctx.identity."""
    try:
        ctx.identity = ctx.tokens.verify(strip_bearer(ctx.authorization))
    except TokenError as exc:
        # Which check failed stays in the server log.
        logger.debug("Rejected token on %s %s: %s", ctx.method, ctx.path, exc.detail)
        return _unauthenticated()
    return CONTINUE


# ── Room membership ────────────────────────────────────────────────────────

async def require_room_membership(ctx: GuardContext) -> Decision:
    if ctx.identity is None:
        return _unauthenticated()

    room_id = ctx.int_param("room_id")
    membership = None
    if room_id is not None:
        membership = await ctx.memberships.find_active_membership(room_id, ctx.identity.id)
    if membership is None:
        return Deny(403, ErrorCode.USER_NOT_IN_ROOM)

    ctx.membership = membership
    return CONTINUE


async def require_room_admin(ctx: GuardContext) -> Decision:
    if ctx.identity is None:
        return _unauthenticated()

    room_id = ctx.int_param("room_id")
    membership = None
    if room_id is not None:
        membership = await ctx.memberships.find_active_membership_with_role(
            room_id, ctx.identity.id, MemberRole.ADMIN,
        )
    if membership is None:
        return Deny(403, ErrorCode.NOT_ADMIN)

    ctx.membership = membership
    return CONTINUE


async def require_writable_membership(ctx: GuardContext) -> Decision:
    """Active member whose role may write (posting messages)."""
    decision = await require_room_membership(ctx)
    if decision is not CONTINUE:
        return decision
    if not can_write(ctx.membership.role):
        return Deny(403, ErrorCode.READ_ONLY)
    return CONTINUE


async def deny_self_target(ctx: GuardContext) -> Decision:
    """Blocks an admin from removing themselves via the member-removal endpoint."""
    if ctx.identity is None:
        return _unauthenticated()

    if ctx.int_param("member_id") == ctx.identity.id:
        return Deny(403, ErrorCode.NOT_ADMIN)
    return CONTINUE


# ── Ownership ──────────────────────────────────────────────────────────────

async def require_message_deletion(ctx: GuardContext) -> Decision:
    """
    Ownership, not admin rights, gates deletion: the caller must hold a
    writable membership AND own the message AND the message must not already
    be deleted. An admin cannot delete someone else's message here.
    """
    if ctx.identity is None:
        return _unauthenticated()

    room_id = ctx.int_param("room_id")
    message_id = ctx.int_param("message_id")
    if room_id is None or message_id is None:
        return Deny(403, ErrorCode.FORBIDDEN)

    # Membership and messages in one read of the room.
    room = await ctx.memberships.find_room(room_id=room_id, projection=MEMBERS | MESSAGES)
    membership = room.active_membership(ctx.identity.id) if room is not None else None
    if membership is None or not can_write(membership.role):
        return Deny(403, ErrorCode.FORBIDDEN)

    message = room.find_message(message_id)
    if message is None or not message.is_active or message.user_id != ctx.identity.id:
        return Deny(403, ErrorCode.FORBIDDEN)

    ctx.membership = membership
    ctx.room = room
    return CONTINUE


def require_resource_owner(
        kind: str,
        resolve_owners: OwnerResolver,
        redirect_to: Callable[[GuardContext], str] | None = None,
) -> Guard:
    """
    Builds a guard passing when the caller is ANY of the owners returned by
    `resolve_owners` (e.g. a reply's author OR the thread's author).

    API routes answer 403; browser routes pass `redirect_to` and get a
    redirect with an "info" flash message instead.
    """
    async def guard(ctx: GuardContext) -> Decision:
        if ctx.identity is None:
            return _unauthenticated()

        owners = {owner for owner in await resolve_owners(ctx) if owner is not None}
        if ctx.identity.id in owners:
            return CONTINUE

        if redirect_to is not None:
            ctx.flashes.append(("info", translate(ErrorCode.NOT_AUTHORIZED)))
            return Deny(302, ErrorCode.NOT_AUTHORIZED, location=redirect_to(ctx))
        return Deny(403, ErrorCode.NOT_AUTHORIZED)

    guard.__name__ = f"require_{kind}_owner"
    return guard


async def profile_owner(ctx: GuardContext) -> tuple[int | None, ...]:
    return (ctx.int_param("user_id"),)


async def reply_or_thread_owner(ctx: GuardContext) -> tuple[int | None, ...]:
    """Author of the reply, and author of the message that started the thread."""
    room_id = ctx.int_param("room_id")
    thread_id = ctx.int_param("parent_id")
    reply_id = ctx.int_param("message_id")
    if room_id is None or thread_id is None or reply_id is None:
        return ()

    room = await ctx.memberships.find_room(room_id=room_id, projection=MESSAGES)
    if room is None:
        return ()

    reply = room.find_message(reply_id)
    if reply is None or not reply.is_active or reply.parent_id != thread_id:
        return ()

    ctx.room = room
    thread = room.find_message(thread_id)
    return (reply.user_id, thread.user_id if thread is not None else None)


# ── Invitations ────────────────────────────────────────────────────────────

async def resolve_join_by_code(ctx: GuardContext) -> Decision:
    """
    Join-by-code step. Answers IN_ROOM / HAVE_REQUEST_BEFORE directly (200,
    nothing written); only a user unrelated to the room reaches the handler.
    """
    if ctx.identity is None:
        return _unauthenticated()

    code = ctx.param("invitation_code")
    if not code:
        return Deny(404, ErrorCode.ROOM_NOT_FOUND)

    try:
        resolution = await invitation_service.resolve_join_by_code(
            ctx.memberships, str(code), ctx.identity.id,
        )
    except NotFoundError:
        return Deny(404, ErrorCode.ROOM_NOT_FOUND)

    ctx.resolution = resolution
    status = resolution.status

    if status is InvitationStatus.IN_ROOM:
        return Deny(200, "room.invitation.in_room", body={
            "status": status.value,
            "message": translate("room.invitation.in_room"),
            "room_id": resolution.room_id,
        })
    if status is InvitationStatus.HAVE_REQUEST_BEFORE:
        return Deny(200, "room.invitation.requested", body={
            "status": status.value,
            "message": translate("room.invitation.requested"),
        })
    if status is InvitationStatus.CAN_REQUEST:
        return CONTINUE
    raise ValueError(f"Unhandled invitation status: {status!r}")
