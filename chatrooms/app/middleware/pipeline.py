"""
middleware/pipeline.py — The guard pipeline and its Flask adapter.

A guard is a coroutine `(GuardContext) -> Decision`:
  Continue                         pass control to the next guard
  Deny(status, reason, ...)        expected negative outcome (401/403/404,
                                   a redirect, or a terminal 200 answer)
  Fail(status, reason, cause)      unexpected fault, e.g. the store is down

A route lists its guards in order with @guarded(...). The pipeline stops at
the first non-Continue decision; when every guard continues, the view runs
with g.identity / g.membership / g.room populated.

Error mapping (the global handlers in app/__init__.py render the envelope):
  Deny 401  → NotAuthenticatedError   generic "Error token"
  Deny 404  → NotFoundError
  Deny 403  → NotAuthorizedError      localizable reason key
  Fail      → StoreFaultError         generic 500, cause logged server-side
"""

from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, MutableMapping, Union

from flask import current_app, flash, g, jsonify, redirect, request, session

from chatrooms.app.errors import (
    ErrorCode,
    NotAuthenticatedError,
    NotAuthorizedError,
    NotFoundError,
    StoreFaultError,
)
from chatrooms.app.extensions import db
from chatrooms.app.repositories.room_store import (
    MembershipRecord,
    RoomDocument,
    SnapshotRoomStore,
    SqlRoomStore,
)
from chatrooms.app.services.membership_service import MembershipQuery
from chatrooms.app.services.token_service import Identity, TokenService

logger = logging.getLogger(__name__)


# ── Decisions ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class Deny:
    status: int
    reason: str
    body: dict | None = None      # terminal JSON answer instead of an error
    location: str | None = None   # browser routes: redirect target


@dataclass(frozen=True)
class Fail:
    status: int
    reason: str
    cause: BaseException | None = field(default=None, compare=False)


CONTINUE = Continue()

Decision = Union[Continue, Deny, Fail]


# ── Context ────────────────────────────────────────────────────────────────

@dataclass
class GuardContext:
    """
    Everything a guard may look at, resolved by the transport layer up front.

    Guards write what they resolve (identity, membership, room, resolution)
    back onto the context for later guards and for the view.
    """

    tokens: TokenService
    memberships: MembershipQuery
    authorization: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)
    session: MutableMapping[str, Any] = field(default_factory=dict)
    method: str = "GET"
    path: str = "/"

    identity: Identity | None = None
    membership: MembershipRecord | None = None
    room: RoomDocument | None = None
    resolution: Any = None
    flashes: list[tuple[str, str]] = field(default_factory=list)

    def param(self, name: str) -> Any:
        """Path parameter first, then the JSON/form body."""
        value = self.params.get(name)
        if value is None:
            value = self.body.get(name)
        return value

    def int_param(self, name: str) -> int | None:
        value = self.param(name)
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


Guard = Callable[[GuardContext], Awaitable[Decision]]


def _guard_name(guard: Guard) -> str:
    return getattr(guard, "__name__", repr(guard))


# ── Pipeline ───────────────────────────────────────────────────────────────

async def run_pipeline(guards: tuple[Guard, ...] | list[Guard], ctx: GuardContext) -> Decision:
    """
    Runs `guards` in order and returns the first non-Continue decision, or
    CONTINUE when all of them pass. A StoreFaultError raised by a guard is
    turned into Fail(500); no guard is retried.
    """
    for guard in guards:
        try:
            decision = await guard(ctx)
        except StoreFaultError as exc:
            decision = Fail(500, ErrorCode.INTERNAL_ERROR, cause=exc.__cause__ or exc)

        if isinstance(decision, Continue):
            continue
        if isinstance(decision, Deny):
            logger.info(
                "Denied %s %s at %s: %s (%s)",
                ctx.method, ctx.path, _guard_name(guard), decision.reason, decision.status,
            )
            return decision
        if isinstance(decision, Fail):
            logger.error(
                "Guard %s failed on %s %s: %s",
                _guard_name(guard), ctx.method, ctx.path, decision.reason,
                exc_info=decision.cause,
            )
            return decision
        raise TypeError(
            f"Guard {_guard_name(guard)} returned {decision!r}; "
            "expected Continue, Deny or Fail."
        )
    return CONTINUE


# ── Flask adapter ──────────────────────────────────────────────────────────

def get_token_service() -> TokenService:
    return current_app.extensions["token_service"]


def get_room_store() -> SqlRoomStore:
    return SqlRoomStore(db.session)


def request_body() -> dict[str, Any]:
    """
    The request body as a dict, parsed the same way for guards and views.

    JSON is read regardless of the Content-Type header; a guard must never
    see a different body than the handler it protects.
    """
    body = request.get_json(force=True, silent=True)
    if isinstance(body, dict):
        return body
    if request.form:
        return request.form.to_dict()
    return {}


def build_context(view_args: dict[str, Any]) -> GuardContext:
    """Builds a GuardContext from the current Flask request."""
    return GuardContext(
        tokens=get_token_service(),
        # One snapshot store per request: every guard sees the same room.
        memberships=MembershipQuery(SnapshotRoomStore(get_room_store())),
        authorization=request.headers.get("Authorization"),
        params=dict(view_args),
        body=request_body(),
        session=session,
        method=request.method,
        path=request.full_path.rstrip("?"),
    )


def respond_to(decision: Decision, ctx: GuardContext):
    """Turns a terminal decision into a response or raises the matching AppError."""
    if isinstance(decision, Deny):
        if decision.location is not None:
            for category, message in ctx.flashes:
                flash(message, category)
            return redirect(decision.location)
        if decision.body is not None:
            return jsonify(decision.body), decision.status
        if decision.status == 401:
            raise NotAuthenticatedError(decision.reason)
        if decision.status == 404:
            raise NotFoundError(decision.reason.split(".", 1)[0], decision.reason)
        raise NotAuthorizedError(decision.reason, decision.status)
    if isinstance(decision, Fail):
        raise StoreFaultError("guard pipeline") from decision.cause
    raise TypeError(f"Not a terminal decision: {decision!r}")


def guarded(*guards: Guard) -> Callable:
    """
    Route decorator running `guards` in order before the view.

    Usage:
        @rooms_bp.route("/<int:room_id>", methods=["DELETE"])
        @guarded(require_api_token, require_room_admin)
        async def delete_room(room_id: int):
            ...
    """
    def decorator(view: Callable) -> Callable:
        @functools.wraps(view)
        async def decorated(*args, **kwargs):
            ctx = build_context(kwargs)
            decision = await run_pipeline(guards, ctx)
            if not isinstance(decision, Continue):
                return respond_to(decision, ctx)

            g.identity = ctx.identity
            g.membership = ctx.membership
            g.room = ctx.room
            g.resolution = ctx.resolution

            result = view(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result

        decorated.guards = guards
        return decorated

    return decorator
