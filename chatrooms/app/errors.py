"""
errors.py — AppError base class, the error taxonomy and the code registry.

Every error returned by the chatrooms API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Codes are localizable keys; the human text lives in app/messages.py.
  - Error codes are a versioned contract. They do not change once published.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized).
  - Token failures never reveal which part of verification failed: invalid
    and expired tokens render the same code and message.
  - Store faults never leak their cause to the client. The cause is chained
    (`raise ... from exc`) and logged server-side only.
"""

from __future__ import annotations

from chatrooms.app.messages import translate


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"status": self.http_status, "error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the keys sent in the API response and looked up in messages.py.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    ALREADY_MEMBER             = "room.already_member"
    ALREADY_REQUESTED          = "room.invitation.requested"
    DUPLICATE_EMAIL            = "user.duplicate_email"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "user.not_found"
    ROOM_NOT_FOUND             = "room.not_found"
    MEMBER_NOT_FOUND           = "member.not_found"
    MESSAGE_NOT_FOUND          = "message.not_found"
    REQUEST_NOT_FOUND          = "request.not_found"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    INVALID_CREDENTIALS        = "auth.invalid_credentials"  # 401
    TOKEN_ERROR                = "token.error"               # 401
    LOGIN_REQUIRED             = "auth.login_required"       # 401 / redirect
    USER_NOT_IN_ROOM           = "room.user_not_in_room"     # 403
    NOT_ADMIN                  = "room.not_admin"            # 403
    READ_ONLY                  = "room.read_only"            # 403
    NOT_AUTHORIZED             = "error.not_authorized"      # 403
    FORBIDDEN                  = "error.403"                 # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "error.common"


# ── Taxonomy ───────────────────────────────────────────────────────────────

class TokenError(AppError):
    """Base for token failures. Always rendered as the generic 401."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(ErrorCode.TOKEN_ERROR, translate(ErrorCode.TOKEN_ERROR), 401)
        # Server-side only; never part of to_dict().
        self.detail = detail


class InvalidTokenError(TokenError):
    """Signature mismatch, malformed structure or missing claims."""


class ExpiredTokenError(TokenError):
    """The token's exp claim is at or before the verification time."""


class NotAuthenticatedError(AppError):

    def __init__(self, reason: str = ErrorCode.TOKEN_ERROR) -> None:
        super().__init__(reason, translate(reason), 401)


class NotAuthorizedError(AppError):

    def __init__(self, reason: str = ErrorCode.FORBIDDEN, http_status: int = 403) -> None:
        super().__init__(reason, translate(reason), http_status)
        self.reason = reason


class NotFoundError(AppError):

    def __init__(self, resource: str, code: str | None = None) -> None:
        code = code or f"{resource}.not_found"
        super().__init__(code, translate(code), 404)
        self.resource = resource


class ConflictError(AppError):

    def __init__(self, code: str) -> None:
        super().__init__(code, translate(code), 409)


class StoreFaultError(AppError):
    """The room/user store failed. The originating exception is chained."""

    def __init__(self, operation: str = "") -> None:
        super().__init__(
            ErrorCode.INTERNAL_ERROR,
            translate(ErrorCode.INTERNAL_ERROR),
            500,
        )
        self.operation = operation
