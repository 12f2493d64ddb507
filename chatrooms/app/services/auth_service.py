"""
services/auth_service.py — Credential checks and the user-store side of login.

Responsibilities:
  - User creation (seeding the user store; signup flows live elsewhere)
  - Credential validation (bcrypt)
  - Issuing the identity token at login via the TokenService it is handed
  - Reading and updating the caller's own profile

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError
  - The TokenService is passed in by the caller
  - current_app.config is read ONLY for BCRYPT_LOG_ROUNDS, when no cost is given

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS, default 12)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import logging

import bcrypt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatrooms.app.errors import AppError, ConflictError, ErrorCode, NotFoundError, StoreFaultError
from chatrooms.app.messages import translate
from chatrooms.app.models.user import User
from chatrooms.app.services.token_service import Identity, TokenService

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. No business logic."""
    return {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
    }


def _invalid_credentials() -> AppError:
    return AppError(
        ErrorCode.INVALID_CREDENTIALS,
        translate(ErrorCode.INVALID_CREDENTIALS),
        401,
    )


def _find_by_email(email: str, session: Session) -> User | None:
    try:
        return session.execute(
            select(User).where(User.email == email.strip().lower())
        ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise StoreFaultError("find_user") from exc


# ── Public service functions ───────────────────────────────────────────────

def create_user(
        email: str,
        display_name: str,
        password: str,
        session: Session,
        rounds: int | None = None,
) -> dict:
    """
    Stores a new user with a bcrypt password hash.

    Raises:
      ConflictError(DUPLICATE_EMAIL, 409) — email already registered
    """
    email = email.strip().lower()
    if _find_by_email(email, session) is not None:
        raise ConflictError(ErrorCode.DUPLICATE_EMAIL)

    if rounds is None:
        rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    password_hash = bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")

    user = User(email=email, display_name=display_name, password_hash=password_hash)
    session.add(user)
    session.flush()  # populate user.id

    return _build_user_dict(user)


def _check_credentials(email: str, password: str, session: Session) -> User:
    """
    Returns the stored user for a valid email/password pair.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — unknown email or wrong password.
      Uses the same error for both to avoid account enumeration.
    """
    user = _find_by_email(email, session)

    # bcrypt.checkpw compares in constant time.
    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        logger.info("Failed login attempt")
        raise _invalid_credentials()

    return user


def authenticate_credentials(email: str, password: str, session: Session) -> Identity:
    """Identity for a valid email/password pair (browser session login)."""
    return Identity.from_user(_check_credentials(email, password, session))


def login_user(
        email: str,
        password: str,
        session: Session,
        tokens: TokenService,
) -> dict:
    """
    Validates credentials and issues a signed identity token.

    Returns: {"token": "...", "expires_in": <seconds>, "user": {...}}
    """
    user = _check_credentials(email, password, session)
    return {
        "token": tokens.generate_token(user),
        "expires_in": tokens.ttl_seconds,
        "user": _build_user_dict(user),
    }


def get_profile(user_id: int, session: Session) -> dict:
    """
    Raises:
      NotFoundError(USER_NOT_FOUND, 404) — the user from the token no longer
        exists (deleted between token issue and request).
    """
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("user", ErrorCode.USER_NOT_FOUND)
    return _build_user_dict(user)


def update_profile(user_id: int, display_name: str, session: Session) -> dict:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("user", ErrorCode.USER_NOT_FOUND)

    user.display_name = display_name
    session.flush()
    return _build_user_dict(user)
