"""
services/token_service.py — Identity token issuance and verification.

Token design:
  - JWT, HS256 by default, signed with the process-wide secret handed to the
    constructor (never read from module-level state).
  - Claims: sub (user id as str), email, name, iat, exp. No jti: issuing the
    same identity at the same instant with the same TTL yields the same token.
  - No server-side revocation record. Trust is the signature plus expiry.

Layer rules:
  - No Flask imports. The app factory builds one TokenService from config and
    stores it in app.extensions; tests build their own with a fixed clock.
  - verify() is pure: no store lookup, no side effects.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import jwt

from chatrooms.app.errors import ExpiredTokenError, InvalidTokenError
from chatrooms.config import ConfigurationError


@dataclass(frozen=True)
class Identity:
    """The acting user, as carried inside a signed token."""

    id: int
    email: str
    display_name: str

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(id=user.id, email=user.email, display_name=user.display_name)

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "display_name": self.display_name}


def strip_bearer(header: str | None) -> str:
    """
    Extracts the raw token from an Authorization header value.

    Accepts both "Bearer <token>" and the bare token that older clients send.
    """
    if not header:
        return ""
    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    if len(parts) == 1:
        return parts[0]
    return ""


class TokenService:

    def __init__(
            self,
            secret: str,
            ttl_seconds: int,
            algorithm: str = "HS256",
            clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ConfigurationError("TokenService requires a signing secret.")
        if ttl_seconds <= 0:
            raise ConfigurationError("TokenService requires a positive TTL.")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock
        self.ttl_seconds = ttl_seconds

    def issue(
            self,
            identity: Identity,
            ttl_seconds: int | None = None,
            now: int | None = None,
    ) -> str:
        """Signs {subject, issuedAt, issuedAt + ttl} for `identity`."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive.")
        issued_at = int(self._clock() if now is None else now)
        payload = {
            "sub": str(identity.id),
            "email": identity.email,
            "name": identity.display_name,
            "iat": issued_at,
            "exp": issued_at + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def generate_token(self, user) -> str:
        """Issues a token with the configured TTL for a stored user (login)."""
        return self.issue(Identity.from_user(user))

    def verify(self, token: str, now: float | None = None) -> Identity:
        """
        Verifies signature and expiry and returns the embedded identity.

        Raises:
          InvalidTokenError — bad signature, malformed token or missing claims
          ExpiredTokenError — now >= exp
        """
        if not token:
            raise InvalidTokenError("empty token")

        try:
            # Expiry is checked below against the injectable clock; PyJWT only
            # verifies the signature and claim presence here.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "iat", "exp"],
                },
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(str(exc)) from exc

        try:
            expires_at = int(payload["exp"])
            identity = Identity(
                id=int(payload["sub"]),
                email=str(payload.get("email", "")),
                display_name=str(payload.get("name", "")),
            )
        except (TypeError, ValueError) as exc:
            raise InvalidTokenError("malformed claims") from exc

        current = self._clock() if now is None else now
        if current >= expires_at:
            raise ExpiredTokenError("token expired")

        return identity
