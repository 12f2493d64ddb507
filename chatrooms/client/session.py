"""
client/session.py — Client-side token cache.

Mirrors what the browser app does with the token it keeps in local storage:
decode the claims WITHOUT checking the signature and compare exp with the
current time, purely to decide whether to prompt for a new login.

This is not an authorization check. Anyone can mint a token that passes it;
only TokenService.verify() on the server is trusted.
"""

from __future__ import annotations

import time

import jwt


def decode_unverified(token: str | None) -> dict | None:
    """Returns the token claims without signature verification, or None."""
    if not token:
        return None
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.DecodeError:
        return None


class TokenCache:

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    @property
    def token(self) -> str | None:
        return self._token

    def store(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None

    def check_expired_token(self, now: float | None = None) -> bool:
        """
        True while the stored token's exp lies in the future.

        An expired or unreadable token is discarded and False is returned,
        which tells the caller to send the user back to the login screen.
        """
        if self._token is None:
            return False

        claims = decode_unverified(self._token)
        current = time.time() if now is None else now
        try:
            expires_at = float(claims["exp"]) if claims else None
        except (KeyError, TypeError, ValueError):
            expires_at = None

        if expires_at is not None and expires_at > current:
            return True

        self.clear()
        return False
