"""
middleware/auth_middleware.py — Token verification middleware for routes.

The @require_auth decorator is the one-guard pipeline [require_api_token]:
  1. Reads the Authorization header ("Bearer <token>" or the bare token)
  2. Verifies the signature and expiry with the app's TokenService
  3. Attaches the Identity to flask.g.identity for the duration of the request
  4. Answers 401 "Error token" if any step fails, whichever step it was

Strict responsibility boundary:
  - This middleware authenticates (401) only.
  - Room membership, roles and ownership (403) are separate guards listed
    after require_api_token in a route's @guarded(...) chain.
"""

from __future__ import annotations

from typing import Callable

from flask import g

from chatrooms.app.middleware.guards import require_api_token
from chatrooms.app.middleware.pipeline import guarded
from chatrooms.app.services.token_service import Identity


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces token authentication.

    Usage:
        @auth_bp.route("/me")
        @require_auth
        def me():
            identity = g.identity  # always an Identity when this runs
            ...
    """
    return guarded(require_api_token)(f)


def current_identity() -> Identity:
    """The identity resolved by the guard pipeline for this request."""
    return g.identity
