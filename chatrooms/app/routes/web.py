"""
routes/web.py — Browser (session cookie) routes.

The API authenticates with bearer tokens; these pages use the Flask session
instead. require_session redirects anonymous GETs to /login and remembers
where the user was going in session["return_to"].

Endpoints (no prefix):
  GET    /login    → 200  login form
  POST   /login    → 302  to return_to (or /) on success, back to /login otherwise
  POST   /logout   → 302  to /login
  GET    /         → 200  home page (logged in)
"""

from __future__ import annotations

import logging

from flask import Blueprint, flash, get_flashed_messages, redirect, render_template_string, request, session
from marshmallow import ValidationError

from chatrooms.app.errors import AppError
from chatrooms.app.extensions import db
from chatrooms.app.middleware.auth_middleware import current_identity
from chatrooms.app.middleware.guards import LOGIN_PATH, require_session
from chatrooms.app.middleware.pipeline import guarded
from chatrooms.app.schemas.auth_schema import LoginSchema
from chatrooms.app.services import auth_service

logger = logging.getLogger(__name__)

web_bp = Blueprint("web", __name__)

_LOGIN_PAGE = """<!doctype html>
<title>Sign in</title>
{% for category, message in flashes %}<p class="{{ category }}">{{ message }}</p>{% endfor %}
<form method="post" action="/login">
  <input type="email" name="email" placeholder="Email">
  <input type="password" name="password" placeholder="Password">
  <button type="submit">Sign in</button>
</form>
"""

_HOME_PAGE = """<!doctype html>
<title>Chat rooms</title>
{% for category, message in flashes %}<p class="{{ category }}">{{ message }}</p>{% endfor %}
<p>Signed in as {{ identity.display_name }}</p>
<form method="post" action="/logout"><button type="submit">Sign out</button></form>
"""


def _safe_return_to(target: str | None) -> str:
    # Only local paths; never bounce the browser to another host.
    if not target or not target.startswith("/") or target.startswith("//"):
        return "/"
    return target


@web_bp.route("/login", methods=["GET"])
def login_form():
    return render_template_string(
        _LOGIN_PAGE, flashes=get_flashed_messages(with_categories=True),
    )


@web_bp.route("/login", methods=["POST"])
def login_submit():
    try:
        data = LoginSchema().load(request.form.to_dict())
        identity = auth_service.authenticate_credentials(
            email=data["email"],
            password=data["password"],
            session=db.session,
        )
    except ValidationError:
        flash("Email and password are required.", "error")
        return redirect(LOGIN_PATH)
    except AppError as exc:
        if exc.http_status != 401:
            raise
        flash(exc.message, "error")
        return redirect(LOGIN_PATH)

    return_to = _safe_return_to(session.pop("return_to", None))
    session["authenticated"] = True
    session["identity"] = identity.to_dict()
    logger.info("User %s signed in", identity.id)
    return redirect(return_to)


@web_bp.route("/logout", methods=["POST"])
def logout():
    session.clear()
    return redirect(LOGIN_PATH)


@web_bp.route("/", methods=["GET"])
@guarded(require_session)
def index():
    return render_template_string(
        _HOME_PAGE,
        identity=current_identity(),
        flashes=get_flashed_messages(with_categories=True),
    )
