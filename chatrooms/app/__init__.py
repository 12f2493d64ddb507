"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - `alembic upgrade` to work without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name] and validate it
     (a missing signing secret stops startup)
  2. Configure logging
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Build the app's TokenService and store it in app.extensions
  5. Register the browser routes and the API blueprints under /api/v1
  6. Register global error handlers (AppError → JSON, Exception → 500)
  7. Register the `flask create-user` command that seeds the user store

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here — the import side-effect is sufficient.
"""

from __future__ import annotations

import traceback

import click
from flask import Flask, jsonify, request
from marshmallow import ValidationError

from chatrooms.config import config_by_name, validate_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".

    Raises:
        ConfigurationError if the signing secret is missing or a known
        placeholder, whatever the environment.
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)
    validate_config(app)

    from chatrooms.app.logging_config import setup_logging
    setup_logging(app.config["LOG_LEVEL"])

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from chatrooms.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    from chatrooms.app.services.token_service import TokenService
    app.extensions["token_service"] = TokenService(
        secret=app.config["JWT_SECRET_KEY"],
        ttl_seconds=int(app.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds()),
        algorithm=app.config["JWT_ALGORITHM"],
    )

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from chatrooms.app.models import (  # noqa: F401
            incoming_request,
            membership,
            message,
            room,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)
    _register_commands(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers the browser routes at the root and the API under /api/v1.

    messages_bp shares the /api/v1/rooms prefix with rooms_bp: both own
    paths below /rooms/<room_id>.
    """
    from chatrooms.app.routes.auth import auth_bp
    from chatrooms.app.routes.invitations import invitations_bp
    from chatrooms.app.routes.messages import messages_bp
    from chatrooms.app.routes.rooms import rooms_bp
    from chatrooms.app.routes.users import users_bp
    from chatrooms.app.routes.web import web_bp

    app.register_blueprint(web_bp)
    app.register_blueprint(auth_bp,        url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp,       url_prefix="/api/v1/users")
    app.register_blueprint(rooms_bp,       url_prefix="/api/v1/rooms")
    app.register_blueprint(messages_bp,    url_prefix="/api/v1/rooms")
    app.register_blueprint(invitations_bp, url_prefix="/api/v1/invitations")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD responses (400)
      Exception       → generic error.common (500); full traceback logged

    Stack traces and store errors never leave the server.
    """
    from chatrooms.app.errors import AppError, ErrorCode, StoreFaultError
    from chatrooms.app.messages import translate

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (guard pipeline, service, route) into the standard error envelope.

        Routes never catch AppError — they let it propagate here.
        """
        if isinstance(error, StoreFaultError):
            app.logger.error(
                "Store fault during %s %s (%s)",
                request.method, request.path, error.operation,
                exc_info=error.__cause__ or error,
            )
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST field error is returned: one error, not many.
        """
        messages = error.messages  # e.g. {"name": ["Missing data for required field."]}

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None

                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                else:
                    raw_message = str(field_errors)
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."

        if str(raw_message).startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD

        return jsonify(AppError(code, str(raw_message), 400, field).to_dict()), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        HTTP exceptions raised by Flask itself (404 for an unknown URL,
        405 for a wrong method) keep their status.
        """
        from werkzeug.exceptions import HTTPException

        if isinstance(error, HTTPException):
            return jsonify({
                "status": error.code,
                "error": {"code": f"error.{error.code}", "message": error.description},
            }), error.code

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "status": 500,
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": translate(ErrorCode.INTERNAL_ERROR),
            },
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _register_commands(app: Flask) -> None:
    """
    CLI commands, run as `flask --app "chatrooms.app:create_app()" <command>`.

    There is no signup endpoint; accounts are seeded from the command line.
    """

    @app.cli.command("create-user")
    @click.option("--email", required=True)
    @click.option("--name", "display_name", required=True)
    @click.password_option()
    def create_user_command(email: str, display_name: str, password: str) -> None:
        """Create a user account with a bcrypt-hashed password."""
        from chatrooms.app.errors import ConflictError
        from chatrooms.app.extensions import db
        from chatrooms.app.services import auth_service

        try:
            user = auth_service.create_user(
                email=email,
                display_name=display_name,
                password=password,
                session=db.session,
            )
        except ConflictError as exc:
            raise click.ClickException(exc.message) from exc
        db.session.commit()
        click.echo(f"Created user {user['id']} <{user['email']}>")
