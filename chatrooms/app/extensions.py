"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

    from chatrooms.app.extensions import db, ma

The TokenService is NOT a module-level singleton: it is built from config in
create_app() and stored in app.extensions["token_service"] so every app (and
every test) carries its own secret.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance — used for response serialisation only.
#
# IMPORTANT — schema inheritance rule:
#   Request validation schemas (in app/schemas/*_schema.py) inherit from
#   marshmallow.Schema directly, NOT from ma.Schema, so unit tests can load
#   them without a Flask application context.
#   Output schemas (app/schemas/output.py) may use ma.Schema: they only run
#   inside a request.
ma = Marshmallow()
