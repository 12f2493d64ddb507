"""
Unit tests for config.validate_config and the TTL resolution.
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest

from chatrooms import config
from chatrooms.config import ConfigurationError, validate_config


def _app(**overrides) -> SimpleNamespace:
    values = {
        "JWT_SECRET_KEY": "a-strong-random-secret-for-tests-only",
        "SECRET_KEY": "session-secret-for-tests",
        "JWT_ACCESS_TOKEN_EXPIRES": timedelta(hours=24),
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "TESTING": True,
        "DEBUG": False,
    }
    values.update(overrides)
    return SimpleNamespace(config=values)


def test_valid_config_passes():
    validate_config(_app())


@pytest.mark.parametrize("secret", ["", None])
def test_missing_secret_is_fatal_in_every_environment(secret):
    with pytest.raises(ConfigurationError):
        validate_config(_app(JWT_SECRET_KEY=secret, TESTING=False, DEBUG=True))


@pytest.mark.parametrize("secret", sorted(config.KNOWN_WEAK_SECRETS))
def test_known_placeholder_secret_is_rejected(secret):
    with pytest.raises(ConfigurationError):
        validate_config(_app(JWT_SECRET_KEY=secret))


def test_session_secret_falls_back_to_jwt_secret():
    app = _app(SECRET_KEY="")
    validate_config(app)
    assert app.config["SECRET_KEY"] == app.config["JWT_SECRET_KEY"]


def test_zero_ttl_is_rejected():
    with pytest.raises(ConfigurationError):
        validate_config(_app(JWT_ACCESS_TOKEN_EXPIRES=timedelta(0)))


def test_production_requires_database_url():
    with pytest.raises(ConfigurationError):
        validate_config(_app(TESTING=False, DEBUG=False, SQLALCHEMY_DATABASE_URI=""))


def test_configuration_error_is_a_value_error():
    assert issubclass(ConfigurationError, ValueError)


class TestAccessTtl:

    def test_default_is_24_hours(self, monkeypatch):
        monkeypatch.delenv("JWT_ACCESS_TOKEN_EXPIRES", raising=False)
        monkeypatch.delenv("JWT_TTL", raising=False)
        assert config._access_ttl_seconds() == 86400

    def test_seconds_variable_wins(self, monkeypatch):
        monkeypatch.setenv("JWT_ACCESS_TOKEN_EXPIRES", "900")
        monkeypatch.setenv("JWT_TTL", "2")
        assert config._access_ttl_seconds() == 900

    def test_hours_alias(self, monkeypatch):
        monkeypatch.delenv("JWT_ACCESS_TOKEN_EXPIRES", raising=False)
        monkeypatch.setenv("JWT_TTL", "2")
        assert config._access_ttl_seconds() == 7200

    def test_unparseable_value_falls_back(self, monkeypatch):
        monkeypatch.setenv("JWT_ACCESS_TOKEN_EXPIRES", "soon")
        assert config._access_ttl_seconds() == 86400


def test_testing_config_carries_explicit_secrets():
    assert config.TestingConfig.JWT_SECRET_KEY
    assert config.TestingConfig.JWT_SECRET_KEY not in config.KNOWN_WEAK_SECRETS
