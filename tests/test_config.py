"""Unit tests for core/config.py -- Settings validation and env overrides."""

from __future__ import annotations

import pytest

from core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None, bcrypt_rounds=10)
    assert settings.secret_key == ""
    assert settings.token_expire_seconds == 86400
    assert settings.bcrypt_rounds == 10
    assert settings.admin_role == "defaultAdmin"
    assert settings.default_role == "defaultUser"


def test_short_secret_rejected() -> None:
    with pytest.raises(ValueError, match="at least 32"):
        Settings(_env_file=None, secret_key="too-short")


def test_long_secret_accepted() -> None:
    assert Settings(_env_file=None, secret_key="x" * 32).secret_key == "x" * 32


@pytest.mark.parametrize("rounds", [3, 32])
def test_bcrypt_rounds_bounds(rounds: int) -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, bcrypt_rounds=rounds)


def test_admin_and_default_role_must_differ() -> None:
    with pytest.raises(ValueError, match="different roles"):
        Settings(_env_file=None, admin_role="same", default_role="same")


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", "60")
    monkeypatch.setenv("DEFAULT_ROLE", "reader")
    settings = Settings(_env_file=None)
    assert settings.token_expire_seconds == 60
    assert settings.default_role == "reader"


def test_unknown_environment_keys_are_ignored(monkeypatch) -> None:
    monkeypatch.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert "debug" not in Settings.model_fields
    assert not hasattr(settings, "debug")
