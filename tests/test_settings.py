"""Tests for environment-driven settings."""

from __future__ import annotations

from zoneinfo import ZoneInfo

from settings import Settings


def test_defaults(monkeypatch):
    for name in ("FOCUS_DATABASE_URL", "FOCUS_CORS_ORIGINS", "FOCUS_TIMEZONE", "LOG_LEVEL", "LOG_FILE"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.database_url == "sqlite:///focus.db"
    assert settings.cors_origins == ["http://localhost:3000"]
    assert settings.timezone is None
    assert settings.log_level == "INFO"
    assert settings.tz() is not None


def test_from_env(monkeypatch):
    monkeypatch.setenv("FOCUS_DATABASE_URL", "sqlite:///other.db")
    monkeypatch.setenv("FOCUS_CORS_ORIGINS", "http://a.test, http://b.test,")
    monkeypatch.setenv("FOCUS_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.database_url == "sqlite:///other.db"
    assert settings.cors_origins == ["http://a.test", "http://b.test"]
    assert settings.tz() == ZoneInfo("Europe/Berlin")
    assert settings.log_level == "DEBUG"
