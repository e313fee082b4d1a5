"""Tests for conf.json loading and Settings integration."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic_settings import BaseSettings as _BaseSettings

from applifix.config import AppConfig, Settings, get_applifix_dir, load_conf


# ---------------------------------------------------------------------------
# get_applifix_dir
# ---------------------------------------------------------------------------


def test_get_applifix_dir_default(monkeypatch):
    monkeypatch.delenv("APPLIFIX_DIR", raising=False)
    assert get_applifix_dir() == Path.home() / ".config" / "applifix"


def test_get_applifix_dir_env_override(monkeypatch, tmp_path):
    custom = tmp_path / "custom_dir"
    monkeypatch.setenv("APPLIFIX_DIR", str(custom))
    assert get_applifix_dir() == custom


# ---------------------------------------------------------------------------
# load_conf
# ---------------------------------------------------------------------------


def test_load_conf_json_defaults(tmp_path, monkeypatch):
    """No conf.json file → AppConfig uses built-in defaults."""
    monkeypatch.setenv("APPLIFIX_DIR", str(tmp_path / "nonexistent"))
    conf = load_conf()
    assert conf.database_url == ""
    assert conf.guest_request_limit is None
    assert conf.guest_counter_ttl_seconds is None
    assert conf.cors_allow_all_origins is None


def test_load_conf_json_from_file(tmp_path, monkeypatch):
    applifix_dir = tmp_path / "applifix"
    applifix_dir.mkdir(parents=True)
    monkeypatch.setenv("APPLIFIX_DIR", str(applifix_dir))

    data = {
        "database_url": "postgresql://applifix@db/applifix",
        "log_level": "DEBUG",
        "openai_model": "gpt-4o-mini",
        "guest_request_limit": 3,
        "guest_counter_ttl_seconds": 86400,
    }
    (applifix_dir / "conf.json").write_text(json.dumps(data))

    conf = load_conf()
    assert conf.database_url == "postgresql://applifix@db/applifix"
    assert conf.log_level == "DEBUG"
    assert conf.openai_model == "gpt-4o-mini"
    assert conf.guest_request_limit == 3
    assert conf.guest_counter_ttl_seconds == 86400


def test_load_conf_json_zero_limit_is_kept(tmp_path, monkeypatch):
    """An explicit 0 must not be mistaken for "unset"."""
    applifix_dir = tmp_path / "applifix"
    applifix_dir.mkdir(parents=True)
    monkeypatch.setenv("APPLIFIX_DIR", str(applifix_dir))
    (applifix_dir / "conf.json").write_text(json.dumps({"guest_counter_ttl_seconds": 0}))

    assert load_conf().guest_counter_ttl_seconds == 0


def test_load_conf_json_invalid_json(tmp_path, monkeypatch, caplog):
    """Malformed JSON → falls back to defaults and logs a warning."""
    applifix_dir = tmp_path / "applifix"
    applifix_dir.mkdir(parents=True)
    monkeypatch.setenv("APPLIFIX_DIR", str(applifix_dir))
    (applifix_dir / "conf.json").write_text("{not valid json!!!")

    with caplog.at_level("WARNING", logger="applifix.config"):
        conf = load_conf()
    assert conf == AppConfig()
    assert "Failed to parse" in caplog.text


# ---------------------------------------------------------------------------
# Settings integration
# ---------------------------------------------------------------------------


def test_settings_defaults(monkeypatch):
    for name in ("GUEST_REQUEST_LIMIT", "GUEST_WINDOW_SECONDS", "OPENAI_BASE_URL", "TRUST_FORWARDED_FOR"):
        monkeypatch.delenv(name, raising=False)
    s = Settings()
    assert s.GUEST_WINDOW_SECONDS == 3600
    assert s.TRUST_FORWARDED_FOR is False
    assert s.COMPLETION_TIMEOUT_SECONDS == 60.0


def test_env_var_overrides_defaults(monkeypatch):
    monkeypatch.setenv("GUEST_REQUEST_LIMIT", "10")
    monkeypatch.setenv("GUEST_WINDOW_SECONDS", "60")
    monkeypatch.setenv("TRUST_FORWARDED_FOR", "true")
    s = Settings()
    assert s.GUEST_REQUEST_LIMIT == 10
    assert s.GUEST_WINDOW_SECONDS == 60
    assert s.TRUST_FORWARDED_FOR is True


def test_env_var_overrides_conf_json(tmp_path, monkeypatch):
    """conf.json + env var both set → env var wins."""
    applifix_dir = tmp_path / "applifix"
    applifix_dir.mkdir(parents=True)
    monkeypatch.setenv("APPLIFIX_DIR", str(applifix_dir))
    (applifix_dir / "conf.json").write_text(json.dumps({"log_level": "DEBUG"}))

    conf = load_conf()
    assert conf.log_level == "DEBUG"

    # conf.json only supplies the Python default; pydantic-settings reads env vars on top
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    default = conf.log_level or "INFO"

    class TestSettings(_BaseSettings):
        LOG_LEVEL: str = default

    assert TestSettings().LOG_LEVEL == "ERROR"


def test_database_url_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///from_env.db")
    assert Settings().DATABASE_URL == "sqlite:///from_env.db"
