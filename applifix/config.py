"""Pydantic settings loaded from .env, with conf.json overlay."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent

# ---------------------------------------------------------------------------
# conf.json: runtime config (separate from .env secrets)
# ---------------------------------------------------------------------------


def get_applifix_dir() -> Path:
    """Resolve the applifix data directory. APPLIFIX_DIR env var or ~/.config/applifix."""
    d = os.environ.get("APPLIFIX_DIR", "")
    return Path(d).expanduser() if d else Path.home() / ".config" / "applifix"


class AppConfig(BaseModel):
    database_url: str = ""
    log_level: str = ""
    log_file: str = ""
    openai_base_url: str = ""
    openai_model: str = ""
    guest_request_limit: int | None = None
    guest_counter_ttl_seconds: int | None = None
    cors_allow_all_origins: bool | None = None  # None = use Settings default


_logger = logging.getLogger(__name__)


def load_conf() -> AppConfig:
    """Load conf.json from the applifix data directory."""
    conf_path = get_applifix_dir() / "conf.json"
    if conf_path.exists():
        try:
            return AppConfig.model_validate_json(conf_path.read_text())
        except Exception:
            _logger.warning("Failed to parse %s, using defaults", conf_path, exc_info=True)
    return AppConfig()


# ---------------------------------------------------------------------------
# Bootstrap: load .env, load conf.json
# ---------------------------------------------------------------------------

_env_file = BASE_DIR.parent / ".env"
load_dotenv(_env_file)
_conf = load_conf()

# ---------------------------------------------------------------------------
# Settings (pydantic-settings): .env / env vars override conf.json defaults
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    DEBUG: bool = False

    DATABASE_URL: str = _conf.database_url or f"sqlite:///{BASE_DIR.parent / 'applifix.sqlite3'}"

    CORS_ALLOW_ALL_ORIGINS: bool = (
        _conf.cors_allow_all_origins if _conf.cors_allow_all_origins is not None else True
    )

    LOG_LEVEL: str = _conf.log_level or "INFO"
    LOG_FILE: str = _conf.log_file or ""
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    # Completion provider
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = _conf.openai_base_url or "https://api.openai.com/v1"
    OPENAI_MODEL: str = _conf.openai_model or "gpt-3.5-turbo"
    COMPLETION_TIMEOUT_SECONDS: float = 60.0

    # Guest throttling
    GUEST_REQUEST_LIMIT: int = (
        _conf.guest_request_limit if _conf.guest_request_limit is not None else 5
    )
    GUEST_WINDOW_SECONDS: int = 3600
    GUEST_COUNTER_TTL_SECONDS: int = (
        _conf.guest_counter_ttl_seconds if _conf.guest_counter_ttl_seconds is not None else 0
    )  # 0 = never sweep
    TRUST_FORWARDED_FOR: bool = False

    model_config = ConfigDict(
        env_file=str(BASE_DIR.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
