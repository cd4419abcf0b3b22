"""Settings for the task tracker: .env, environment, optional YAML file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from tracker.errors import ConfigError

DEFAULT_DB_NAME = "smart_task_tracker"
DEFAULT_CORS_ORIGIN_REGEX = r"^http://(localhost|127\.0\.0\.1):\d+$"


@dataclass(frozen=True)
class Settings:
    mongo_uri: str
    db_name: str = DEFAULT_DB_NAME
    timezone: str = "UTC"
    host: str = "127.0.0.1"
    port: int = 4000
    log_level: str = "INFO"
    cors_origin_regex: str = DEFAULT_CORS_ORIGIN_REGEX
    server_selection_timeout_ms: int = 8000

    @property
    def tz(self) -> ZoneInfo:
        return resolve_timezone(self.timezone)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the named zone, defaulting to UTC when missing or unknown."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return ZoneInfo("UTC")


def read_config_file(path: Path) -> dict[str, Any]:
    """Read the YAML config file, returning empty dict if missing or empty."""
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    result = yaml.safe_load(text)
    if not isinstance(result, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return result


def _db_name_from_uri(uri: str) -> str | None:
    # mongodb://user:pw@host1,host2/dbname?opts
    path = urlsplit(uri).path.lstrip("/")
    return unquote(path) or None


def _int_setting(name: str, raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Build Settings from environment variables over the YAML config file."""
    load_dotenv(env_file)

    file_cfg: dict[str, Any] = {}
    cfg_path = os.getenv("TRACKER_CONFIG", "").strip()
    if cfg_path:
        file_cfg = read_config_file(Path(cfg_path).expanduser())

    def pick(env_name: str, key: str, default: Any = None) -> Any:
        value = os.getenv(env_name, "").strip()
        if value:
            return value
        if file_cfg.get(key) not in (None, ""):
            return file_cfg[key]
        return default

    mongo_uri = str(pick("MONGO_URI", "mongo_uri", "") or "")
    if not mongo_uri:
        raise ConfigError("MONGO_URI missing in environment or config file")

    db_name = pick("MONGO_DB", "db_name") or _db_name_from_uri(mongo_uri) or DEFAULT_DB_NAME
    timezone = pick("TRACKER_TIMEZONE", "timezone") or os.getenv("TZ", "").strip() or "UTC"

    return Settings(
        mongo_uri=mongo_uri,
        db_name=str(db_name),
        timezone=str(timezone),
        host=str(pick("HOST", "host", "127.0.0.1")),
        port=_int_setting("PORT", pick("PORT", "port", 4000)),
        log_level=str(pick("LOG_LEVEL", "log_level", "INFO")).upper(),
        cors_origin_regex=str(pick("CORS_ORIGIN_REGEX", "cors_origin_regex", DEFAULT_CORS_ORIGIN_REGEX)),
        server_selection_timeout_ms=_int_setting(
            "MONGO_TIMEOUT_MS", pick("MONGO_TIMEOUT_MS", "server_selection_timeout_ms", 8000)
        ),
    )
