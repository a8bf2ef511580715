from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_TOKEN_KEY = "admin_token"


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)


_load_env()


def _get_env(key: str, default: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def _get_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _get_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _get_path(key: str, default: Path | None) -> Path | None:
    value = _get_env(key)
    if value is None:
        return default
    return Path(value).expanduser()


def _normalize_base_url(value: str | None) -> str:
    return (value or DEFAULT_API_URL).rstrip("/")


@dataclass
class Settings:
    api_url: str = field(
        default_factory=lambda: _normalize_base_url(
            _get_env("SHOP_ADMIN_API_URL") or _get_env("API_URL")
        )
    )
    cache_timeout_seconds: float = field(default_factory=lambda: _get_float("SHOP_ADMIN_CACHE_TIMEOUT", 30.0))
    http_timeout_seconds: float = field(default_factory=lambda: _get_float("SHOP_ADMIN_HTTP_TIMEOUT", 30.0))
    data_dir: Path = field(
        default_factory=lambda: _get_path("SHOP_ADMIN_DATA_DIR", Path.home() / ".shop-admin")
    )
    token_key: str = field(default_factory=lambda: _get_env("SHOP_ADMIN_TOKEN_KEY", DEFAULT_TOKEN_KEY))
    log_dir: Path | None = field(default_factory=lambda: _get_path("SHOP_ADMIN_LOG_DIR", None))
    log_level: str = field(default_factory=lambda: (_get_env("SHOP_ADMIN_LOG_LEVEL", "INFO") or "INFO").upper())
    monitor_enabled: bool = field(default_factory=lambda: _get_bool("SHOP_ADMIN_MONITOR", False))

    @property
    def storage_path(self) -> Path:
        return self.data_dir / "storage.json"


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def refresh_settings() -> Settings:
    """Re-read the environment and replace the cached settings."""
    global _settings
    _settings = Settings()
    return _settings


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_TOKEN_KEY",
    "Settings",
    "get_settings",
    "refresh_settings",
]
