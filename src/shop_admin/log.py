"""Structured JSON logging for the shop admin client.

HTTP calls, cache activity and snapshot loads are written as JSON lines
so a session can be replayed when debugging refresh storms. Credentials
never reach a log line: values under sensitive keys are masked.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

LOG_FILE_NAME = "shop-admin.jsonl"
REDACTED = "***"
SENSITIVE_KEYS = frozenset({"authorization", "password", "currentpassword", "newpassword", "token"})


def scrub(value: Any) -> Any:
    """Return a copy of ``value`` with sensitive mapping entries masked."""
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else scrub(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [scrub(item) for item in value]
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, msg, then data/error."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data is not None:
            entry["data"] = scrub(data)
        if record.exc_info and record.exc_info[1]:
            entry["error"] = str(record.exc_info[1])
        return json.dumps(entry, ensure_ascii=False, default=str)


def _coerce_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    log_dir: Path | None = None,
    level: int | str = logging.INFO,
    console_level: int | str = logging.WARNING,
) -> logging.Logger:
    """Attach JSON handlers to the ``shop_admin`` logger.

    Args:
        log_dir: Directory for ``shop-admin.jsonl``. If None, only stderr is used.
        level: Package log level, as a number or a level name.
        console_level: Threshold for the stderr handler.

    Calling it again only updates the level; handlers are attached once.
    """
    logger = logging.getLogger("shop_admin")
    logger.setLevel(_coerce_level(level))
    if logger.handlers:
        return logger

    formatter = JSONFormatter()
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(_coerce_level(console_level))
    logger.addHandler(console)
    return logger


class RequestCallLogger:
    """Times one HTTP round trip and logs its outcome to ``shop_admin.http``."""

    def __init__(self, method: str, url: str):
        self.method = method
        self.url = url
        self.started = 0.0
        self._logger = logging.getLogger("shop_admin.http")

    def __enter__(self) -> RequestCallLogger:
        self.started = time.monotonic()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None

    def _fields(self, **extra: Any) -> dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "elapsed_s": round(time.monotonic() - self.started, 3),
            **extra,
        }

    def success(self, status: int) -> None:
        self._logger.info("http_call", extra={"data": self._fields(status=status)})

    def error(self, error: str, status: int | None = None) -> None:
        self._logger.warning("http_call_error", extra={"data": self._fields(status=status, error=error)})


def log_snapshot(name: str, loaded: bool, error: str | None = None) -> None:
    state_logger = logging.getLogger("shop_admin.state")
    if loaded:
        state_logger.info("snapshot_loaded", extra={"data": {"snapshot": name}})
    else:
        state_logger.warning("snapshot_load_failed", extra={"data": {"snapshot": name, "error": error}})
