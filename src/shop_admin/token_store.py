"""Persistence for the admin bearer token.

The token lives under a single well-known key, mirroring browser local
storage. Nothing else about the session is persisted.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from .config import DEFAULT_TOKEN_KEY

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenStore(Protocol):
    def get_token(self) -> str | None: ...

    def set_token(self, token: str) -> None: ...

    def remove_token(self) -> None: ...


class MemoryTokenStore:
    """Process-local store; the token is lost when the process exits."""

    def __init__(self, token: str | None = None):
        self._token = token

    def get_token(self) -> str | None:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def remove_token(self) -> None:
        self._token = None


class FileTokenStore:
    """Stores the token in a small JSON document on disk.

    Other keys in the document are preserved, so several tools can share
    one storage file.
    """

    def __init__(self, path: Path, key: str = DEFAULT_TOKEN_KEY):
        self.path = path
        self.key = key

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable token storage %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def get_token(self) -> str | None:
        value = self._read().get(self.key)
        return value if isinstance(value, str) and value else None

    def set_token(self, token: str) -> None:
        data = self._read()
        data[self.key] = token
        self._write(data)

    def remove_token(self) -> None:
        data = self._read()
        if self.key in data:
            del data[self.key]
            self._write(data)


__all__ = ["TokenStore", "MemoryTokenStore", "FileTokenStore"]
