from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TIMEOUT = 30.0


def serialize(value: Any) -> str:
    """Deterministic JSON used inside request fingerprints and cache keys."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def request_fingerprint(method: str, url: str, body: Any = None, *, public: bool = False) -> str:
    key = f"{method.upper()}_{url}_{serialize(body if body is not None else {})}"
    return f"PUBLIC_{key}" if public else key


def cache_key(endpoint: str, options: Optional[dict[str, Any]] = None) -> str:
    # keys start with the endpoint so prefix invalidation can find them
    return f"{endpoint}_{serialize(options or {})}"


@dataclass
class CacheEntry:
    data: Any
    timestamp: float


class ResponseCache:
    """Time-windowed store for GET responses.

    Expiry is passive: a stale entry is simply ignored on read and replaced
    on the next write. There is no background sweep.

    Every clear bumps ``generation``. A response fetched before a clear is
    stored through ``set_if_current`` and is dropped instead of cached.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_CACHE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout = timeout
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self.generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def is_valid(self, entry: Optional[CacheEntry]) -> bool:
        return entry is not None and (self._clock() - entry.timestamp) < self.timeout

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        return entry if self.is_valid(entry) else None

    def set(self, key: str, data: Any) -> CacheEntry:
        entry = CacheEntry(data=data, timestamp=self._clock())
        self._entries[key] = entry
        return entry

    def set_if_current(self, key: str, data: Any, generation: int) -> Optional[CacheEntry]:
        if generation != self.generation:
            logger.debug("cache_write_skipped", extra={"data": {"key": key}})
            return None
        return self.set(key, data)

    def clear(self) -> None:
        self._entries.clear()
        self.generation += 1
        logger.debug("cache_cleared", extra={"data": {"scope": "all"}})

    def clear_prefix(self, prefix: str) -> int:
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        self.generation += 1
        logger.debug("cache_cleared", extra={"data": {"scope": prefix, "entries": len(stale)}})
        return len(stale)

    def keys(self) -> list[str]:
        return list(self._entries)


class PendingRequests:
    """In-flight request registry: one shared task per fingerprint.

    ``start`` registers the task before the first suspension point, so a
    second caller arriving while the network call is outstanding always
    finds it. The entry is removed when the task settles, whether it
    succeeded or failed.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def get(self, key: str) -> Optional[asyncio.Task[Any]]:
        return self._tasks.get(key)

    def start(self, key: str, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task[Any]:
        existing = self._tasks.get(key)
        if existing is not None:
            return existing
        task = asyncio.ensure_future(self._run(key, factory))
        # callers may all be cancelled; the outcome is still consumed here
        task.add_done_callback(_consume_outcome)
        self._tasks[key] = task
        return task

    async def _run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await factory()
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    def keys(self) -> list[str]:
        return list(self._tasks)


def _consume_outcome(task: asyncio.Task[Any]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("shared_request_failed", extra={"data": {"error": str(task.exception())}})


async def await_shared(task: asyncio.Task[Any]) -> Any:
    """Await a task shared by several callers.

    Cancelling one caller must not cancel the call the others are waiting on.
    """
    return await asyncio.shield(task)


__all__ = [
    "DEFAULT_CACHE_TIMEOUT",
    "CacheEntry",
    "PendingRequests",
    "ResponseCache",
    "await_shared",
    "cache_key",
    "request_fingerprint",
    "serialize",
]
