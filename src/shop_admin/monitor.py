"""Request monitor: a rolling history of HTTP calls for debugging refresh loops."""

from __future__ import annotations

import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Literal

logger = logging.getLogger(__name__)

CallStatus = Literal["pending", "success", "error"]

HISTORY_SIZE = 20
BURST_WINDOW_SECONDS = 10.0
BURST_THRESHOLD = 10


@dataclass
class CallRecord:
    id: int
    method: str
    url: str
    start_time: float
    status: CallStatus = "pending"
    status_code: int | None = None
    duration: float | None = None
    error: str | None = None


@dataclass
class MonitorSummary:
    total: int = 0
    pending: int = 0
    errors: int = 0
    recent: int = 0
    started: int = 0
    records: list[CallRecord] = field(default_factory=list)


class RequestMonitor:
    """Keeps the last ``HISTORY_SIZE`` calls and warns on call bursts.

    A warning is logged when more than ``BURST_THRESHOLD`` calls started
    within ``BURST_WINDOW_SECONDS``.
    """

    def __init__(
        self,
        history_size: int = HISTORY_SIZE,
        burst_window: float = BURST_WINDOW_SECONDS,
        burst_threshold: int = BURST_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._records: deque[CallRecord] = deque(maxlen=history_size)
        self._ids = itertools.count(1)
        self._burst_window = burst_window
        self._burst_threshold = burst_threshold
        self._clock = clock
        self.started = 0

    def start(self, method: str, url: str) -> CallRecord:
        record = CallRecord(
            id=next(self._ids),
            method=method,
            url=url,
            start_time=self._clock(),
        )
        self._records.appendleft(record)
        self.started += 1
        self._check_burst()
        return record

    def finish(self, record: CallRecord, status_code: int) -> None:
        record.status = "success" if 200 <= status_code < 300 else "error"
        record.status_code = status_code
        record.duration = self._clock() - record.start_time

    def fail(self, record: CallRecord, error: str) -> None:
        record.status = "error"
        record.error = error
        record.duration = self._clock() - record.start_time

    def recent_calls(self, window: float | None = None) -> list[CallRecord]:
        window = self._burst_window if window is None else window
        now = self._clock()
        return [r for r in self._records if now - r.start_time < window]

    def _check_burst(self) -> None:
        recent = len(self.recent_calls())
        if recent > self._burst_threshold:
            logger.warning(
                "High API call frequency: %s calls in last %.0f seconds",
                recent,
                self._burst_window,
            )

    def summary(self) -> MonitorSummary:
        records = list(self._records)
        return MonitorSummary(
            total=len(records),
            pending=sum(1 for r in records if r.status == "pending"),
            errors=sum(1 for r in records if r.status == "error"),
            recent=len(self.recent_calls()),
            started=self.started,
            records=records,
        )

    def clear(self) -> None:
        self._records.clear()


__all__ = ["CallRecord", "MonitorSummary", "RequestMonitor"]
