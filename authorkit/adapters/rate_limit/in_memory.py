"""In-memory fixed-window rate limit store.

Notes:
- Per-process only: counters are lost on restart and each worker (or each
  serverless instance) enforces its own independent limits.
- Thread-safe: sync FastAPI dependencies run in a threadpool, so the shared
  dict is guarded by a lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from authorkit.adapters.rate_limit.base import RateLimitStore, WindowState

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_THRESHOLD = 10000


@dataclass
class _Record:
    count: int
    reset_at: float


class InMemoryRateLimitStore(RateLimitStore):
    """Dict-backed store with opportunistic garbage collection.

    When more than ``sweep_threshold`` keys are tracked, every record whose
    window already elapsed is dropped before the next hit is counted.
    """

    def __init__(self, *, sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD) -> None:
        if sweep_threshold < 1:
            raise ValueError("sweep_threshold must be >= 1")

        self._sweep_threshold = sweep_threshold
        self._lock = threading.RLock()
        self._records: dict[str, _Record] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _sweep_expired_locked(self, now: float) -> None:
        expired = [key for key, record in self._records.items() if now > record.reset_at]
        for key in expired:
            del self._records[key]
        logger.debug(
            "rate_limit.sweep",
            extra={"removed": len(expired), "tracked": len(self._records)},
        )

    def hit(self, key: str, window_seconds: float, now: float) -> WindowState:
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        with self._lock:
            if len(self._records) > self._sweep_threshold:
                self._sweep_expired_locked(now)

            record = self._records.get(key)
            if record is None or now > record.reset_at:
                record = _Record(count=1, reset_at=now + window_seconds)
                self._records[key] = record
            else:
                record.count += 1

            return WindowState(count=record.count, reset_at=record.reset_at)

    def clear(self) -> None:
        """Drop every tracked window."""
        with self._lock:
            self._records.clear()
