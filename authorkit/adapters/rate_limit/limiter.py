"""Fixed-window rate limiter on top of a pluggable store."""

from __future__ import annotations

import math
import time
from typing import Callable

from authorkit.adapters.rate_limit.base import RateLimitResult, RateLimitStore


class FixedWindowRateLimiter:
    """Count requests per identity in fixed windows.

    A window starts with the first request of an identity and lasts
    ``window_seconds``; every request inside it shares one counter. Once the
    counter exceeds ``max_requests`` the request is denied until the window
    ends.
    """

    def __init__(
        self,
        store: RateLimitStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Backend holding the counters.
            clock: Time source function returning UNIX time in seconds.
        """
        self._store = store
        self._clock = clock

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def check(self, identity: str, max_requests: int, window_seconds: float) -> RateLimitResult:
        """Count one request for ``identity`` and decide whether it may proceed.

        Args:
            identity: Namespaced client identity (e.g. ``activate:203.0.113.7``).
            max_requests: Requests allowed per window.
            window_seconds: Window length in seconds.

        Returns:
            RateLimitResult with the decision and window metadata.

        Raises:
            ValueError: If identity is empty or limits are invalid.
        """
        if not identity:
            raise ValueError("identity must be a non-empty string")
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")

        now = self._clock()
        state = self._store.hit(identity, window_seconds, now)

        if state.count <= max_requests:
            return RateLimitResult(
                allowed=True,
                limit=max_requests,
                remaining=max_requests - state.count,
                reset_at=int(math.ceil(state.reset_at)),
                retry_after_seconds=None,
            )

        retry_after = max(1, int(math.ceil(state.reset_at - now)))
        return RateLimitResult(
            allowed=False,
            limit=max_requests,
            remaining=0,
            reset_at=int(math.ceil(state.reset_at)),
            retry_after_seconds=retry_after,
        )
