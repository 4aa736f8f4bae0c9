"""Rate limiter interfaces.

The limiter depends on a ``RateLimitStore`` abstraction (not a concrete
backend) so a single process can count in memory while horizontally scaled
deployments share counters through Redis.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class WindowState:
    """Counter state of one fixed window after a hit.

    Attributes:
        count: Requests counted in the current window, including this one.
        reset_at: UNIX time in seconds at which the window ends.
    """

    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class RateLimitStore(ABC):
    """Storage backend holding one fixed-window counter per key."""

    @abstractmethod
    def hit(self, key: str, window_seconds: float, now: float) -> WindowState:
        """Record one request for ``key`` and return the window state.

        Starts a new window (count 1, ending at ``now + window_seconds``) when
        the key has no window yet or its window already elapsed; otherwise
        increments the existing counter. Must be atomic per key.

        Args:
            key: Namespaced limiter key (bucket and client identity).
            window_seconds: Window length used when a new window starts.
            now: Current UNIX time in seconds.

        Returns:
            WindowState after counting this request.
        """
        raise NotImplementedError
