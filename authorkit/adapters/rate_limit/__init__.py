"""Rate limiting adapters.

This package provides a small abstraction layer so a single instance can
count requests in memory while multi-instance deployments share counters in
Redis, without changing the API layer.
"""

from __future__ import annotations

from authorkit.adapters.rate_limit.base import RateLimitResult, RateLimitStore, WindowState
from authorkit.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from authorkit.adapters.rate_limit.limiter import FixedWindowRateLimiter
from authorkit.adapters.rate_limit.redis_store import RedisRateLimitStore, get_redis

__all__ = [
    "FixedWindowRateLimiter",
    "InMemoryRateLimitStore",
    "RateLimitResult",
    "RateLimitStore",
    "RedisRateLimitStore",
    "WindowState",
    "build_rate_limit_store",
    "get_redis",
]


def build_rate_limit_store(backend: str, *, redis_url: str, sweep_threshold: int) -> RateLimitStore:
    """Build the configured store backend.

    Args:
        backend: ``memory`` or ``redis``.
        redis_url: Redis connection URL for the shared backend.
        sweep_threshold: Key count that triggers an in-memory sweep.

    Raises:
        ValueError: For an unknown backend name.
    """
    name = backend.lower()
    if name == "memory":
        return InMemoryRateLimitStore(sweep_threshold=sweep_threshold)
    if name == "redis":
        return RedisRateLimitStore(get_redis(redis_url))
    raise ValueError(f"Unknown rate limit backend: '{backend}'. Supported: memory, redis")
