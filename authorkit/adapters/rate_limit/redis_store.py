"""Redis-backed fixed-window rate limit store.

Counters live in Redis so every API instance shares them. A Lua script keeps
increment, expiry and TTL lookup atomic; Redis expires keys itself, so no
sweep is needed.
"""

from __future__ import annotations

import redis

from authorkit.adapters.rate_limit.base import RateLimitStore, WindowState

# KEYS[1] = counter key
# ARGV[1] = window_ms
# Returns: {count, ttl_ms}
FIXED_WINDOW_LUA = r"""
local count = redis.call('INCR', KEYS[1])
if count == 1 then
  redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
  redis.call('PEXPIRE', KEYS[1], ARGV[1])
  ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""


def get_redis(url: str) -> redis.Redis:
    return redis.Redis.from_url(url, decode_responses=True)


class RedisRateLimitStore(RateLimitStore):
    """Store counting hits with INCR/PEXPIRE under a key prefix."""

    def __init__(self, client: redis.Redis, *, prefix: str = "ratelimit") -> None:
        self._client = client
        self._prefix = prefix

    def hit(self, key: str, window_seconds: float, now: float) -> WindowState:
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        window_ms = int(window_seconds * 1000)
        count, ttl_ms = self._client.eval(
            FIXED_WINDOW_LUA,
            1,
            f"{self._prefix}:{key}",
            window_ms,
        )
        return WindowState(count=int(count), reset_at=now + int(ttl_ms) / 1000)
