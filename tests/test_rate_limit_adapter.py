"""Unit tests for the fixed-window rate limiter and its stores."""

from unittest.mock import Mock

import pytest

from authorkit.adapters.rate_limit import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
    RedisRateLimitStore,
    build_rate_limit_store,
)
from authorkit.adapters.rate_limit.redis_store import FIXED_WINDOW_LUA


def _limiter(clock: Mock, **store_kwargs) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(InMemoryRateLimitStore(**store_kwargs), clock=clock)


def test_allows_up_to_limit_then_blocks() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock)

    results = [limiter.check("k", 3, 60) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[3].retry_after_seconds is not None
    assert results[3].retry_after_seconds > 0


def test_retry_after_counts_down_to_window_end() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock)

    limiter.check("k", 1, 60)
    clock.return_value = 1040.5
    blocked = limiter.check("k", 1, 60)

    assert blocked.allowed is False
    assert blocked.retry_after_seconds == 20
    assert blocked.reset_at == 1060


def test_resets_on_new_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock)

    assert limiter.check("k", 1, 10).allowed is True
    assert limiter.check("k", 1, 10).allowed is False

    # Still inside the window at its exact end
    clock.return_value = 1010.0
    assert limiter.check("k", 1, 10).allowed is False

    clock.return_value = 1010.001
    assert limiter.check("k", 1, 10).allowed is True


def test_isolated_by_identity() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock)

    assert limiter.check("k1", 1, 60).allowed is True
    assert limiter.check("k1", 1, 60).allowed is False

    assert limiter.check("k2", 1, 60).allowed is True


def test_bucket_prefixes_are_independent_counters() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock)

    assert limiter.check("validate:203.0.113.7", 1, 60).allowed is True
    assert limiter.check("validate:203.0.113.7", 1, 60).allowed is False
    assert limiter.check("activate:203.0.113.7", 1, 60).allowed is True


def test_sweeps_expired_windows_above_threshold() -> None:
    store = InMemoryRateLimitStore(sweep_threshold=2)

    store.hit("a", 10, now=1000.0)
    store.hit("b", 10, now=1000.0)
    store.hit("c", 100, now=1000.0)
    assert len(store) == 3

    # a and b expired; the sweep runs before "d" is counted
    store.hit("d", 10, now=1050.0)
    assert len(store) == 2


def test_invalid_check_args() -> None:
    limiter = _limiter(Mock(return_value=1000.0))

    with pytest.raises(ValueError):
        limiter.check("", 1, 60)

    with pytest.raises(ValueError):
        limiter.check("k", 0, 60)

    with pytest.raises(ValueError):
        limiter.check("k", 1, 0)


def test_invalid_sweep_threshold() -> None:
    with pytest.raises(ValueError):
        InMemoryRateLimitStore(sweep_threshold=0)


def test_redis_store_runs_script_with_prefixed_key() -> None:
    client = Mock()
    client.eval.return_value = [2, 45000]
    store = RedisRateLimitStore(client)

    state = store.hit("activate:203.0.113.7", 60, now=1000.0)

    client.eval.assert_called_once_with(FIXED_WINDOW_LUA, 1, "ratelimit:activate:203.0.113.7", 60000)
    assert state.count == 2
    assert state.reset_at == pytest.approx(1045.0)


def test_limiter_over_redis_store_denies_after_limit() -> None:
    client = Mock()
    client.eval.side_effect = [[1, 60000], [2, 59000]]
    limiter = FixedWindowRateLimiter(RedisRateLimitStore(client), clock=Mock(return_value=1000.0))

    assert limiter.check("k", 1, 60).allowed is True
    blocked = limiter.check("k", 1, 60)
    assert blocked.allowed is False
    assert blocked.retry_after_seconds == 59


def test_build_store_by_backend_name() -> None:
    assert isinstance(
        build_rate_limit_store("memory", redis_url="redis://unused", sweep_threshold=10),
        InMemoryRateLimitStore,
    )
    assert isinstance(
        build_rate_limit_store("redis", redis_url="redis://localhost:6379/0", sweep_threshold=10),
        RedisRateLimitStore,
    )
    with pytest.raises(ValueError):
        build_rate_limit_store("memcached", redis_url="", sweep_threshold=10)
