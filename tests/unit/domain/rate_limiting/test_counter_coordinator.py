"""Unit tests for the check-increment-expire protocol."""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from hostgate.core.exceptions import ErrorKind, RateLimitingDownError, RateLimitingInvalidError
from hostgate.domain.rate_limiting import (
    AdmissionReason,
    CounterCoordinator,
    RedisCounterStore,
    Rule,
    UnconfiguredCounterStore,
)


@pytest.fixture
def coordinator():
    return CounterCoordinator()


@pytest.fixture
def rule():
    return Rule(host_pattern="amfiindia.com", window_seconds=1, limit=2)


@pytest.mark.asyncio
async def test_first_limit_calls_admitted_then_denied(coordinator, rule, counter_store, clock):
    decisions = [await coordinator.evaluate(rule, counter_store, clock()) for _ in range(5)]

    assert decisions == [False, False, True, True, True]


@pytest.mark.asyncio
async def test_protocol_calls_and_expiry(coordinator, rule, counter_store, fake_redis, clock):
    key = rule.bucket_key(clock())

    for _ in range(4):
        await coordinator.evaluate(rule, counter_store, clock())

    assert fake_redis.calls == [
        ("get", key),
        ("incr", key),
        ("expire", key, 4),
        ("get", key),
        ("incr", key),
        ("expire", key, 4),
        # Third call pushes the counter over the limit: incremented, not rolled back.
        ("get", key),
        ("incr", key),
        # Fourth call sees a saturated bucket and does not write.
        ("get", key),
    ]
    assert fake_redis.values[key] == "3"


@pytest.mark.asyncio
async def test_check_reports_reason_and_count(coordinator, rule, counter_store, clock):
    first = await coordinator.check(rule, counter_store, clock())
    await coordinator.check(rule, counter_store, clock())
    third = await coordinator.check(rule, counter_store, clock())
    fourth = await coordinator.check(rule, counter_store, clock())

    assert (first.reason, first.count, first.remaining) == (AdmissionReason.ADMITTED, 1, 1)
    assert (third.reason, third.count, third.limited) == (AdmissionReason.OVER_LIMIT, 3, True)
    assert (fourth.reason, fourth.count, fourth.remaining) == (AdmissionReason.SATURATED, 3, 0)
    assert first.key == rule.bucket_key(clock())


@pytest.mark.asyncio
async def test_next_window_starts_a_fresh_counter(coordinator, rule, counter_store, clock):
    for _ in range(3):
        await coordinator.evaluate(rule, counter_store, clock())
    assert await coordinator.evaluate(rule, counter_store, clock()) is True

    clock.advance(rule.window_seconds)

    assert await coordinator.evaluate(rule, counter_store, clock()) is False


@pytest.mark.asyncio
async def test_counter_expires_after_four_windows(coordinator, counter_store, fake_redis, clock):
    rule = Rule(host_pattern="amfiindia.com", window_seconds=60, limit=5)
    key = rule.bucket_key(clock())

    await coordinator.evaluate(rule, counter_store, clock())
    assert await fake_redis.ttl(key) == 240

    clock.advance(239)
    assert fake_redis.values.get(key) == "1"

    clock.advance(1)
    assert await fake_redis.get(key) is None


@pytest.mark.asyncio
async def test_unconfigured_store_fails_open(coordinator, rule, capture_logs):
    store = UnconfiguredCounterStore()

    results = [await coordinator.check(rule, store) for _ in range(5)]

    assert all(result.limited is False for result in results)
    assert {result.reason for result in results} == {AdmissionReason.CACHE_NOT_CONFIGURED}
    assert any(entry["event"] == "rate_limit_cache_not_configured" for entry in capture_logs)


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["get", "incr", "expire"])
async def test_store_failures_fail_closed(coordinator, rule, failing_redis, operation):
    failing_redis.get.return_value = None
    failing_redis.incr.return_value = 1
    failing_redis.expire.return_value = True
    getattr(failing_redis, operation).side_effect = RedisConnectionError("Connection refused")
    store = RedisCounterStore(failing_redis, timeout=1.0)

    with pytest.raises(RateLimitingDownError) as exc_info:
        await coordinator.evaluate(rule, store)

    assert exc_info.value.limited is True
    assert exc_info.value.kind is ErrorKind.BACKEND_DOWN


@pytest.mark.asyncio
async def test_redis_timeout_is_backend_down(coordinator, rule, failing_redis):
    failing_redis.get.side_effect = RedisTimeoutError("Timeout reading from socket")
    store = RedisCounterStore(failing_redis, timeout=1.0)

    with pytest.raises(RateLimitingDownError):
        await coordinator.evaluate(rule, store)


@pytest.mark.asyncio
async def test_slow_store_is_backend_down(coordinator, rule, failing_redis):
    async def hang(key):
        await asyncio.sleep(10)

    failing_redis.get.side_effect = hang
    store = RedisCounterStore(failing_redis, timeout=0.01)

    with pytest.raises(RateLimitingDownError):
        await coordinator.evaluate(rule, store)


@pytest.mark.asyncio
@pytest.mark.parametrize("garbage", ["garbage", "1.5", "12abc", "1_000"])
async def test_corrupted_counter_fails_closed(coordinator, rule, counter_store, fake_redis, clock, garbage):
    key = rule.bucket_key(clock())
    fake_redis.values[key] = garbage

    with pytest.raises(RateLimitingInvalidError) as exc_info:
        await coordinator.evaluate(rule, counter_store, clock())

    assert exc_info.value.limited is True
    assert exc_info.value.kind is ErrorKind.INVALID_STATE
    assert ("incr", key) not in fake_redis.calls


@pytest.mark.asyncio
async def test_empty_counter_read_counts_as_zero(coordinator, rule, mocker, clock):
    store = mocker.AsyncMock(spec=RedisCounterStore)
    store.configured = True
    store.get.return_value = ""
    store.incr.return_value = 1

    result = await coordinator.check(rule, store, clock())

    assert result.reason is AdmissionReason.ADMITTED
    assert result.count == 1
    store.incr.assert_awaited_once_with(rule.bucket_key(clock()))


@pytest.mark.asyncio
async def test_empty_stored_value_fails_at_increment(coordinator, rule, counter_store, fake_redis, clock):
    key = rule.bucket_key(clock())
    fake_redis.values[key] = ""

    # The read passes; Redis refuses to increment a non-integer string.
    with pytest.raises(RateLimitingDownError):
        await coordinator.evaluate(rule, counter_store, clock())

    assert ("incr", key) in fake_redis.calls
    assert fake_redis.values[key] == ""
