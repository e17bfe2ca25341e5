import pytest
from structlog.testing import capture_logs as capture_structlog
from redis.asyncio import Redis

from hostgate.core.config.settings import Settings
from hostgate.domain.rate_limiting import (
    AdmissionController,
    RedisCounterStore,
    RuleRegistry,
)
from tests.utils.fake_redis import FakeRedis


class FrozenClock:
    """Manually advanced clock shared by the fake Redis and the rules under test."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def capture_logs():
    with capture_structlog() as logs:
        yield logs


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock=clock)


@pytest.fixture
def counter_store(fake_redis):
    return RedisCounterStore(fake_redis, timeout=1.0)


@pytest.fixture
def failing_redis(mocker):
    redis = mocker.AsyncMock(spec=Redis)
    # Command methods return awaitables without being coroutine functions.
    for command in ("get", "incr", "expire"):
        setattr(redis, command, mocker.AsyncMock(name=command))
    return redis


@pytest.fixture
def registry():
    return RuleRegistry()


@pytest.fixture
def controller(registry, counter_store, clock):
    return AdmissionController(registry=registry, store=counter_store, clock=clock)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        REDIS_HOST="127.0.0.1",
        REDIS_PORT=6379,
        RATE_LIMIT_RULES="amfiindia.com=1s/2,nseindia.com=1h/10000",
        RATE_LIMIT_CACHE_TIMEOUT=0.5,
    )
