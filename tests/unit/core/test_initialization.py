from hostgate.core.config.settings import Settings
from hostgate.core.initialization import create_getter
from hostgate.domain.rate_limiting import RedisCounterStore, UnconfiguredCounterStore


def test_create_getter_wires_rules_and_store(test_settings, fake_redis):
    getter = create_getter(test_settings, redis=fake_redis)

    assert [rule.host_pattern for rule in getter.controller.registry] == [
        "amfiindia.com",
        "nseindia.com",
    ]
    assert isinstance(getter.controller.store, RedisCounterStore)
    assert getter.controller.store.redis is fake_redis
    assert getter.controller.store.timeout == 0.5
    assert getter.timeout == test_settings.HTTP_TIMEOUT


def test_create_getter_without_rate_limiting():
    settings = Settings(
        _env_file=None, RATE_LIMIT_ENABLED=False, RATE_LIMIT_RULES="x.com=1m/1", HTTP_TIMEOUT=3
    )

    getter = create_getter(settings)

    assert len(getter.controller.registry) == 1
    assert isinstance(getter.controller.store, UnconfiguredCounterStore)
    assert getter.timeout == 3
