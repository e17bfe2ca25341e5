import asyncio

import httpx
import pytest

from hostgate.adapters.http.getter import FetchRequest, Getter
from hostgate.core.exceptions import RateLimitedError
from hostgate.domain.rate_limiting import AdmissionController, RedisCounterStore, RuleRegistry

AMFI_NAV = "https://www.amfiindia.com/spages/NAVAll.txt"
NSE_INDICES = "https://www1.nseindia.com/content/indices/ind_close_all_03062020.csv"


@pytest.mark.asyncio
async def test_two_hosts_share_a_counter_store(controller, clock, fake_redis):
    """
    A tight per-second limit on one host and a generous one on another.
    Requests alternate between them inside a single second: the tight host
    saturates on its third request while the generous one never does, and the
    next second starts with a fresh counter.
    """
    controller.add_rate_limit("amfiindia.com", "1s", 2)
    controller.add_rate_limit("nseindia.com", "1s", 10000)

    amfi, nse = [], []
    for _ in range(7):
        amfi.append(await controller.is_limited(AMFI_NAV))
        nse.append(await controller.is_limited(NSE_INDICES))

    assert amfi == [False, False, True, True, True, True, True]
    assert nse == [False] * 7
    # The denying increment is kept; later requests stop at the read.
    assert fake_redis.values[f"rate.amfiindia.com.{int(clock.now)}"] == "3"
    assert fake_redis.values[f"rate.nseindia.com.{int(clock.now)}"] == "7"

    clock.advance(1)

    assert await controller.is_limited(AMFI_NAV) is False
    assert await controller.is_limited(AMFI_NAV) is False
    assert await controller.is_limited(AMFI_NAV) is True


@pytest.mark.asyncio
async def test_two_processes_enforce_one_budget(clock, fake_redis):
    """
    Two controllers built independently (as two worker processes would be)
    share one Redis. The budget is global, not per controller.
    """
    workers = []
    for _ in range(2):
        registry = RuleRegistry.from_entries([("amfiindia.com", "1m", 4)])
        workers.append(
            AdmissionController(
                registry=registry, store=RedisCounterStore(fake_redis), clock=clock
            )
        )

    decisions = []
    for i in range(8):
        decisions.append(await workers[i % 2].is_limited(AMFI_NAV))

    assert decisions.count(False) == 4
    assert decisions[:4] == [False] * 4


@pytest.mark.asyncio
async def test_concurrent_burst_admits_exactly_the_limit(controller, fake_redis, clock):
    """
    A burst of concurrent checks never admits more than the limit. Callers
    that raced past the read still increment, so the stored counter may end
    above the limit.
    """
    limit = 3
    rule = controller.add_rate_limit("amfiindia.com", "1h", limit)

    decisions = await asyncio.gather(*(controller.is_limited(AMFI_NAV) for _ in range(10)))

    assert decisions.count(False) == limit
    assert int(fake_redis.values[rule.bucket_key(clock())]) > limit


@pytest.mark.asyncio
async def test_getter_journey_against_saturated_host(controller, clock):
    """
    Fetching through the getter: admitted requests reach the destination,
    denied ones raise before anything is sent, and unrelated hosts are
    unaffected.
    """
    sent = []

    def handler(request):
        sent.append(request.url.host)
        return httpx.Response(200, text="Scheme Code;Net Asset Value")

    getter = Getter(controller=controller, transport=httpx.MockTransport(handler))
    getter.add_rate_limit("amfiindia.com", "1s", 2)

    for _ in range(2):
        response = await getter.fetch(FetchRequest(path=AMFI_NAV))
        assert response.code == 200

    with pytest.raises(RateLimitedError):
        await getter.fetch(FetchRequest(path=AMFI_NAV))

    await getter.fetch(FetchRequest(path=NSE_INDICES))
    assert sent == ["www.amfiindia.com", "www.amfiindia.com", "www1.nseindia.com"]

    clock.advance(1)
    await getter.fetch(FetchRequest(path=AMFI_NAV))
    assert sent[-1] == "www.amfiindia.com"
