# tests/test_throttle.py
import asyncio

import pytest

from contactscout.fetching.throttle import DomainThrottle, host_of


def test_host_of():
    assert host_of("https://WWW.Example.com:8443/path?q=1") == "www.example.com"


@pytest.mark.asyncio
async def test_back_to_back_fetches_respect_cooldown(clock, rng):
    throttle = DomainThrottle(cooldown_s=5.0, min_delay_s=1.0, clock=clock, sleep=clock.sleep, rng=rng)

    await throttle.before_fetch("https://acme.test/a")
    first = throttle.state("acme.test").last_access_at
    await throttle.before_fetch("https://acme.test/b")
    second = throttle.state("acme.test").last_access_at

    assert second - first >= 5.0
    assert throttle.state("acme.test").request_count == 2


@pytest.mark.asyncio
async def test_jitter_is_within_half_to_full_min_delay(clock, rng):
    throttle = DomainThrottle(cooldown_s=0.0, min_delay_s=1.0, clock=clock, sleep=clock.sleep, rng=rng)
    for i in range(10):
        await throttle.before_fetch(f"https://host{i}.test/")
    assert len(clock.sleeps) == 10
    assert all(0.5 <= s < 1.0 for s in clock.sleeps)


@pytest.mark.asyncio
async def test_other_hosts_are_not_delayed_by_cooldown(clock, rng):
    throttle = DomainThrottle(cooldown_s=5.0, min_delay_s=1.0, clock=clock, sleep=clock.sleep, rng=rng)
    await throttle.before_fetch("https://one.test/")
    await throttle.before_fetch("https://two.test/")
    # only the two jitter sleeps, no cooldown wait
    assert len(clock.sleeps) == 2
    assert all(s < 1.0 for s in clock.sleeps)


@pytest.mark.asyncio
async def test_concurrent_fetches_to_same_host_are_serialized(clock, rng):
    throttle = DomainThrottle(cooldown_s=5.0, min_delay_s=1.0, clock=clock, sleep=clock.sleep, rng=rng)
    stamps = []

    async def hit(path):
        await throttle.before_fetch(f"https://same.test/{path}")
        stamps.append(throttle.state("same.test").last_access_at)

    await asyncio.gather(*(hit(p) for p in "abc"))
    assert len(stamps) == 3
    assert all(b - a >= 5.0 for a, b in zip(stamps, stamps[1:]))


@pytest.mark.asyncio
async def test_cancellation_during_wait_propagates():
    throttle = DomainThrottle(cooldown_s=60.0, min_delay_s=0.0)
    await throttle.before_fetch("https://slow.test/")
    task = asyncio.ensure_future(throttle.before_fetch("https://slow.test/again"))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert throttle.state("slow.test").request_count == 1
