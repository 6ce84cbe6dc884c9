# tests/test_retry.py
import asyncio

import pytest

from contactscout.fetching.proxy_pool import ProxyPool, RotationStrategy
from contactscout.fetching.retry import RetryOrchestrator, is_retryable
from contactscout.fetching.throttle import DomainThrottle
from contactscout.models import CrawlStatus, FetchOutcome, ProxyEndpoint


class ScriptedFetcher:
    """Answers fetch() from a list of (status, http_status) tuples and records the proxies used."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    async def fetch(self, url, proxy=None):
        self.calls.append(proxy)
        status, code = self.script.pop(0) if self.script else (CrawlStatus.FAILED, None)
        if status is CrawlStatus.SUCCESS:
            return FetchOutcome(url=url, status=status, http_status=200, content="<html></html>", proxy=proxy)
        if status is CrawlStatus.HTTP_ERROR:
            return FetchOutcome(url=url, status=status, http_status=code, proxy=proxy)
        return FetchOutcome(url=url, status=status, error="timeout after 15s", proxy=proxy)

    async def close(self):
        pass


def _orchestrator(fetcher, clock, pool=None, attempts=3):
    throttle = DomainThrottle(cooldown_s=0.0, min_delay_s=0.0, clock=clock, sleep=clock.sleep)
    return RetryOrchestrator(fetcher, throttle, pool=pool, max_attempts=attempts,
                             min_wait_s=1.0, max_wait_s=3.0, sleep=clock.sleep)


@pytest.mark.parametrize("outcome, expected", [
    (FetchOutcome("u", CrawlStatus.FAILED, error="x"), True),
    (FetchOutcome("u", CrawlStatus.HTTP_ERROR, http_status=503), True),
    (FetchOutcome("u", CrawlStatus.HTTP_ERROR, http_status=429), True),
    (FetchOutcome("u", CrawlStatus.HTTP_ERROR, http_status=404), False),
    (FetchOutcome("u", CrawlStatus.SUCCESS, http_status=200), False),
])
def test_is_retryable(outcome, expected):
    assert is_retryable(outcome) is expected


@pytest.mark.asyncio
async def test_success_first_try_no_backoff(clock):
    fetcher = ScriptedFetcher([(CrawlStatus.SUCCESS, 200)])
    outcome = await _orchestrator(fetcher, clock).fetch_with_retry("https://a.test/")
    assert outcome.status is CrawlStatus.SUCCESS
    assert outcome.attempts == 1
    assert all(s == 0.0 for s in clock.sleeps)  # only zero jitter from the throttle


@pytest.mark.asyncio
async def test_retries_then_succeeds_with_jittered_backoff(clock):
    fetcher = ScriptedFetcher([(CrawlStatus.FAILED, None), (CrawlStatus.HTTP_ERROR, 503), (CrawlStatus.SUCCESS, 200)])
    outcome = await _orchestrator(fetcher, clock).fetch_with_retry("https://a.test/")
    assert outcome.status is CrawlStatus.SUCCESS
    assert outcome.attempts == 3
    backoffs = [s for s in clock.sleeps if s > 0]
    assert len(backoffs) == 2
    assert all(1.0 <= s <= 3.0 for s in backoffs)


@pytest.mark.asyncio
async def test_terminal_http_error_is_not_retried(clock):
    fetcher = ScriptedFetcher([(CrawlStatus.HTTP_ERROR, 404)])
    outcome = await _orchestrator(fetcher, clock).fetch_with_retry("https://a.test/missing")
    assert outcome.status is CrawlStatus.HTTP_ERROR
    assert outcome.http_status == 404
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_exhaustion_returns_failed_with_last_error(clock):
    fetcher = ScriptedFetcher([])
    outcome = await _orchestrator(fetcher, clock, attempts=3).fetch_with_retry("https://a.test/")
    assert outcome.status is CrawlStatus.FAILED
    assert outcome.attempts == 3
    assert outcome.error == "timeout after 15s"
    assert len(fetcher.calls) == 3


@pytest.mark.asyncio
async def test_each_attempt_uses_an_untried_proxy(clock):
    eps = [ProxyEndpoint(f"10.0.0.{i}", 8000) for i in range(1, 5)]
    pool = ProxyPool(eps, strategy=RotationStrategy.RANDOM)
    fetcher = ScriptedFetcher([])
    await _orchestrator(fetcher, clock, pool=pool, attempts=3).fetch_with_retry("https://a.test/")
    assert len(fetcher.calls) == 3
    assert len(set(fetcher.calls)) == 3


@pytest.mark.asyncio
async def test_per_call_attempt_override(clock):
    fetcher = ScriptedFetcher([])
    outcome = await _orchestrator(fetcher, clock, attempts=5).fetch_with_retry("https://a.test/", max_attempts=2)
    assert outcome.attempts == 2


@pytest.mark.asyncio
async def test_cancellation_during_backoff_propagates():
    fetcher = ScriptedFetcher([])
    throttle = DomainThrottle(cooldown_s=0.0, min_delay_s=0.0)
    retry = RetryOrchestrator(fetcher, throttle, max_attempts=3, min_wait_s=30.0, max_wait_s=30.0)

    task = asyncio.ensure_future(retry.fetch_with_retry("https://a.test/"))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(fetcher.calls) == 1
