# src/contactscout/fetching/retry.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Optional, Set

from tenacity import (AsyncRetrying, RetryCallState, RetryError, retry_if_exception_type,
                      stop_after_attempt, wait_random)

from contactscout.fetching.http_client import Fetcher
from contactscout.fetching.proxy_pool import ProxyPool
from contactscout.fetching.throttle import DomainThrottle
from contactscout.models import CrawlStatus, FetchOutcome, ProxyEndpoint

log = logging.getLogger(__name__)

# 429 og 5xx er forbigående; 407/408 skyldes typisk proxyen
RETRYABLE_STATUSES = frozenset({407, 408, 429})


def is_retryable(outcome: FetchOutcome) -> bool:
    if outcome.status is CrawlStatus.FAILED:
        return True
    if outcome.status is CrawlStatus.HTTP_ERROR:
        code = outcome.http_status or 0
        return code in RETRYABLE_STATUSES or code >= 500
    return False


class RetryableFetchError(Exception):
    def __init__(self, outcome: FetchOutcome):
        super().__init__(outcome.error or f"HTTP {outcome.http_status}")
        self.outcome = outcome


class RetryOrchestrator:
    """Throttle -> proxy selection -> fetch, repeated until success, a final answer or exhaustion."""

    def __init__(
        self,
        fetcher: Fetcher,
        throttle: DomainThrottle,
        pool: Optional[ProxyPool] = None,
        max_attempts: int = 3,
        min_wait_s: float = 1.0,
        max_wait_s: float = 3.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.throttle = throttle
        self.pool = pool
        self.max_attempts = max_attempts
        self.min_wait_s = min_wait_s
        self.max_wait_s = max_wait_s
        self._sleep = sleep

    @staticmethod
    def _log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        log.info(f"Attempt {state.attempt_number} failed ({exc}); retrying in {state.next_action.sleep:.1f}s")

    async def fetch_with_retry(self, url: str, max_attempts: Optional[int] = None) -> FetchOutcome:
        attempts_allowed = max(1, max_attempts or self.max_attempts)
        tried: Set[ProxyEndpoint] = set()
        attempts = 0

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts_allowed),
            wait=wait_random(self.min_wait_s, self.max_wait_s),
            retry=retry_if_exception_type(RetryableFetchError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=False,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    await self.throttle.before_fetch(url)
                    proxy = self.pool.select(tried) if self.pool is not None else None
                    outcome = await self.fetcher.fetch(url, proxy)
                    if proxy is not None:
                        tried.add(proxy)
                    if is_retryable(outcome):
                        raise RetryableFetchError(outcome)
                    return replace(outcome, attempts=attempts)
        except RetryError as e:
            last: FetchOutcome = e.last_attempt.exception().outcome
            error = last.error or f"HTTP {last.http_status}"
            log.warning(f"Giving up on {url} after {attempts} attempt(s): {error}")
            return FetchOutcome(
                url=url,
                status=CrawlStatus.FAILED,
                http_status=last.http_status,
                error=error,
                proxy=last.proxy,
                attempts=attempts,
            )
        # AsyncRetrying stopper altid via return eller RetryError
        raise RuntimeError("retry loop ended without an outcome")
