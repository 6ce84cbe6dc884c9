# src/contactscout/crawler.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, List, Optional

from contactscout.config import CrawlOptions
from contactscout.extraction.inference import InferenceClient
from contactscout.extraction.name_database import NameDatabase
from contactscout.extraction.people import PersonExtractor
from contactscout.extraction.pipeline import ExtractionPipeline
from contactscout.fetching.http_client import Fetcher, normalize_url
from contactscout.fetching.proxy_pool import ProxyPool, RotationStrategy
from contactscout.fetching.retry import RetryOrchestrator
from contactscout.fetching.throttle import DomainThrottle
from contactscout.models import CrawlResult, CrawlStatus

log = logging.getLogger(__name__)

ProgressCallback = Callable[[CrawlResult], None]


class CrawlOrchestrator:
    """
    Crawls a fixed URL list once each. Results come back in input order,
    one per URL; a failing URL yields a FAILED result instead of raising.
    """

    def __init__(
        self,
        retry: RetryOrchestrator,
        pipeline: ExtractionPipeline,
        workers: int = 5,
        max_retries: int = 3,
        on_result: Optional[ProgressCallback] = None,
    ):
        self.retry = retry
        self.pipeline = pipeline
        self.workers = max(1, workers)
        self.max_retries = max_retries
        self.on_result = on_result

    @classmethod
    def from_options(
        cls,
        options: CrawlOptions,
        names: Optional[NameDatabase] = None,
        on_result: Optional[ProgressCallback] = None,
        **fetcher_kw,
    ) -> "CrawlOrchestrator":
        options.validate()
        strategy = options.effective_strategy
        if strategy != RotationStrategy.NONE.value:
            pool = ProxyPool.from_file(options.proxy_file, strategy=strategy)
        else:
            pool = ProxyPool((), strategy=RotationStrategy.NONE)

        fetcher = Fetcher(
            pool=pool,
            timeout_s=options.timeout_s,
            max_body_bytes=options.max_body_bytes,
            **fetcher_kw,
        )
        throttle = DomainThrottle(cooldown_s=options.domain_cooldown_s, min_delay_s=options.min_delay_s)
        retry = RetryOrchestrator(
            fetcher,
            throttle,
            pool=pool,
            max_attempts=options.max_retries,
            min_wait_s=options.retry_min_wait_s,
            max_wait_s=options.retry_max_wait_s,
        )

        person_extractor = None
        if options.extract_people:
            inference = None
            if options.inference_enabled:
                inference = InferenceClient(
                    options.ai_api_key,
                    api_url=options.ai_api_url,
                    model=options.ai_model,
                    timeout_s=options.ai_timeout_s,
                )
            if names is None:
                names = NameDatabase.load(options.names_file)
            person_extractor = PersonExtractor(database=names, inference=inference)

        pipeline = ExtractionPipeline(
            person_extractor,
            extract_people=options.extract_people,
            extract_social=options.extract_social,
            extract_facebook=options.extract_facebook,
            default_region=options.default_region,
        )
        return cls(retry, pipeline, workers=options.workers, max_retries=options.max_retries, on_result=on_result)

    async def close(self) -> None:
        await self.retry.fetcher.close()
        extractor = self.pipeline.person_extractor
        for strategy in getattr(extractor, "strategies", ()):
            client = getattr(strategy, "client", None)
            if client is not None:
                await client.close()

    async def crawl_one(self, url: str) -> CrawlResult:
        try:
            target = normalize_url(url)
        except ValueError as e:
            return CrawlResult.failed(url, f"ERROR: {e}")

        outcome = await self.retry.fetch_with_retry(target, self.max_retries)
        if outcome.status is not CrawlStatus.SUCCESS:
            return CrawlResult.from_outcome(outcome)
        return await self.pipeline.process(target, outcome.content or "")

    async def _guarded(self, sem: asyncio.Semaphore, url: str) -> CrawlResult:
        async with sem:
            try:
                result = await self.crawl_one(url)
            except Exception as e:
                log.error(f"Unexpected error while crawling {url}: {e}", exc_info=True)
                result = CrawlResult.failed(url, f"EXCEPTION: {e}")
        if self.on_result is not None:
            self.on_result(result)
        return result

    async def crawl(self, urls: Iterable[str]) -> List[CrawlResult]:
        urls = list(urls)
        sem = asyncio.Semaphore(self.workers)
        log.info(f"Starting crawl of {len(urls)} URL(s) with {self.workers} worker(s)")
        started = time.monotonic()

        results = await asyncio.gather(*(self._guarded(sem, u) for u in urls))

        log_summary(results, time.monotonic() - started)
        return list(results)


def log_summary(results: List[CrawlResult], elapsed_s: float) -> None:
    total = len(results)
    ok = sum(1 for r in results if r.status is CrawlStatus.SUCCESS)
    rate = (ok / total * 100) if total else 0.0
    log.info(
        f"Crawl finished in {elapsed_s:.1f}s: {ok}/{total} successful ({rate:.1f}%), "
        f"{sum(len(r.people) for r in results)} people, "
        f"{sum(len(r.emails) for r in results)} emails, "
        f"{sum(len(r.phones) for r in results)} phones"
    )


async def crawl_urls(
    urls: Iterable[str],
    options: Optional[CrawlOptions] = None,
    on_result: Optional[ProgressCallback] = None,
) -> List[CrawlResult]:
    orchestrator = CrawlOrchestrator.from_options(options or CrawlOptions(), on_result=on_result)
    try:
        return await orchestrator.crawl(urls)
    finally:
        await orchestrator.close()


def run_crawl(
    urls: Iterable[str],
    options: Optional[CrawlOptions] = None,
    on_result: Optional[ProgressCallback] = None,
) -> List[CrawlResult]:
    """Blocking entry point."""
    return asyncio.run(crawl_urls(urls, options, on_result))
