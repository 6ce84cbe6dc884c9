# tests/test_crawler.py
import httpx
import pytest

from contactscout.crawler import CrawlOrchestrator
from contactscout.models import CrawlStatus

PAGE = "<html><body><p>Contact sales@acme.io</p></body></html>"


def _by_host(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "ok.test":
        return httpx.Response(200, html=PAGE)
    if host == "missing.test":
        return httpx.Response(404, text="not here")
    raise httpx.ReadTimeout("read timed out", request=request)


@pytest.mark.asyncio
async def test_results_keep_input_order_and_length(fast_options, names_db, client_factory):
    seen_results = []
    orchestrator = CrawlOrchestrator.from_options(
        fast_options, names=names_db, on_result=seen_results.append, client_factory=client_factory(_by_host)
    )
    urls = ["https://slow.test/", "ok.test", "https://missing.test/page"]
    try:
        results = await orchestrator.crawl(urls)
    finally:
        await orchestrator.close()

    assert [r.url for r in results] == ["https://slow.test/", "https://ok.test/", "https://missing.test/page"]
    assert len(seen_results) == 3

    slow, ok, missing = results
    assert slow.status is CrawlStatus.FAILED
    assert slow.notes.startswith("ERROR:")
    assert ok.status is CrawlStatus.SUCCESS
    assert ok.emails == {"sales@acme.io"}
    assert missing.status is CrawlStatus.HTTP_ERROR
    assert missing.status_label == "HTTP_404"
    assert missing.notes == "HTTP error 404"


@pytest.mark.asyncio
async def test_dead_url_uses_distinct_proxy_per_attempt(fast_options, names_db, tmp_path, client_factory):
    proxy_file = tmp_path / "proxies.txt"
    proxy_file.write_text("10.0.0.1:8080\n10.0.0.2:8080:user:secret\n# kommentar\nuser:pw@10.0.0.3:3128\n")
    fast_options.use_direct_connection = False
    fast_options.proxy_file = str(proxy_file)
    fast_options.rotation_strategy = "round_robin"
    fast_options.max_retries = 3

    seen = []
    orchestrator = CrawlOrchestrator.from_options(
        fast_options, names=names_db, client_factory=client_factory(_by_host, seen)
    )
    try:
        [result] = await orchestrator.crawl(["https://slow.test/"])
    finally:
        await orchestrator.close()

    assert len(seen) == 3
    assert len(set(seen)) == 3
    assert None not in seen
    assert result.status is CrawlStatus.FAILED
    assert result.notes.startswith("ERROR:")
    assert [s["failure"] for s in orchestrator.retry.pool.stats().values()] == [1, 1, 1]


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_failed_result(fast_options, names_db, client_factory):
    orchestrator = CrawlOrchestrator.from_options(fast_options, names=names_db, client_factory=client_factory(_by_host))

    async def explode(url, content):
        raise RuntimeError("boom")

    orchestrator.pipeline.process = explode
    try:
        results = await orchestrator.crawl(["https://ok.test/", "https://missing.test/"])
    finally:
        await orchestrator.close()

    assert results[0].status is CrawlStatus.FAILED
    assert results[0].notes == "EXCEPTION: boom"
    assert results[1].status is CrawlStatus.HTTP_ERROR


@pytest.mark.asyncio
async def test_blank_url_fails_without_fetching(fast_options, names_db, client_factory):
    seen = []
    orchestrator = CrawlOrchestrator.from_options(
        fast_options, names=names_db, client_factory=client_factory(_by_host, seen)
    )
    try:
        [result] = await orchestrator.crawl(["   "])
    finally:
        await orchestrator.close()

    assert result.status is CrawlStatus.FAILED
    assert result.notes.startswith("ERROR:")
    assert seen == []


@pytest.mark.asyncio
async def test_empty_input_gives_empty_output(fast_options, names_db):
    orchestrator = CrawlOrchestrator.from_options(fast_options, names=names_db)
    try:
        assert await orchestrator.crawl([]) == []
    finally:
        await orchestrator.close()


def test_invalid_options_are_rejected(fast_options, names_db):
    fast_options.workers = 0
    with pytest.raises(ValueError):
        CrawlOrchestrator.from_options(fast_options, names=names_db)


@pytest.mark.asyncio
async def test_out_of_range_port_fails_without_fetching(fast_options, names_db, client_factory):
    seen = []
    orchestrator = CrawlOrchestrator.from_options(
        fast_options, names=names_db, client_factory=client_factory(_by_host, seen)
    )
    try:
        [result] = await orchestrator.crawl(["https://ok.test:99999/"])
    finally:
        await orchestrator.close()

    assert result.status is CrawlStatus.FAILED
    assert result.notes.startswith("ERROR: Invalid port")
    assert seen == []
