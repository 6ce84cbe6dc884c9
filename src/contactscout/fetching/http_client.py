# src/contactscout/fetching/http_client.py
from __future__ import annotations

import asyncio
import logging
import random
import ssl
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import certifi
import httpx

from contactscout.fetching.proxy_pool import ProxyPool
from contactscout.models import CrawlStatus, FetchOutcome, ProxyEndpoint

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 15.0
DEFAULT_MAX_BODY_BYTES = 5 * 1024 * 1024

# Statuskoder der skyldes proxyen frem for målsiden
PROXY_FAULT_STATUSES = frozenset({407, 502, 503, 504})

# --- User-Agent helpers ---
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
]

CHROME_VERSIONS = ("120", "119", "118", "117")


def get_random_user_agent(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(USER_AGENTS)


try:
    import brotli as _brotli  # noqa: F401
except ImportError:
    _brotli = None

def _accept_encoding() -> str:
    # gzip/deflate altid; br kun hvis httpx kan dekode det
    return "gzip, deflate" + (", br" if _brotli is not None else "")


def _get_headers(user_agent: Optional[str] = None, rng: Optional[random.Random] = None) -> Dict[str, str]:
    rng = rng or random
    headers = {
        "User-Agent": user_agent or get_random_user_agent(rng),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": _accept_encoding(),
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Cache-Control": "max-age=0",
    }
    if rng.random() < 0.5:
        v = rng.choice(CHROME_VERSIONS)
        headers["Sec-CH-UA"] = f'"Not_A Brand";v="8", "Chromium";v="{v}", "Google Chrome";v="{v}"'
    return headers


def _ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


# --- URL helpers ---
TRACKING_PARAMS = frozenset({"fbclid", "gclid", "ref", "source"})

def _is_tracking_param(name: str) -> bool:
    n = name.lower()
    return n.startswith("utm_") or n in TRACKING_PARAMS

def normalize_url(url: str) -> str:
    """Canonical form used for fetching and reporting: https default, no tracking params, no fragment."""
    u = (url or "").strip()
    if not u:
        raise ValueError("URL is empty")
    if "://" not in u:
        u = "https://" + u.lstrip("/")
    p = urlsplit(u)
    if not p.netloc:
        raise ValueError(f"URL has no host: {url!r}")
    try:
        port = p.port
    except ValueError as e:
        raise ValueError(f"Invalid port in URL {url!r}") from e
    if port == 0:
        raise ValueError(f"Invalid port in URL {url!r}")
    query = [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if not _is_tracking_param(k)]
    return urlunsplit((p.scheme.lower(), p.netloc.lower(), p.path or "/", urlencode(query), ""))


ClientFactory = Callable[[Optional[ProxyEndpoint]], httpx.AsyncClient]


def default_client_factory(timeout_s: float = DEFAULT_TIMEOUT_S) -> ClientFactory:
    def _factory(proxy: Optional[ProxyEndpoint]) -> httpx.AsyncClient:
        kwargs = dict(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout_s),
            verify=_ssl_context(),
        )
        if proxy is not None:
            auth = (proxy.username, proxy.password) if proxy.has_credentials else None
            kwargs["proxy"] = httpx.Proxy(proxy.url(), auth=auth)
        return httpx.AsyncClient(**kwargs)
    return _factory


class Fetcher:
    """
    One GET per call, optionally through a proxy. HTTP error statuses come
    back as data; only cancellation escapes `fetch`.
    """

    def __init__(
        self,
        pool: Optional[ProxyPool] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        client_factory: Optional[ClientFactory] = None,
        rng: Optional[random.Random] = None,
    ):
        self.pool = pool
        self.timeout_s = timeout_s
        self.max_body_bytes = max_body_bytes
        self._client_factory = client_factory or default_client_factory(timeout_s)
        self._rng = rng or random.Random()
        self._clients: Dict[Optional[ProxyEndpoint], httpx.AsyncClient] = {}

    def _client_for(self, proxy: Optional[ProxyEndpoint]) -> httpx.AsyncClient:
        client = self._clients.get(proxy)
        if client is None:
            client = self._client_factory(proxy)
            self._clients[proxy] = client
        return client

    async def close(self) -> None:
        clients: List[httpx.AsyncClient] = list(self._clients.values())
        self._clients.clear()
        for c in clients:
            try:
                await c.aclose()
            except RuntimeError as e:
                log.debug(f"Client close failed: {e}")

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _read_capped(self, resp: httpx.Response) -> str:
        buf = bytearray()
        async for chunk in resp.aiter_bytes():
            room = self.max_body_bytes - len(buf)
            if len(chunk) >= room:
                buf.extend(chunk[:room])
                log.debug(f"Body for {resp.url} truncated at {self.max_body_bytes} bytes")
                break
            buf.extend(chunk)
        return bytes(buf).decode(resp.encoding or "utf-8", errors="replace")

    async def _get(self, url: str, proxy: Optional[ProxyEndpoint]) -> FetchOutcome:
        client = self._client_for(proxy)
        headers = _get_headers(rng=self._rng)
        async with client.stream("GET", url, headers=headers) as resp:
            if resp.status_code != 200:
                return FetchOutcome(url=url, status=CrawlStatus.HTTP_ERROR, http_status=resp.status_code, proxy=proxy)
            content = await self._read_capped(resp)
            return FetchOutcome(url=url, status=CrawlStatus.SUCCESS, http_status=200, content=content, proxy=proxy)

    async def fetch(self, url: str, proxy: Optional[ProxyEndpoint] = None) -> FetchOutcome:
        via = f" via {proxy}" if proxy else ""
        log.debug(f"GET {url}{via}")
        try:
            outcome = await asyncio.wait_for(self._get(url, proxy), timeout=self.timeout_s)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            outcome = FetchOutcome(url=url, status=CrawlStatus.FAILED, error=f"timeout after {self.timeout_s:.0f}s", proxy=proxy)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            outcome = FetchOutcome(url=url, status=CrawlStatus.FAILED, error=f"{type(e).__name__}: {e}", proxy=proxy)

        self._record_health(outcome)
        if outcome.status is CrawlStatus.HTTP_ERROR:
            log.info(f"HTTP {outcome.http_status} for {url}{via}")
        elif outcome.status is CrawlStatus.FAILED:
            log.info(f"Fetch failed for {url}{via}: {outcome.error}")
        return outcome

    def _record_health(self, outcome: FetchOutcome) -> None:
        if outcome.proxy is None or self.pool is None:
            return
        if outcome.status is CrawlStatus.FAILED or outcome.http_status in PROXY_FAULT_STATUSES:
            self.pool.record_failure(outcome.proxy)
        else:
            self.pool.record_success(outcome.proxy)
