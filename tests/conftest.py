# tests/conftest.py
"""
Fælles fixtures: falsk ur/sleep så throttle- og retry-tests kører uden
rigtige pauser, et navne-DB og en MockTransport-baseret klientfabrik.
"""

import os
import random
import sys
from typing import Callable, List, Optional

# Ensure the 'src' directory is in the Python path for module discovery
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_PATH = os.path.join(PROJECT_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

import httpx
import pytest

from contactscout.config import CrawlOptions
from contactscout.extraction.name_database import NameDatabase
from contactscout.models import ProxyEndpoint


class FakeClock:
    """Callable clock plus an async sleep that advances it instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def names_db() -> NameDatabase:
    return NameDatabase.fallback()


@pytest.fixture
def fast_options(monkeypatch) -> CrawlOptions:
    """Options with every politeness delay set to zero and no inference."""
    for key in list(os.environ):
        if key.startswith("CONTACTSCOUT_"):
            monkeypatch.delenv(key, raising=False)
    return CrawlOptions(
        domain_cooldown_s=0.0,
        min_delay_s=0.0,
        retry_min_wait_s=0.0,
        retry_max_wait_s=0.0,
        ai_api_key="",
    )


def mock_client_factory(handler: Callable[[httpx.Request], httpx.Response],
                        seen: Optional[List[Optional[ProxyEndpoint]]] = None):
    """
    Client factory for Fetcher. `handler` answers every request; if `seen` is
    given, the proxy used for each request is appended to it.
    """
    def factory(proxy: Optional[ProxyEndpoint]) -> httpx.AsyncClient:
        def _handle(request: httpx.Request) -> httpx.Response:
            if seen is not None:
                seen.append(proxy)
            return handler(request)
        return httpx.AsyncClient(transport=httpx.MockTransport(_handle), follow_redirects=True)
    return factory


@pytest.fixture
def client_factory():
    return mock_client_factory
