# src/contactscout/fetching/throttle.py
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import urlsplit

from contactscout.models import DomainState

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def host_of(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


class DomainThrottle:
    """
    Per-host pacing. Two fetches to the same host never start closer than
    `cooldown_s` apart, and every fetch waits a random delay in
    [min_delay_s / 2, min_delay_s) on top.
    """

    def __init__(
        self,
        cooldown_s: float = 5.0,
        min_delay_s: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.cooldown_s = cooldown_s
        self.min_delay_s = min_delay_s
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._states: Dict[str, DomainState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def state(self, host: str) -> DomainState:
        return self._states.setdefault(host, DomainState())

    def _jitter(self) -> float:
        lo = self.min_delay_s / 2
        return lo + self._rng.random() * (self.min_delay_s - lo)

    async def before_fetch(self, url: str) -> None:
        host = host_of(url)
        lock = self._locks.setdefault(host, asyncio.Lock())
        async with lock:
            state = self.state(host)
            if state.last_access_at is not None:
                remaining = self.cooldown_s - (self._clock() - state.last_access_at)
                if remaining > 0:
                    log.debug(f"Cooldown {remaining:.2f}s for {host}")
                    await self._sleep(remaining)
            await self._sleep(self._jitter())
            state.last_access_at = self._clock()
            state.request_count += 1
