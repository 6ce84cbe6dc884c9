# src/contactscout/fetching/proxy_pool.py
from __future__ import annotations

import logging
import random
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Union

from contactscout.models import ProxyEndpoint, ProxyHealth

log = logging.getLogger(__name__)

HEALTH_MIN_REQUESTS = 5
HEALTH_MIN_SUCCESS_RATE = 0.3
WARN_FAILURE_RATE = 0.7
WARN_MIN_REQUESTS = 10


class RotationStrategy(str, Enum):
    NONE = "none"
    RANDOM = "random"
    ROUND_ROBIN = "round_robin"
    SMART = "smart"


def parse_proxy_line(line: str) -> Optional[ProxyEndpoint]:
    """
    Parse one proxy list line. Accepted shapes:
        host:port
        host:port:user:pass
        user:pass@host:port
    Returns None for blank and comment lines; raises ValueError for malformed ones.
    """
    line = (line or "").strip()
    if not line or line.startswith("#"):
        return None

    username = password = None
    if "@" in line:
        creds, _, hostport = line.rpartition("@")
        user, sep, pwd = creds.partition(":")
        if not sep or not user:
            raise ValueError(f"malformed credentials in {line!r}")
        username, password = user, pwd
        parts = hostport.split(":")
        if len(parts) != 2:
            raise ValueError(f"expected host:port after '@' in {line!r}")
        host, port_s = parts
    else:
        parts = line.split(":")
        if len(parts) == 2:
            host, port_s = parts
        elif len(parts) == 4:
            host, port_s, username, password = parts
        else:
            raise ValueError(f"expected 2 or 4 ':'-separated fields in {line!r}")

    host = host.strip()
    if not host:
        raise ValueError(f"empty host in {line!r}")
    try:
        port = int(port_s)
    except ValueError:
        raise ValueError(f"non-numeric port {port_s!r}") from None
    if not 1 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return ProxyEndpoint(host=host, port=port, username=username or None, password=password)


class ProxyPool:
    """
    Ordered list of proxy endpoints with per-endpoint health and a selection strategy.

    Selection and health updates contain no awaits, so they run atomically on
    the event loop.
    """

    def __init__(
        self,
        endpoints: Iterable[ProxyEndpoint] = (),
        strategy: Union[RotationStrategy, str] = RotationStrategy.ROUND_ROBIN,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.strategy = RotationStrategy(strategy)
        self._rng = rng or random.Random()
        self._clock = clock
        self._endpoints: List[ProxyEndpoint] = []
        self._health: Dict[ProxyEndpoint, ProxyHealth] = {}
        self._cursor = 0
        for ep in endpoints:
            if ep in self._health:
                log.debug(f"Duplicate proxy ignored: {ep}")
                continue
            self._endpoints.append(ep)
            self._health[ep] = ProxyHealth()

    @classmethod
    def from_lines(cls, lines: Iterable[str], strategy: Union[RotationStrategy, str] = RotationStrategy.ROUND_ROBIN, **kw) -> "ProxyPool":
        endpoints: List[ProxyEndpoint] = []
        for lineno, line in enumerate(lines, start=1):
            try:
                ep = parse_proxy_line(line)
            except ValueError as e:
                log.warning(f"Skipping proxy line {lineno}: {e}")
                continue
            if ep is not None:
                endpoints.append(ep)
        return cls(endpoints, strategy=strategy, **kw)

    @classmethod
    def from_file(cls, path: Union[str, Path], strategy: Union[RotationStrategy, str] = RotationStrategy.ROUND_ROBIN, **kw) -> "ProxyPool":
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            log.error(f"Could not read proxy file {path}: {e}; using direct connection")
            return cls((), strategy=strategy, **kw)
        pool = cls.from_lines(text.splitlines(), strategy=strategy, **kw)
        log.info(f"Loaded {len(pool)} proxies from {path} (strategy={pool.strategy.value})")
        return pool

    def __len__(self) -> int:
        return len(self._endpoints)

    @property
    def endpoints(self) -> List[ProxyEndpoint]:
        return list(self._endpoints)

    def health(self, endpoint: ProxyEndpoint) -> ProxyHealth:
        return self._health[endpoint]

    def is_healthy(self, endpoint: ProxyEndpoint) -> bool:
        h = self._health[endpoint]
        return h.total_requests < HEALTH_MIN_REQUESTS or h.success_rate > HEALTH_MIN_SUCCESS_RATE

    # ---------------------------------------------------------------- select

    def select(self, tried: Optional[Set[ProxyEndpoint]] = None) -> Optional[ProxyEndpoint]:
        if self.strategy is RotationStrategy.NONE or not self._endpoints:
            return None

        tried = tried or set()
        healthy = [ep for ep in self._endpoints if self.is_healthy(ep)]
        candidates = [ep for ep in healthy if ep not in tried] or healthy
        if not candidates:
            return None

        if self.strategy is RotationStrategy.RANDOM:
            return self._rng.choice(candidates)
        if self.strategy is RotationStrategy.ROUND_ROBIN:
            ep = candidates[self._cursor % len(candidates)]
            self._cursor += 1
            return ep
        # SMART: max() beholder første ved lighed
        return max(candidates, key=lambda ep: self._health[ep].success_rate)

    # ---------------------------------------------------------------- health

    def _now(self) -> Optional[float]:
        return self._clock() if self._clock else None

    def record_success(self, endpoint: ProxyEndpoint) -> None:
        h = self._health.get(endpoint)
        if h is not None:
            h.record_success(self._now())

    def record_failure(self, endpoint: ProxyEndpoint) -> None:
        h = self._health.get(endpoint)
        if h is None:
            return
        h.record_failure(self._now())
        if h.total_requests > WARN_MIN_REQUESTS and h.failure_rate > WARN_FAILURE_RATE:
            log.warning(
                f"Proxy {endpoint} has high failure rate: {h.failure_rate:.0%} "
                f"({h.failure_count}/{h.total_requests})"
            )

    def stats(self) -> Dict[str, Dict[str, float]]:
        return {
            ep.address: {
                "success": self._health[ep].success_count,
                "failure": self._health[ep].failure_count,
                "success_rate": round(self._health[ep].success_rate, 3),
                "healthy": self.is_healthy(ep),
            }
            for ep in self._endpoints
        }
