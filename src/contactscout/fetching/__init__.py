# src/contactscout/fetching/__init__.py
from contactscout.fetching.http_client import Fetcher, normalize_url
from contactscout.fetching.proxy_pool import ProxyPool, RotationStrategy, parse_proxy_line
from contactscout.fetching.retry import RetryOrchestrator
from contactscout.fetching.throttle import DomainThrottle

__all__ = [
    "DomainThrottle",
    "Fetcher",
    "ProxyPool",
    "RetryOrchestrator",
    "RotationStrategy",
    "normalize_url",
    "parse_proxy_line",
]
