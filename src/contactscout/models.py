# src/contactscout/models.py
"""
Datamodeller for crawleren.

CrawlResult er det eneste objekt der forlader pakken; resten er interne
records som fetch- og extraction-lagene sender imellem sig.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


class CrawlStatus(str, Enum):
    SUCCESS = "SUCCESS"
    HTTP_ERROR = "HTTP_ERROR"
    FAILED = "FAILED"


def _clean_set(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    return frozenset(v.strip() for v in values if isinstance(v, str) and v.strip())


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Person:
    first_name: str
    last_name: str = ""
    role: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def identity_key(self) -> str:
        return f"{self.first_name} {self.last_name}".strip().lower()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "email": self.email,
            "phone": self.phone,
        }


# ---------------------------------------------------------------------------
# Proxies
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ProxyEndpoint:
    host: str
    port: int
    username: Optional[str] = field(default=None, compare=False)
    password: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and self.password is not None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def url(self, scheme: str = "http") -> str:
        """Proxy URL without credentials; auth travels in a header instead."""
        return f"{scheme}://{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.address


@dataclass
class ProxyHealth:
    success_count: int = 0
    failure_count: int = 0
    last_used_at: float = 0.0

    @property
    def total_requests(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        total = self.total_requests
        return 1.0 if total == 0 else self.success_count / total

    @property
    def failure_rate(self) -> float:
        total = self.total_requests
        return 0.0 if total == 0 else self.failure_count / total

    def record_success(self, now: Optional[float] = None) -> None:
        self.success_count += 1
        self.last_used_at = time.time() if now is None else now

    def record_failure(self, now: Optional[float] = None) -> None:
        self.failure_count += 1
        self.last_used_at = time.time() if now is None else now


@dataclass
class DomainState:
    last_access_at: Optional[float] = None
    request_count: int = 0


# ---------------------------------------------------------------------------
# Fetch / crawl results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class FetchOutcome:
    url: str
    status: CrawlStatus
    http_status: Optional[int] = None
    content: Optional[str] = None
    error: Optional[str] = None
    proxy: Optional[ProxyEndpoint] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.status is CrawlStatus.SUCCESS


@dataclass(frozen=True)
class CrawlResult:
    url: str
    status: CrawlStatus
    http_status: Optional[int] = None
    emails: FrozenSet[str] = frozenset()
    phones: FrozenSet[str] = frozenset()
    linkedin_profiles: FrozenSet[str] = frozenset()
    github_profiles: FrozenSet[str] = frozenset()
    facebook_profiles: FrozenSet[str] = frozenset()
    people: Tuple[Person, ...] = ()
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        # frozen: skriv via object.__setattr__
        for name in ("emails", "phones", "linkedin_profiles", "github_profiles", "facebook_profiles"):
            object.__setattr__(self, name, _clean_set(getattr(self, name)))
        people = tuple(p for p in (self.people or ()) if p.first_name and p.first_name.strip())
        object.__setattr__(self, "people", people)

    @property
    def status_label(self) -> str:
        if self.status is CrawlStatus.HTTP_ERROR and self.http_status is not None:
            return f"HTTP_{self.http_status}"
        return self.status.value

    @classmethod
    def failed(cls, url: str, notes: str) -> "CrawlResult":
        return cls(url=url, status=CrawlStatus.FAILED, notes=notes)

    @classmethod
    def from_outcome(cls, outcome: FetchOutcome) -> "CrawlResult":
        """Result for a fetch that produced no content to extract from."""
        if outcome.status is CrawlStatus.HTTP_ERROR:
            return cls(
                url=outcome.url,
                status=CrawlStatus.HTTP_ERROR,
                http_status=outcome.http_status,
                notes=f"HTTP error {outcome.http_status}",
            )
        return cls.failed(outcome.url, f"ERROR: {outcome.error or 'unknown error'}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "status": self.status_label,
            "emails": sorted(self.emails),
            "phones": sorted(self.phones),
            "linkedin_profiles": sorted(self.linkedin_profiles),
            "github_profiles": sorted(self.github_profiles),
            "facebook_profiles": sorted(self.facebook_profiles),
            "people": [p.to_dict() for p in self.people],
            "notes": self.notes,
        }
