# src/contactscout/extraction/emails.py
from __future__ import annotations

import logging
import re
from typing import Optional, Set
from urllib.parse import unquote

from email_validator import EmailNotValidError, validate_email

log = logging.getLogger(__name__)

EMAIL_PATTERNS = [
    re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", re.I),
    re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\.[a-zA-Z]{2,}", re.I),  # .co.uk o.l.
    re.compile(r"mailto:([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.I),
]
MAILTO_RE = re.compile(r"mailto:([^\"'\s?>]+)", re.I)

DISPOSABLE_DOMAINS = frozenset({
    "tempmail.com", "guerrillamail.com", "mailinator.com", "10minutemail.com",
    "throwaway.com", "fakeinbox.com", "yopmail.com", "trashmail.com",
    "temp-mail.org", "getairmail.com", "dispostable.com",
})

PLACEHOLDER_EMAILS = frozenset({
    "email@example.com", "info@example.com", "test@example.com",
    "user@example.com", "admin@example.com",
})
PLACEHOLDER_DOMAINS = ("example.com", "domain.com", "test.com")

# logo@2x.png og venner fra srcset/filnavne
ASSET_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".css", ".js")


def _normalize(candidate: str) -> Optional[str]:
    candidate = unquote(candidate or "").strip().strip(".,;:").lower()
    if not candidate or candidate.endswith(ASSET_SUFFIXES):
        return None
    try:
        return validate_email(candidate, check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        log.debug(f"Invalid email filtered out: {candidate} - {e}")
        return None


def is_acceptable_email(email: str) -> bool:
    local, _, domain = email.rpartition("@")
    if not local or not domain:
        return False
    if domain in DISPOSABLE_DOMAINS:
        return False
    if email in PLACEHOLDER_EMAILS or domain in PLACEHOLDER_DOMAINS:
        return False
    return True


def extract_emails(content: str) -> Set[str]:
    """All plausible, non-disposable, non-placeholder email addresses in `content`, lowercased."""
    if not content:
        return set()

    candidates = []
    for pat in EMAIL_PATTERNS:
        for m in pat.finditer(content):
            candidates.append(m.group(1) if pat.groups else m.group(0))
    candidates.extend(m.group(1) for m in MAILTO_RE.finditer(content))

    emails: Set[str] = set()
    for raw in candidates:
        email = _normalize(raw)
        if email and is_acceptable_email(email):
            emails.add(email)
    return emails
