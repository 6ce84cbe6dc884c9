# src/contactscout/extraction/phones.py
from __future__ import annotations

import logging
import re
from typing import List, Optional, Set, Tuple
from urllib.parse import urlsplit

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

log = logging.getLogger(__name__)

DEFAULT_REGION = "US"
FALLBACK_REGIONS = ("US", "GB", "CA", "AU", "IN", "DE", "FR", "BR", "CN")

# Rækkefølgen betyder noget: et span tages kun af det første mønster der rammer det
EXTENSION_RE = re.compile(r"\d{3}[\s\-.]?\d{3}[\s\-.]?\d{4}\s*(?:x|ext|extension)\.?\s*\d{2,5}", re.I)
TOLL_FREE_RE = re.compile(r"\b(?:800|888|877|866|855|844|833|822)[\s\-.]?\d{3}[\s\-.]?\d{4}\b")
NANP_RE = re.compile(r"(?<!\d)\(?\d{3}\)?[\s\-.]?\d{3}[\s\-.]?\d{4}(?!\d)")
INTERNATIONAL_RE = re.compile(r"(?<![\w+])\+?\d{1,3}[\s\-]?\d{1,4}[\s\-]?\d{1,4}[\s\-]?\d{1,4}(?!\d)")
PHONE_PATTERNS = (EXTENSION_RE, TOLL_FREE_RE, NANP_RE, INTERNATIONAL_RE)

EXTENSION_TAIL_RE = re.compile(r"\s*(?:x|ext|extension)\.?\s*\d{2,5}$", re.I)
TEL_RE = re.compile(r"tel:([^\"'\s>]+)", re.I)
DATA_PHONE_RE = re.compile(r"data-phone=\"([^\"]+)\"", re.I)
# "2019-2023" o.l. er årstal, ikke numre
YEAR_RANGE_RE = re.compile(r"(?:19|20)\d{2}\s*[-/]\s*(?:19|20)\d{2}")

FALSE_POSITIVES = frozenset({
    "1234567890", "0000000000", "1111111111", "9999999999",
    "0123456789", "1000000000", "2000000000",
})
_ASCENDING = "01234567890123456789"
_DESCENDING = "98765432109876543210"

# ccTLDs der mest bruges generisk og ikke siger noget om landet
GENERIC_CCTLDS = frozenset({"io", "co", "tv", "me", "ai", "ly", "fm", "am", "to", "cc", "ws", "gg", "app"})
_TLD_REGION_OVERRIDES = {"uk": "GB"}


def clean_phone(raw: str) -> str:
    """Digits and '+' only, leading zeros dropped."""
    cleaned = re.sub(r"[^\d+]", "", raw or "")
    return re.sub(r"^\+?0+", "", cleaned).strip()


def _digits(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def has_valid_length(phone: str) -> bool:
    return 7 <= len(_digits(phone)) <= 15


def is_placeholder(phone: str) -> bool:
    d = _digits(phone)
    if d in FALSE_POSITIVES or d.startswith(("123", "555")):
        return True
    if len(set(d)) == 1:
        return True
    return d in _ASCENDING or d in _DESCENDING


def region_for_url(url: str, default: str = DEFAULT_REGION) -> str:
    """Presumed phone region from the host's country-code TLD."""
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return default
    tld = host.rsplit(".", 1)[-1] if "." in host else ""
    if len(tld) != 2 or not tld.isalpha() or tld in GENERIC_CCTLDS:
        return default
    region = _TLD_REGION_OVERRIDES.get(tld, tld.upper())
    return region if region in phonenumbers.SUPPORTED_REGIONS else default


def normalize_phone(phone: str, region: str = DEFAULT_REGION) -> Optional[str]:
    """
    E.164 form of `phone`, trying `region` first and then the fallback regions.
    A number the parser rejects outright is kept as cleaned digits; a number
    that parses but is valid nowhere is dropped (None).
    """
    regions = [region] + [r for r in FALLBACK_REGIONS if r != region]
    try:
        for r in regions:
            number = phonenumbers.parse(phone, r)
            if phonenumbers.is_valid_number(number):
                return phonenumbers.format_number(number, PhoneNumberFormat.E164)
    except NumberParseException as e:
        log.debug(f"Unparseable phone {phone!r}: {e}")
        return clean_phone(phone)
    return None


def _pattern_candidates(text: str) -> List[str]:
    taken: List[Tuple[int, int]] = []
    found: List[str] = []
    for pat in PHONE_PATTERNS:
        for m in pat.finditer(text):
            start, end = m.span()
            if any(start < t_end and t_start < end for t_start, t_end in taken):
                continue
            taken.append((start, end))
            raw = m.group(0)
            if YEAR_RANGE_RE.fullmatch(raw.strip()):
                continue
            if pat is EXTENSION_RE:
                raw = EXTENSION_TAIL_RE.sub("", raw)
            phone = clean_phone(raw)
            if has_valid_length(phone) and not is_placeholder(phone):
                found.append(phone)
    return found


def _attribute_candidates(html: str) -> List[str]:
    found: List[str] = []
    for pat in (TEL_RE, DATA_PHONE_RE):
        for m in pat.finditer(html):
            phone = clean_phone(m.group(1))
            if has_valid_length(phone):
                found.append(phone)
    return found


def extract_phones(content: str, region: str = DEFAULT_REGION) -> Set[str]:
    if not content:
        return set()
    candidates = set(_pattern_candidates(content)) | set(_attribute_candidates(content))
    phones: Set[str] = set()
    for c in candidates:
        normalized = normalize_phone(c, region)
        if normalized:
            phones.add(normalized)
    return phones
