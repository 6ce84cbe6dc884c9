# src/contactscout/extraction/social_links.py
from __future__ import annotations

import logging
import re
from typing import Optional, Set
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup

log = logging.getLogger(__name__)

LINKEDIN_RE = re.compile(r"https?://(?:[a-z]{2,3}\.)?linkedin\.com/in/[^\"'?#\s<>()]+", re.I)
GITHUB_RE = re.compile(r"https?://(?:www\.)?github\.com/[^\"'?#\s<>()]+", re.I)
FACEBOOK_PATTERNS = (
    re.compile(r"https?://(?:www\.)?facebook\.com/[a-zA-Z0-9.]+(?:/)?", re.I),
    re.compile(r"https?://(?:www\.)?fb\.com/[a-zA-Z0-9.]+(?:/)?", re.I),
    re.compile(r"https?://(?:www\.)?facebook\.com/profile\.php\?id=\d+", re.I),
    re.compile(r"https?://(?:web\.)?facebook\.com/[a-zA-Z0-9.]+(?:/)?", re.I),
    re.compile(r"https?://(?:m\.)?facebook\.com/[a-zA-Z0-9.]+(?:/)?", re.I),
)

# Sider på github.com der ikke er profiler/repos
GITHUB_SITE_PATHS = frozenset({
    "features", "pricing", "login", "join", "signup", "about", "contact", "enterprise",
    "marketplace", "explore", "topics", "trending", "sponsors", "settings", "orgs",
    "site", "security", "customer-stories", "readme", "collections", "events",
})

FACEBOOK_COMMON_PAGES = frozenset({
    "home", "login", "signup", "about", "help", "policies",
    "legal", "terms", "privacy", "careers", "business",
})
FACEBOOK_EXCLUDED_SECTIONS = frozenset({"pages", "groups", "events", "hashtag"})
# Pixel, share-knapper og andre endpoints der ikke er profiler
FACEBOOK_ENDPOINTS = frozenset({
    "tr", "sharer", "sharer.php", "share", "share.php", "plugins", "dialog", "watch",
    "marketplace", "gaming", "l.php", "login.php", "photo.php", "permalink.php", "story.php",
})
FACEBOOK_HOSTS = ("facebook.com", "fb.com")
PROFILE_INDICATORS = ("profile", "timeline", "wall", "friend", "follow", "like")
_NAME_TEXT_RE = re.compile(r"[a-z]+ [a-z]+")


def _strip_url(url: str) -> str:
    return re.split(r"[?#]", url, maxsplit=1)[0].rstrip("/")


# ----------------------------------------------------------------- LinkedIn

def extract_linkedin_profiles(content: str) -> Set[str]:
    if not content:
        return set()
    return {u for u in (_strip_url(m.group(0)) for m in LINKEDIN_RE.finditer(content)) if not u.endswith("/in")}


# ----------------------------------------------------------------- GitHub

def extract_github_profiles(content: str) -> Set[str]:
    if not content:
        return set()
    urls: Set[str] = set()
    for m in GITHUB_RE.finditer(content):
        p = urlsplit(_strip_url(m.group(0)))
        # kun owner[/repo]; blob/tree/issues-stier skæres væk
        parts = [s for s in p.path.split("/") if s][:2]
        if parts and parts[0].lower() not in GITHUB_SITE_PATHS:
            urls.add(f"{p.scheme}://{p.netloc}/" + "/".join(parts))
    return urls


# ----------------------------------------------------------------- Facebook

def normalize_facebook_url(url: str) -> str:
    """Drop query, fragment and trailing slash; keep the id of profile.php links."""
    if not url:
        return ""
    p = urlsplit(url)
    if p.path.lower().rstrip("/").endswith("profile.php"):
        ids = parse_qs(p.query).get("id")
        if ids and ids[0].isdigit():
            return f"{p.scheme}://{p.netloc}/profile.php?id={ids[0]}"
    return _strip_url(url)


def is_facebook_profile_url(url: str) -> bool:
    if not url:
        return False
    p = urlsplit(url.lower())
    host = p.hostname or ""
    if not any(host == h or host.endswith("." + h) for h in FACEBOOK_HOSTS):
        return False
    path = p.path.lstrip("/").rstrip("/")
    if not path:
        return False
    if path == "profile.php":
        return "id=" in p.query
    first = path.split("/", 1)[0]
    if first in FACEBOOK_COMMON_PAGES or first in FACEBOOK_EXCLUDED_SECTIONS or first in FACEBOOK_ENDPOINTS:
        return False
    # En profil har kun ét segment efter domænet
    if "/" in path and "/posts/" not in path and "/photos/" not in path:
        return False
    return True


def _looks_like_profile_text(text: Optional[str]) -> bool:
    text = (text or "").strip().lower()
    if not text:
        return False
    if _NAME_TEXT_RE.fullmatch(text):
        return True
    return any(ind in text for ind in PROFILE_INDICATORS)


def _facebook_from_anchors(content: str) -> Set[str]:
    urls: Set[str] = set()
    soup = BeautifulSoup(content, "html.parser")
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not re.match(r"https?://(?:www\.)?facebook\.com/", href, re.I):
            continue
        url = normalize_facebook_url(href)
        if _looks_like_profile_text(a.get_text(" ", strip=True)) and is_facebook_profile_url(url):
            urls.add(url)
    return urls


def extract_facebook_profiles(content: str) -> Set[str]:
    if not content:
        return set()
    urls: Set[str] = set()
    for pat in FACEBOOK_PATTERNS:
        for m in pat.finditer(content):
            url = normalize_facebook_url(m.group(0))
            if is_facebook_profile_url(url):
                urls.add(url)
    if "<a" in content.lower():
        urls |= _facebook_from_anchors(content)
    return urls
