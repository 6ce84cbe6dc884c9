# src/contactscout/extraction/people.py
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup

from contactscout.extraction.inference import InferenceClient, capitalize_name, capitalize_role
from contactscout.extraction.name_database import NameDatabase
from contactscout.models import Person

log = logging.getLogger(__name__)

ROLE_WINDOW = 5
MIN_BLOCK_CHARS = 50
INFERENCE_MIN_TEXT_CHARS = 100
INFERENCE_MAX_FOUND = 2

NOISE_TAGS = ("script", "style", "nav", "footer", "header", "meta", "link", "noscript")
CONTENT_SELECTORS = (
    "div[class*='team']", "div[class*='about']", "div[class*='leadership']",
    "div[class*='executive']", "div[class*='staff']", "div[class*='employee']",
    "section[class*='team']", "section[class*='about']", "section[class*='leadership']",
    "main", "article", ".content", "#content", "body",
)


def _collapse_ws(s: Optional[str]) -> str:
    return " ".join((s or "").split())


def relevant_text(html: str) -> str:
    """Visible text from the parts of a page where people tend to be listed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    collected = ""
    for selector in CONTENT_SELECTORS:
        for el in soup.select(selector):
            text = _collapse_ws(el.get_text(" "))
            if len(text) > MIN_BLOCK_CHARS and text not in collected:
                collected += text + "\n\n"
    return collected


@dataclass(frozen=True)
class PageContext:
    url: str
    html: str
    text: str


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class PersonStrategy:
    name = "base"

    def should_run(self, found: Sequence[Person], page: PageContext) -> bool:
        return True

    async def extract(self, page: PageContext) -> List[Person]:
        raise NotImplementedError


class DatabaseStrategy(PersonStrategy):
    """Adjacent capitalized tokens that the name database knows, plus a nearby role."""

    name = "database"

    def __init__(self, database: NameDatabase):
        self.db = database

    def should_run(self, found, page) -> bool:
        return self.db is not None and self.db.loaded

    @staticmethod
    def _clean(word: str) -> str:
        return re.sub(r"[^a-zA-Z\-']", "", word)

    def _is_name_token(self, word: str, first: bool) -> bool:
        if len(word) < 2 or not word[0].isupper():
            return False
        return self.db.is_first_name(word) if first else self.db.is_known_name(word)

    def _role_near(self, words: List[str], idx: int) -> str:
        """Closest known role within the window; two-word roles win ties."""
        lo = max(0, idx - ROLE_WINDOW)
        hi = min(len(words), idx + 2 + ROLE_WINDOW)
        tokens = [(j, re.sub(r"[^a-zA-Z]", "", words[j]).lower()) for j in range(lo, hi) if j not in (idx, idx + 1)]

        def distance(j: int) -> int:
            return idx - j if j < idx else j - (idx + 1)

        found = []
        for (j, a), (k, b) in zip(tokens, tokens[1:]):
            if k == j + 1 and a and b and self.db.is_role(f"{a} {b}"):
                found.append((min(distance(j), distance(k)), 0, f"{a} {b}"))
        for j, t in tokens:
            if t and self.db.is_role(t):
                found.append((distance(j), 1, t))
        return capitalize_role(min(found)[2]) if found else ""

    def match(self, text: str) -> List[Person]:
        words = text.split()
        people: List[Person] = []
        seen = set()
        i = 0
        while i < len(words) - 1:
            cur, nxt = self._clean(words[i]), self._clean(words[i + 1])
            if self._is_name_token(cur, first=True) and self._is_name_token(nxt, first=False):
                p = Person(
                    first_name=self.db.canonical(cur),
                    last_name=self.db.canonical(nxt),
                    role=self._role_near(words, i),
                )
                if p.identity_key not in seen:
                    seen.add(p.identity_key)
                    people.append(p)
                i += 2
                continue
            i += 1
        return people

    async def extract(self, page: PageContext) -> List[Person]:
        return self.match(page.text)


class InferenceStrategy(PersonStrategy):
    name = "inference"

    def __init__(self, client: Optional[InferenceClient]):
        self.client = client

    def should_run(self, found, page) -> bool:
        return (
            self.client is not None
            and len(found) < INFERENCE_MAX_FOUND
            and len(page.text) > INFERENCE_MIN_TEXT_CHARS
        )

    async def extract(self, page: PageContext) -> List[Person]:
        return await self.client.extract_people(page.text, page.url)


# --- heuristics -------------------------------------------------------------

NON_NAME_WORDS = frozenset({
    "about", "contact", "our", "the", "meet", "team", "us", "we", "read", "more", "view",
    "profile", "company", "services", "home", "news", "blog", "careers", "privacy", "policy",
    "terms", "menu", "cookie", "cookies", "copyright", "all", "rights", "reserved", "learn",
    "email", "phone", "call", "follow", "join", "new", "york", "san", "los", "inc", "ltd", "llc",
    "chief", "executive", "officer", "director", "manager", "president", "founder", "head",
    "senior", "vice", "board", "sales", "marketing", "leadership", "staff", "customer", "support",
})

ROLE_PATTERN = (
    r"(?:Co-?\s*)?(?:(?:[A-Z][a-z]+|Sr\.)\s+){0,3}"
    r"(?:CEO|CTO|CFO|COO|CMO|CIO|VP|Founder|Director|Manager|President|Partner|Engineer|"
    r"Developer|Designer|Consultant|Analyst|Owner|Chairman|Officer|Specialist|Head)"
    r"(?:\s+of\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)?"
)
_NAME_WORD = r"[A-Z][a-z]+(?:[-'][A-Z][a-z]+)?"
NAME_THEN_ROLE_RE = re.compile(
    rf"\b(?P<first>{_NAME_WORD})\s+(?P<last>{_NAME_WORD})\s*(?:,|\||-|–|—)\s*(?P<role>{ROLE_PATTERN})\b"
)
ROLE_THEN_NAME_RE = re.compile(
    rf"\b(?P<role>{ROLE_PATTERN})\s*:\s*(?P<first>{_NAME_WORD})\s+(?P<last>{_NAME_WORD})\b"
)

CARD_SELECTORS = (
    "[class*='team-member']", "[class*='member']", "[class*='staff']",
    "[class*='person']", "[class*='profile']", "[class*='employee']",
)
CARD_NAME_SELECTORS = ("[class*='name']", "h2", "h3", "h4", "strong")
CARD_ROLE_SELECTORS = ("[class*='title']", "[class*='role']", "[class*='position']", "[class*='job']", "p", "span")


def is_plausible_name(s: Optional[str]) -> bool:
    """2-3 capitalized tokens, no digits/@, not shouting, not a UI or title word."""
    s = _collapse_ws(s)
    if not s or re.search(r"[@\d]", s) or s.upper() == s:
        return False
    tokens = s.split()
    if not 2 <= len(tokens) <= 3:
        return False
    for t in tokens:
        if not re.fullmatch(r"[A-ZÀ-Þ][A-Za-zÀ-ÿ'\-\.]*", t):
            return False
        if t.lower().strip(".") in NON_NAME_WORDS:
            return False
    return True


def _split_name(full: str) -> Person:
    tokens = _collapse_ws(full).split()
    return Person(first_name=capitalize_name(tokens[0]), last_name=capitalize_name(" ".join(tokens[1:])))


def _iter_jsonld(html: str) -> Iterable[dict]:
    for m in re.finditer(
        r'<script[^>]+type=["\']application/ld\+json["\'][^>]*>(.*?)</script>',
        html, flags=re.I | re.S,
    ):
        raw = m.group(1).strip()
        with contextlib.suppress(ValueError):
            block = json.loads(raw)
            stack = [block]
            while stack:
                item = stack.pop(0)
                if isinstance(item, list):
                    stack.extend(item)
                elif isinstance(item, dict):
                    yield item
                    for key in ("@graph", "employee", "employees", "founder", "founders", "member", "author"):
                        if key in item:
                            stack.append(item[key])


def people_from_jsonld(html: str) -> List[Person]:
    out: List[Person] = []
    for obj in _iter_jsonld(html):
        t = obj.get("@type")
        types = [str(x).lower() for x in t] if isinstance(t, list) else ([str(t).lower()] if t else [])
        if not any(x.endswith("person") for x in types):
            continue
        given, family = obj.get("givenName"), obj.get("familyName")
        if isinstance(given, str) and given.strip():
            p = Person(first_name=capitalize_name(given), last_name=capitalize_name(family if isinstance(family, str) else ""))
        elif is_plausible_name(obj.get("name") if isinstance(obj.get("name"), str) else None):
            p = _split_name(obj["name"])
        else:
            continue
        job = obj.get("jobTitle")
        email = obj.get("email")
        phone = obj.get("telephone")
        out.append(Person(
            first_name=p.first_name,
            last_name=p.last_name,
            role=capitalize_role(job) if isinstance(job, str) else "",
            email=email.replace("mailto:", "").strip().lower() if isinstance(email, str) and email.strip() else None,
            phone=phone.strip() if isinstance(phone, str) and phone.strip() else None,
        ))
    return out


def people_from_cards(html: str) -> List[Person]:
    soup = BeautifulSoup(html, "lxml")
    out: List[Person] = []
    for selector in CARD_SELECTORS:
        for card in soup.select(selector):
            name_el = next((el for sel in CARD_NAME_SELECTORS for el in card.select(sel)
                            if is_plausible_name(el.get_text(" ", strip=True))), None)
            if name_el is None:
                continue
            person = _split_name(name_el.get_text(" ", strip=True))
            role = ""
            for sel in CARD_ROLE_SELECTORS:
                for el in card.select(sel):
                    if el is name_el:
                        continue
                    txt = _collapse_ws(el.get_text(" "))
                    if txt and txt != _collapse_ws(name_el.get_text(" ")) and re.fullmatch(ROLE_PATTERN, txt, re.I):
                        role = capitalize_role(txt)
                        break
                if role:
                    break
            out.append(Person(first_name=person.first_name, last_name=person.last_name, role=role))
    return out


def people_from_text(text: str) -> List[Person]:
    out: List[Person] = []
    for rx in (NAME_THEN_ROLE_RE, ROLE_THEN_NAME_RE):
        for m in rx.finditer(text or ""):
            full = f"{m.group('first')} {m.group('last')}"
            if not is_plausible_name(full):
                continue
            out.append(Person(
                first_name=m.group("first"),
                last_name=m.group("last"),
                role=capitalize_role(m.group("role")),
            ))
    return out


class PatternStrategy(PersonStrategy):
    """Structured data, staff cards and 'Name, Title' text shapes."""

    name = "pattern"

    def match(self, page: PageContext) -> List[Person]:
        return people_from_jsonld(page.html) + people_from_cards(page.html) + people_from_text(page.text)

    async def extract(self, page: PageContext) -> List[Person]:
        return await asyncio.to_thread(self.match, page)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

def merge_people(found: List[Person], candidates: Iterable[Person]) -> List[Person]:
    """Append candidates whose identity key is new; earlier entries always win."""
    merged = list(found)
    seen = {p.identity_key for p in merged}
    for p in candidates:
        key = p.identity_key
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append(p)
    return merged


class PersonExtractor:
    def __init__(
        self,
        database: Optional[NameDatabase] = None,
        inference: Optional[InferenceClient] = None,
        strategies: Optional[Sequence[PersonStrategy]] = None,
    ):
        if strategies is None:
            strategies = []
            if database is not None:
                strategies.append(DatabaseStrategy(database))
            strategies.append(InferenceStrategy(inference))
            strategies.append(PatternStrategy())
        self.strategies = list(strategies)

    async def extract_people(self, content: str, url: str) -> List[Person]:
        if not content:
            return []
        text = await asyncio.to_thread(relevant_text, content)
        page = PageContext(url=url, html=content, text=text)

        people: List[Person] = []
        for strategy in self.strategies:
            if not strategy.should_run(people, page):
                continue
            try:
                found = await strategy.extract(page)
            except Exception as e:
                log.warning(f"Person strategy '{strategy.name}' failed for {url}: {e}")
                continue
            log.debug(f"{strategy.name}: {len(found)} candidate(s) on {url}")
            people = merge_people(people, found)

        return [p for p in people if p.first_name and p.first_name.strip()]
