# src/contactscout/extraction/inference.py
"""
Client for the external name/role inference service (OpenRouter-compatible
chat completions). The service is asked for a JSON array of
{firstName, lastName, role} objects; the answer is parsed defensively since
models happily wrap it in prose or break the brackets.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from contactscout.config import DEFAULT_AI_API_URL, DEFAULT_AI_MODEL
from contactscout.models import Person

log = logging.getLogger(__name__)

EXCERPT_CHARS = 3000
MAX_TOKENS = 2000
TEMPERATURE = 0.1

ROLE_ACRONYMS = frozenset({"ceo", "cto", "cfo", "coo", "cmo", "cio", "vp", "svp", "evp", "hr", "it"})
ROLE_LOWER_WORDS = frozenset({"and", "of", "the", "for", "in", "at", "to"})

PROMPT_TEMPLATE = (
    "Analyze the following website text and extract ALL person names with their roles/job titles. "
    "Focus on executive team members, founders, employees, and any people mentioned.\n\n"
    "Website: {url}\n\n"
    "Text Content:\n{text}\n\n"
    "IMPORTANT: Return ONLY a valid JSON array with objects containing firstName, lastName, role. "
    'Example: [{{"firstName":"John","lastName":"Doe","role":"CEO"}}]\n'
    "If no people found, return empty array [].\n"
    "Extract as many people as you can find."
)


class InferenceError(Exception):
    """The inference call failed or returned something unusable."""


# ---------------------------------------------------------------------------
# Capitalization
# ---------------------------------------------------------------------------

def capitalize_name(name: Optional[str]) -> str:
    if not name:
        return ""
    parts = [p for p in re.split(r"\s+", name.strip()) if p]
    out = []
    for part in parts:
        # Bindestreg og apostrof bevares: "mary-jane" -> "Mary-Jane", "o'neil" -> "O'Neil"
        out.append(re.sub(r"[A-Za-zÀ-ÿ]+", lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), part))
    return " ".join(out)


def capitalize_role(role: Optional[str]) -> str:
    if not role:
        return ""
    words = [w for w in re.split(r"\s+", role.strip()) if w]
    out = []
    for i, w in enumerate(words):
        low = w.lower()
        if low.strip(",.&/") in ROLE_ACRONYMS:
            out.append(w.upper())
        elif i > 0 and low in ROLE_LOWER_WORDS:
            out.append(low)
        else:
            out.append(w[:1].upper() + w[1:].lower())
    return " ".join(out)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _field(entry: str, key: str) -> Optional[str]:
    for pat in (
        rf'"{key}"\s*:\s*"([^"]*)"',
        rf'"{key}"\s*:\s*\'([^\']*)\'',
        rf'"{key}"\s*:\s*([^,}}\s]+)',
    ):
        m = re.search(pat, entry)
        if m:
            value = m.group(1).strip()
            return None if value in ("null", "None") else value
    return None


def _person_from_mapping(obj: Dict[str, Any]) -> Optional[Person]:
    first = capitalize_name(str(obj.get("firstName") or obj.get("first_name") or ""))
    if not first:
        return None
    return Person(
        first_name=first,
        last_name=capitalize_name(str(obj.get("lastName") or obj.get("last_name") or "")),
        role=capitalize_role(str(obj.get("role") or obj.get("title") or "")),
    )


def parse_people_response(text: Optional[str]) -> List[Person]:
    """
    Pull people out of a model answer. Takes the span between the first '['
    and the last ']'; tries real JSON first, then per-object regex extraction.
    """
    if not text or "[" not in text or "]" not in text:
        return []
    start, end = text.index("["), text.rindex("]") + 1
    if end <= start:
        return []
    block = text[start:end]

    try:
        data = json.loads(block)
    except ValueError:
        data = None
    if isinstance(data, list):
        people = [_person_from_mapping(o) for o in data if isinstance(o, dict)]
        return [p for p in people if p is not None]

    people: List[Person] = []
    for entry in re.findall(r"\{[^{}]*\}", block):
        first = _field(entry, "firstName")
        if not first:
            continue
        people.append(Person(
            first_name=capitalize_name(first),
            last_name=capitalize_name(_field(entry, "lastName")),
            role=capitalize_role(_field(entry, "role")),
        ))
    return people


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class InferenceClient:
    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_AI_API_URL,
        model: str = DEFAULT_AI_MODEL,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_payload(self, text: str, url: str) -> Dict[str, Any]:
        prompt = PROMPT_TEMPLATE.format(url=url, text=text[:EXCERPT_CHARS])
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }

    async def extract_people(self, text: str, url: str) -> List[Person]:
        """Raises InferenceError on transport, status or shape problems."""
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            resp = await self._http().post(self.api_url, json=self.build_payload(text, url), headers=headers)
            resp.raise_for_status()
            body = resp.json()
            content = body["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            raise InferenceError(f"{type(e).__name__}: {e}") from e

        people = parse_people_response(content)
        log.debug(f"Inference returned {len(people)} people for {url}")
        return people
