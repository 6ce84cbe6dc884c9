# src/contactscout/extraction/pipeline.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from bs4 import BeautifulSoup

from contactscout.extraction.emails import extract_emails
from contactscout.extraction.people import PersonExtractor
from contactscout.extraction.phones import extract_phones, region_for_url
from contactscout.extraction.social_links import (extract_facebook_profiles, extract_github_profiles,
                                                  extract_linkedin_profiles)
from contactscout.models import CrawlResult, CrawlStatus, Person

log = logging.getLogger(__name__)

NOTE_NOTHING = "No contact info found"
NOTE_FORMS = "No contact info found - page has forms, might require interaction"
NOTE_JS = "No contact info found - page might be JavaScript-heavy"


def _guarded(name: str, fn: Callable[[], Set[str]], url: str) -> Set[str]:
    try:
        return set(fn())
    except Exception as e:
        log.warning(f"{name} extraction failed for {url}: {e}", exc_info=log.isEnabledFor(logging.DEBUG))
        return set()


def compose_notes(
    content: str,
    emails: Set[str],
    phones: Set[str],
    linkedin: Set[str],
    github: Set[str],
    facebook: Set[str],
    people: List[Person],
) -> str:
    parts = []
    if emails:
        parts.append(f"{len(emails)} email(s)")
    if phones:
        parts.append(f"{len(phones)} phone(s)")
    if linkedin:
        parts.append(f"{len(linkedin)} LinkedIn profile(s)")
    if github:
        parts.append(f"{len(github)} GitHub profile(s)")
    if facebook:
        parts.append(f"{len(facebook)} Facebook profile(s)")
    if people:
        parts.append(f"{len(people)} person(s) identified")
    if parts:
        return "Found: " + ", ".join(parts)

    soup = BeautifulSoup(content or "", "lxml")
    if soup.find("form") is not None:
        return NOTE_FORMS
    for tag in soup(("script", "style")):
        tag.decompose()
    if "javascript" in soup.get_text(" ").lower():
        return NOTE_JS
    return NOTE_NOTHING


class ExtractionPipeline:
    """Runs every contact extractor and the person extractor over one page and builds its CrawlResult."""

    def __init__(
        self,
        person_extractor: Optional[PersonExtractor] = None,
        extract_people: bool = True,
        extract_social: bool = True,
        extract_facebook: bool = True,
        default_region: str = "US",
    ):
        self.person_extractor = person_extractor
        self.extract_people = extract_people and person_extractor is not None
        self.extract_social = extract_social
        self.extract_facebook = extract_facebook
        self.default_region = default_region

    def extract_contacts(self, url: str, content: str) -> Dict[str, Set[str]]:
        region = region_for_url(url, self.default_region)
        found = {
            "emails": _guarded("email", lambda: extract_emails(content), url),
            "phones": _guarded("phone", lambda: extract_phones(content, region), url),
            "linkedin_profiles": set(),
            "github_profiles": set(),
            "facebook_profiles": set(),
        }
        if self.extract_social:
            found["linkedin_profiles"] = _guarded("LinkedIn", lambda: extract_linkedin_profiles(content), url)
            found["github_profiles"] = _guarded("GitHub", lambda: extract_github_profiles(content), url)
        if self.extract_facebook:
            found["facebook_profiles"] = _guarded("Facebook", lambda: extract_facebook_profiles(content), url)
        return found

    async def _people(self, url: str, content: str) -> List[Person]:
        if not self.extract_people:
            return []
        try:
            return await self.person_extractor.extract_people(content, url)
        except Exception as e:
            log.warning(f"Person extraction failed for {url}: {e}", exc_info=log.isEnabledFor(logging.DEBUG))
            return []

    async def process(self, url: str, content: str) -> CrawlResult:
        contacts = await asyncio.to_thread(self.extract_contacts, url, content)
        people = await self._people(url, content)
        notes = await asyncio.to_thread(
            compose_notes,
            content,
            contacts["emails"],
            contacts["phones"],
            contacts["linkedin_profiles"],
            contacts["github_profiles"],
            contacts["facebook_profiles"],
            people,
        )
        return CrawlResult(
            url=url,
            status=CrawlStatus.SUCCESS,
            http_status=200,
            people=tuple(people),
            notes=notes,
            **contacts,
        )
