# src/contactscout/extraction/name_database.py
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

import pandas as pd

log = logging.getLogger(__name__)

NAME_PREFIXES = frozenset({"mr", "mrs", "ms", "dr", "prof"})
NAME_SUFFIXES = frozenset({"jr", "sr", "ii", "iii", "iv", "phd", "md"})
_NAME_RE = re.compile(r"[a-zA-Z\-']+")
_ROLE_RE = re.compile(r"[a-zA-Z\s\-&]+")

FALLBACK_FIRST_NAMES = (
    "John", "Jane", "Michael", "Sarah", "David", "Emily", "James", "Jessica",
    "Robert", "Jennifer", "William", "Elizabeth", "Richard", "Susan",
)
FALLBACK_LAST_NAMES = (
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Miller", "Davis", "Garcia",
    "Rodriguez", "Wilson", "Martinez", "Anderson", "Taylor", "Thomas",
)
FALLBACK_ROLES = (
    "CEO", "CTO", "CFO", "Manager", "Director", "President", "Founder", "Developer",
    "Designer", "Analyst", "Engineer", "Specialist", "Consultant",
)


def is_valid_name(name: Optional[str]) -> bool:
    if not name or not 2 <= len(name) <= 20:
        return False
    if name.lower() in NAME_PREFIXES or name.lower() in NAME_SUFFIXES:
        return False
    return bool(_NAME_RE.fullmatch(name))


def is_valid_role(role: Optional[str]) -> bool:
    return bool(role) and len(role) >= 2 and bool(_ROLE_RE.fullmatch(role))


def _cell(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


class NameDatabase:
    """
    Known first names, last names and roles. Lookups are case-insensitive;
    canonical spellings come back in insertion order. Read-only once loaded.
    """

    def __init__(self):
        self._first: Dict[str, List[str]] = {}
        self._last: Dict[str, List[str]] = {}
        self._roles: Set[str] = set()
        self.loaded = False
        self.source: Optional[str] = None

    # ------------------------------------------------------------- building

    @staticmethod
    def _add(table: Dict[str, List[str]], name: str) -> None:
        spellings = table.setdefault(name.lower(), [])
        if name not in spellings:
            spellings.append(name)

    def add_first_name(self, name: str) -> None:
        if is_valid_name(name):
            self._add(self._first, name)

    def add_last_name(self, name: str) -> None:
        if is_valid_name(name):
            self._add(self._last, name)

    def add_role(self, role: str) -> None:
        if is_valid_role(role):
            self._roles.add(role.strip().lower())

    def add_row(self, first: Optional[str], last: Optional[str], role: Optional[str], variations: Optional[str]) -> None:
        if first:
            self.add_first_name(first)
        if last:
            self.add_last_name(last)
        if role:
            self.add_role(role)
        for v in (variations or "").split(","):
            v = v.strip()
            if v:
                self.add_first_name(v)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable]) -> "NameDatabase":
        db = cls()
        for row in rows:
            cells = [_cell(v) for v in list(row)[:4]]
            cells += [None] * (4 - len(cells))
            db.add_row(*cells)
        db.loaded = True
        return db

    @classmethod
    def fallback(cls) -> "NameDatabase":
        db = cls()
        for n in FALLBACK_FIRST_NAMES:
            db.add_first_name(n)
        for n in FALLBACK_LAST_NAMES:
            db.add_last_name(n)
        for r in FALLBACK_ROLES:
            db.add_role(r)
        db.loaded = True
        db.source = "fallback"
        log.info("Fallback name database loaded")
        return db

    @classmethod
    def load(cls, path: Optional[Union[str, Path]]) -> "NameDatabase":
        """
        Load a spreadsheet (.xlsx/.xls) or CSV with a header row and columns:
        first name, last name, role, comma-separated first-name variations.
        Any failure falls back to the built-in list.
        """
        if not path:
            return cls.fallback()
        p = Path(path)
        try:
            if p.suffix.lower() in (".xlsx", ".xlsm", ".xls"):
                df = pd.read_excel(p, header=0, dtype=object)
            else:
                df = pd.read_csv(p, header=0, dtype=object, keep_default_na=False)
        except Exception as e:
            log.error(f"Failed to load name database {p}: {e}")
            return cls.fallback()

        db = cls.from_rows(df.itertuples(index=False, name=None))
        db.source = str(p)
        log.info(
            f"Name database loaded: {len(db._first)} first names, "
            f"{len(db._last)} last names, {len(db._roles)} roles"
        )
        return db

    # ------------------------------------------------------------- lookups

    def is_first_name(self, name: Optional[str]) -> bool:
        return bool(name) and name.strip().lower() in self._first

    def is_last_name(self, name: Optional[str]) -> bool:
        return bool(name) and name.strip().lower() in self._last

    def is_known_name(self, name: Optional[str]) -> bool:
        return self.is_first_name(name) or self.is_last_name(name)

    def canonical(self, name: str) -> str:
        key = (name or "").strip().lower()
        spellings = self._first.get(key) or self._last.get(key)
        return spellings[0] if spellings else name

    def is_role(self, role: Optional[str]) -> bool:
        return bool(role) and role.strip().lower() in self._roles

    @property
    def roles(self) -> Set[str]:
        return set(self._roles)

    def __len__(self) -> int:
        return len(self._first) + len(self._last)
