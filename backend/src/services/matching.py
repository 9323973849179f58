"""Fuzzy restaurant-name matching against free-text hints (calendar titles, search box)."""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from typing import Callable, List, Optional, Sequence, Set, TypeVar

T = TypeVar("T")

LIKELY_MATCH_THRESHOLD = 0.5
CONTAINMENT_BONUS = 0.3

_DASHES = "–—−‐‑‒―"
_DASH_RE = re.compile(f"[{_DASHES}-]")
_SPACE_RE = re.compile(r"\s+")

CALENDAR_TITLE_PREFIXES = [
    re.compile(r"^(resevervation|reservation)\s+(at|for|@)\s+", re.I),
    re.compile(r"^booking\s+appointment\s+(at|for|@)\s+", re.I),
    re.compile(
        r"^(resy|opentable|yelp|tock|exploretock|sevenrooms|seated|bookatable|quandoo|the\s+fork|tablein)"
        r"\s*[:@]?\s*(reservation\s+(at|for|@)?\s*)?",
        re.I,
    ),
    re.compile(r"^via\s+(resy|opentable|tock|yelp)\s*[:@]?\s*", re.I),
    re.compile(
        r"^(dinner|lunch|brunch|breakfast|supper|tea|coffee|happy\s*hour|drinks|appetizers)\s+(at|@)\s+", re.I
    ),
    re.compile(r"^(dinner|lunch|brunch|breakfast|supper)\s+reservation\s+(at|for|@)?\s*", re.I),
    re.compile(r"^(date\s*night|anniversary|birthday|celebration|celebrate|party)\s+(at|@)\s+", re.I),
    re.compile(r"^(date\s*night|anniversary|birthday|celebration)\s+dinner\s+(at|@)?\s*", re.I),
    re.compile(r"^\d{1,2}:?\d{0,2}\s*(am|pm)?\s+(at|@)\s+", re.I),
    re.compile(r"^(eating\s+)?at\s+", re.I),
    re.compile(r"^(going\s+to|meet\s+at|meeting\s+at|dining\s+at)\s+", re.I),
    re.compile(r"^meal\s+(at|@)\s+", re.I),
]

# Dashes are folded to spaces before these run, so no separator is required.
CALENDAR_TITLE_SUFFIXES = [
    re.compile(r"\s+\d+\s*(people|guests|pax|persons?)$", re.I),
    re.compile(r"\s+table\s+for\s+\d+$", re.I),
    re.compile(r"\s+party\s+of\s+\d+$", re.I),
    re.compile(r"\s*\(\d+\s*(people|guests|pax|persons?)\)$", re.I),
    re.compile(r"\s*\((party\s+of|table\s+for|for)\s+\d+\)$", re.I),
    re.compile(r"\s+for\s+\d+$", re.I),
    re.compile(r"\s+(dinner|lunch|brunch|cena|breakfast|supper)$", re.I),
    re.compile(r"\s+(confirmed|pending|waitlist|wait\s*list)$", re.I),
    re.compile(r"\s*\((confirmed|pending|waitlist|wait\s*list)\)$", re.I),
    re.compile(r"\s+\d{1,2}:\d{2}\s*(am|pm)?$", re.I),
    re.compile(r"\s*@\s*\d{1,2}:\d{2}\s*(am|pm)?$", re.I),
    re.compile(r"\s+\d{1,2}/\d{1,2}(/\d{2,4})?$"),
    re.compile(r"\s+(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)\w*\s+\d{1,2}(st|nd|rd|th)?$", re.I),
    re.compile(r"\s+(conf|confirmation)\s*#?\s*\w+$", re.I),
    re.compile(r"\s*\((confirmation|reservation|booking)\s*:?\s*\w+\)$", re.I),
    re.compile(r"\s*#\s*\w{4,}$"),
]

INSIGNIFICANT_WORDS: Set[str] = {
    "the", "restaurant", "cafe", "bar", "bistro", "kitchen", "grill", "house", "room", "place",
    "a", "an", "and", "eatery", "dining", "tavern", "pub", "inn", "lounge", "spot", "joint",
    "diner", "at", "of", "in", "on", "for",
}


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


@lru_cache(maxsize=4096)
def similarity(a: str, b: str) -> float:
    """Score two names in [0, 1], higher is closer.

    Containment scores ``len(shorter) / len(longer) + 0.3`` and is not capped,
    so it can go above 1.0. Only relative order and the 0.5 threshold matter.
    """
    s1 = (a or "").casefold().strip()
    s2 = (b or "").casefold().strip()

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    if s1 in s2 or s2 in s1:
        shorter, longer = (s1, s2) if len(s1) < len(s2) else (s2, s1)
        return len(shorter) / len(longer) + CONTAINMENT_BONUS

    return 1.0 - levenshtein(s1, s2) / max(len(s1), len(s2))


def is_likely_match(score: float, threshold: float = LIKELY_MATCH_THRESHOLD) -> bool:
    return score > threshold


def sort_by_similarity(
    items: Sequence[T],
    hint: Optional[str],
    key: Callable[[T], str] = lambda item: item.name,  # type: ignore[attr-defined]
) -> List[T]:
    """Stable sort, most similar to ``hint`` first; input order is kept when there is no hint."""
    if not hint or not hint.strip():
        return list(items)
    return sorted(items, key=lambda item: -similarity(key(item), hint))


@lru_cache(maxsize=1024)
def clean_calendar_title(title: str) -> str:
    """Strip booking-service prefixes and party-size/time/status suffixes from an event title."""
    if not title:
        return ""
    cleaned = _SPACE_RE.sub(" ", _DASH_RE.sub(" ", title.strip()))
    previous = None
    while cleaned != previous:
        previous = cleaned
        for pattern in CALENDAR_TITLE_PREFIXES:
            cleaned = pattern.sub("", cleaned)
        for pattern in CALENDAR_TITLE_SUFFIXES:
            cleaned = pattern.sub("", cleaned)
        cleaned = cleaned.strip()
    return cleaned


@lru_cache(maxsize=4096)
def normalize_for_comparison(text: str) -> str:
    folded = unicodedata.normalize("NFKD", text or "")
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch)).lower()
    folded = re.sub(r"[‘’`´ʼʻ]", "'", folded)
    folded = _DASH_RE.sub(" ", folded)
    folded = re.sub(r"\s*&\s*", " and ", folded)
    folded = re.sub(r"'s\b", "s", folded)
    folded = folded.replace("'", "")
    folded = re.sub(r"[^\w\s]", " ", folded)
    return _SPACE_RE.sub(" ", folded).strip()


def _significant_words(text: str) -> List[str]:
    return [w for w in text.split(" ") if len(w) > 1 and w not in INSIGNIFICANT_WORDS]


@lru_cache(maxsize=4096)
def is_fuzzy_restaurant_match(a: str, b: str, min_length: int = 3) -> bool:
    norm_a = normalize_for_comparison(a)
    norm_b = normalize_for_comparison(b)

    if len(norm_a) < min_length or len(norm_b) < min_length:
        return False
    if norm_a == norm_b or norm_a in norm_b or norm_b in norm_a:
        return True

    words_a = _significant_words(norm_a)
    words_b = _significant_words(norm_b)
    if 0 < len(words_a) <= 2 and all(w in norm_b for w in words_a):
        return True
    if 0 < len(words_b) <= 2 and all(w in norm_a for w in words_b):
        return True
    return False
