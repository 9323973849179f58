"""Michelin award parsing, priority scoring and quick filters.

Award text in the dataset is free-form ("3 Stars", "Three Stars, Green Star",
"Selected Restaurants", ...). ``parse_award`` is the only place that reads the
raw string; everything downstream works on ``ParsedAward``.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple

from models import AwardTier, ParsedAward, RestaurantPoint

TIER_PRIORITY: Dict[AwardTier, int] = {
    AwardTier.THREE_STARS: 300,
    AwardTier.TWO_STARS: 200,
    AwardTier.ONE_STAR: 100,
    AwardTier.BIB_GOURMAND: 60,
    AwardTier.SELECTED: 30,
    AwardTier.NONE: 0,
}
GREEN_STAR_BONUS = 10

STAR_TIERS = {AwardTier.THREE_STARS, AwardTier.TWO_STARS, AwardTier.ONE_STAR}

# Checked in order; the first hit decides the tier.
_TIER_PATTERNS: Tuple[Tuple[AwardTier, "re.Pattern[str]"], ...] = (
    (AwardTier.THREE_STARS, re.compile(r"\b(?:3|three)\s*(?:michelin\s+)?stars?\b")),
    (AwardTier.TWO_STARS, re.compile(r"\b(?:2|two)\s*(?:michelin\s+)?stars?\b")),
    (AwardTier.ONE_STAR, re.compile(r"\b(?:1|one)\s*(?:michelin\s+)?stars?\b")),
    (AwardTier.BIB_GOURMAND, re.compile(r"bib\s+gourmand")),
    (AwardTier.SELECTED, re.compile(r"selected")),
)

ALL_FILTER = "all"
STARS_FILTER = "stars"
BIB_FILTER = "bib"
EXACT_FILTER_PREFIX = "award:"


@lru_cache(maxsize=1024)
def _parse(label: str) -> ParsedAward:
    lower = label.lower()
    tier = AwardTier.NONE
    for candidate, pattern in _TIER_PATTERNS:
        if pattern.search(lower):
            tier = candidate
            break
    return ParsedAward(tier=tier, green_star="green star" in lower, label=label)


def parse_award(raw: Optional[str]) -> ParsedAward:
    return _parse((raw or "").strip())


def priority(award: Optional[str]) -> int:
    """Ranking weight of an award string; unknown or empty text scores 0."""
    parsed = parse_award(award)
    score = TIER_PRIORITY[parsed.tier]
    if parsed.green_star:
        score += GREEN_STAR_BONUS
    return score


def has_stars(award: Optional[str]) -> bool:
    return parse_award(award).tier in STAR_TIERS


def is_bib_gourmand(award: Optional[str]) -> bool:
    return parse_award(award).tier is AwardTier.BIB_GOURMAND


def award_matches_filter(award: Optional[str], award_filter: Optional[str]) -> bool:
    if not award_filter or award_filter == ALL_FILTER:
        return True
    if award_filter == STARS_FILTER:
        return has_stars(award)
    if award_filter == BIB_FILTER:
        return is_bib_gourmand(award)
    if award_filter.startswith(EXACT_FILTER_PREFIX):
        return parse_award(award).label == award_filter[len(EXACT_FILTER_PREFIX):]
    # unknown filters do not hide anything
    return True


def format_award_label(label: str) -> str:
    return label.replace("Selected Restaurants", "Selected").replace(", Green Star", " + Green")


def award_filter_options(points: Iterable[RestaurantPoint]) -> List[Dict[str, object]]:
    """Quick filters (All / Stars / Bib Gourmand) followed by one option per exact award."""
    total = 0
    starred = 0
    bib = 0
    counts: Dict[str, int] = {}

    for point in points:
        total += 1
        parsed = parse_award(point.award)
        if not parsed.label:
            continue
        counts[parsed.label] = counts.get(parsed.label, 0) + 1
        if parsed.tier in STAR_TIERS:
            starred += 1
        elif parsed.tier is AwardTier.BIB_GOURMAND:
            bib += 1

    exact = sorted(counts.items(), key=lambda item: (-priority(item[0]), item[0]))
    options: List[Dict[str, object]] = [
        {"value": ALL_FILTER, "label": "All", "count": total},
        {"value": STARS_FILTER, "label": "Stars", "count": starred},
        {"value": BIB_FILTER, "label": "Bib Gourmand", "count": bib},
    ]
    options.extend(
        {"value": f"{EXACT_FILTER_PREFIX}{label}", "label": format_award_label(label), "count": count}
        for label, count in exact
    )
    return options
