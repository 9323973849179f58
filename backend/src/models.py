"""Data models for the restaurant resolver."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional


class RestaurantSource(str, Enum):
    DATASET = "dataset"
    ON_DEVICE_SEARCH = "on_device_search"
    REMOTE_PLACES = "remote_places"


class AwardTier(str, Enum):
    THREE_STARS = "three_stars"
    TWO_STARS = "two_stars"
    ONE_STAR = "one_star"
    BIB_GOURMAND = "bib_gourmand"
    SELECTED = "selected"
    NONE = "none"


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class CameraSnapshot:
    latitude: float
    longitude: float
    zoom: float


@dataclass(frozen=True)
class ViewportBounds:
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float
    wraps_date_line: bool = False


@dataclass(frozen=True)
class RestaurantPoint:
    id: str
    name: str
    latitude: float
    longitude: float
    source: RestaurantSource = RestaurantSource.DATASET
    award: Optional[str] = None
    cuisine: Optional[str] = None
    address: Optional[str] = None
    visited: bool = False
    latest_award_year: Optional[int] = None
    distance_m: Optional[float] = None  # from the query point, when known

    def with_visited(self, visited: bool) -> "RestaurantPoint":
        if visited == self.visited:
            return self
        return replace(self, visited=visited)


@dataclass(frozen=True)
class ParsedAward:
    tier: AwardTier
    green_star: bool
    label: str  # trimmed raw text, "" when absent


@dataclass
class MatchCandidate:
    point: RestaurantPoint
    similarity: float = 0.0
    is_likely_match: bool = False

    @property
    def name(self) -> str:
        return self.point.name


@dataclass
class ViewportQueryResult:
    points_in_view: List[RestaurantPoint] = field(default_factory=list)
    total_matching_in_viewport: int = 0
    visible_visited_count: int = 0

    @property
    def visible_unvisited_count(self) -> int:
        return len(self.points_in_view) - self.visible_visited_count


@dataclass
class AggregationResult:
    candidates: List[MatchCandidate] = field(default_factory=list)
    source_counts: Dict[str, int] = field(default_factory=dict)
    sources_failed: List[str] = field(default_factory=list)
    sources_skipped: List[str] = field(default_factory=list)
    sort_term: Optional[str] = None
    auto_match: Optional[RestaurantPoint] = None  # what a calendar hint most plausibly names
