"""Resolve a location (plus an optional text hint) to ranked restaurant candidates.

Three sources feed the list: the static dataset, the nearby POI search (through
the single-flight cache) and, on demand, the remote places API. A source that
is missing, disabled or failing is left out; the caller always gets whatever
the remaining sources produced.
"""

from __future__ import annotations

import asyncio
from typing import AbstractSet, Dict, List, Optional, Sequence, Set

from loguru import logger

from config import Configuration
from models import AggregationResult, GeoPoint, MatchCandidate, RestaurantPoint, RestaurantSource
from services.matching import (
    clean_calendar_title,
    is_fuzzy_restaurant_match,
    is_likely_match,
    similarity,
    sort_by_similarity,
)
from services.nearby_cache import NearbySearchCache
from services.projection import normalize_point
from services.sources import DatasetSource, RemotePlacesSource
from utils import require_non_negative

DATASET = RestaurantSource.DATASET.value
NEARBY = RestaurantSource.ON_DEVICE_SEARCH.value
REMOTE = RestaurantSource.REMOTE_PLACES.value


def _matches_query(point: RestaurantPoint, query: str) -> bool:
    needle = query.lower()
    return any(needle in (text or "").lower() for text in (point.name, point.cuisine, point.address))


def merge_sources(
    dataset_points: Sequence[RestaurantPoint],
    other_points: Sequence[RestaurantPoint],
    visited_ids: AbstractSet[str],
) -> List[RestaurantPoint]:
    """Dataset points first, then the lower-trust sources in the order given.

    A lower-trust point is dropped when its id equals a dataset point the user
    has visited. Nothing is merged on coordinates or names: independent
    sources stay separate candidates.
    """
    visited_dataset_ids = {p.id for p in dataset_points if p.id in visited_ids}
    merged: List[RestaurantPoint] = []
    seen: Set[str] = set()
    for point in list(dataset_points) + list(other_points):
        if point.source is not RestaurantSource.DATASET and point.id in visited_dataset_ids:
            continue
        if point.id in seen:
            continue
        seen.add(point.id)
        merged.append(point.with_visited(point.id in visited_ids))
    return merged


def resolve_sort_term(hint: Optional[str], query: Optional[str]) -> Optional[str]:
    if hint and hint.strip():
        return clean_calendar_title(hint.strip()) or hint.strip()
    if query and query.strip():
        return query.strip()
    return None


def pick_auto_match(points: Sequence[RestaurantPoint], hint: Optional[str]) -> Optional[RestaurantPoint]:
    """Candidate whose name fuzzy-matches the cleaned hint; dataset entries first, then nearest."""
    title = clean_calendar_title(hint.strip()) if hint and hint.strip() else ""
    if not title:
        return None
    matches = [p for p in points if is_fuzzy_restaurant_match(p.name, title)]
    if not matches:
        return None
    return min(
        matches,
        key=lambda p: (
            p.source is not RestaurantSource.DATASET,
            p.distance_m if p.distance_m is not None else float("inf"),
        ),
    )


def rank_candidates(
    points: Sequence[RestaurantPoint],
    sort_term: Optional[str],
    threshold: float = 0.5,
) -> List[MatchCandidate]:
    candidates = []
    for point in points:
        score = similarity(point.name, sort_term) if sort_term else 0.0
        candidates.append(MatchCandidate(point=point, similarity=score, is_likely_match=is_likely_match(score, threshold)))
    return sort_by_similarity(candidates, sort_term)


class CandidateAggregator:
    def __init__(
        self,
        cfg: Configuration,
        dataset: Optional[DatasetSource] = None,
        nearby: Optional[NearbySearchCache] = None,
        remote: Optional[RemotePlacesSource] = None,
    ) -> None:
        self.cfg = cfg
        self.dataset = dataset
        self.nearby = nearby
        self.remote = remote

    def _query_dataset(self, point: GeoPoint, radius_m: float, result: AggregationResult) -> List[RestaurantPoint]:
        if self.dataset is None:
            result.sources_skipped.append(DATASET)
            return []
        try:
            return list(self.dataset.query_near(point, radius_m))
        except Exception as exc:
            logger.warning("dataset query failed, continuing without it: {}", exc)
            result.sources_failed.append(DATASET)
            return []

    async def _query_nearby(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        assert self.nearby is not None
        return await self.nearby.search(point.latitude, point.longitude, radius_m)

    async def _query_remote(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        assert self.remote is not None
        return list(await self.remote.search(point, radius_m))

    async def resolve(
        self,
        point: GeoPoint,
        *,
        hint: Optional[str] = None,
        query: Optional[str] = None,
        visited_ids: AbstractSet[str] = frozenset(),
        include_dataset: bool = True,
        include_nearby: bool = True,
        include_remote: bool = False,
        dataset_radius_m: Optional[float] = None,
        nearby_radius_m: Optional[float] = None,
        remote_radius_m: Optional[float] = None,
    ) -> AggregationResult:
        point = normalize_point(point.latitude, point.longitude)
        dataset_radius = require_non_negative(
            "dataset_radius_m", self.cfg.dataset_radius_m if dataset_radius_m is None else dataset_radius_m
        )
        nearby_radius = require_non_negative(
            "nearby_radius_m", self.cfg.nearby_radius_m if nearby_radius_m is None else nearby_radius_m
        )
        remote_radius = require_non_negative(
            "remote_radius_m", self.cfg.remote_radius_m if remote_radius_m is None else remote_radius_m
        )

        result = AggregationResult()
        dataset_points: List[RestaurantPoint] = []
        if include_dataset:
            dataset_points = self._query_dataset(point, dataset_radius, result)

        pending: Dict[str, "asyncio.Future[List[RestaurantPoint]]"] = {}
        if include_nearby:
            if self.nearby is not None and self.nearby.source.is_available():
                pending[NEARBY] = asyncio.ensure_future(self._query_nearby(point, nearby_radius))
            else:
                result.sources_skipped.append(NEARBY)
        if include_remote:
            if self.remote is not None and self.remote.is_enabled():
                pending[REMOTE] = asyncio.ensure_future(self._query_remote(point, remote_radius))
            else:
                result.sources_skipped.append(REMOTE)

        outcomes = await asyncio.gather(*pending.values(), return_exceptions=True)

        other_points: List[RestaurantPoint] = []
        result.source_counts[DATASET] = len(dataset_points)
        for name, outcome in zip(pending.keys(), outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning("{} search failed, continuing without it: {}", name, outcome)
                result.sources_failed.append(name)
                continue
            result.source_counts[name] = len(outcome)
            other_points.extend(outcome)

        merged = merge_sources(dataset_points, other_points, visited_ids)
        if query and query.strip():
            merged = [p for p in merged if _matches_query(p, query.strip())]

        result.sort_term = resolve_sort_term(hint, query)
        result.candidates = rank_candidates(merged, result.sort_term, self.cfg.likely_match_threshold)
        result.auto_match = pick_auto_match(merged, hint)
        logger.debug(
            "resolve lat={:.5f} lon={:.5f} counts={} failed={} skipped={} -> {} candidates",
            point.latitude,
            point.longitude,
            result.source_counts,
            result.sources_failed,
            result.sources_skipped,
            len(result.candidates),
        )
        return result
