"""Viewport culling and ranking of restaurant points for the map view."""

from __future__ import annotations

from enum import Enum
from typing import AbstractSet, Callable, Iterable, List, Optional, Tuple

from loguru import logger

from errors import InvalidInputError
from models import CameraSnapshot, RestaurantPoint, ViewportBounds, ViewportQueryResult
from services.awards import award_matches_filter, priority
from services.projection import lat_to_y, lon_to_x, mercator_scale, normalize_camera
from services.viewport import is_in_bounds

MAX_RESULTS = 500


class RankingPolicy(str, Enum):
    CENTER_DISTANCE = "center_distance"  # nearest to the camera center first
    IMPORTANCE = "importance"  # best award first, visited before unvisited


def center_distance_score(point: RestaurantPoint, camera: CameraSnapshot) -> float:
    """Squared pixel distance from the camera center at the camera zoom.

    The horizontal leg takes the shorter way round the world so that points just
    across the antimeridian count as close.
    """
    zoom = camera.zoom
    scale = mercator_scale(zoom)
    dx = abs(lon_to_x(point.longitude, zoom) - lon_to_x(camera.longitude, zoom))
    dx = min(dx, scale - dx)
    dy = lat_to_y(point.latitude, zoom) - lat_to_y(camera.latitude, zoom)
    return dx * dx + dy * dy


def _passes_year(point: RestaurantPoint, min_award_year: Optional[int]) -> bool:
    if min_award_year is None or point.latest_award_year is None:
        return True
    return point.latest_award_year >= min_award_year


def _sort_key(
    policy: RankingPolicy,
    visited_ids: AbstractSet[str],
) -> Callable[[Tuple[float, RestaurantPoint]], tuple]:
    if policy is RankingPolicy.CENTER_DISTANCE:
        return lambda item: (item[0], item[1].name, item[1].id)

    def importance(item: Tuple[float, RestaurantPoint]) -> tuple:
        distance, point = item
        return (-priority(point.award), point.id not in visited_ids, point.name, distance, point.id)

    return importance


def query_viewport(
    points: Iterable[RestaurantPoint],
    bounds: Optional[ViewportBounds],
    camera: CameraSnapshot,
    visited_ids: AbstractSet[str] = frozenset(),
    *,
    policy: RankingPolicy,
    max_results: int = MAX_RESULTS,
    award_filter: Optional[str] = None,
    min_award_year: Optional[int] = None,
) -> ViewportQueryResult:
    """Cull ``points`` to ``bounds``, rank them under ``policy`` and cap the list.

    ``total_matching_in_viewport`` is the count before the cap. The sort is
    stable and fully keyed, so identical inputs always give identical output.
    """
    if max_results < 1:
        raise InvalidInputError(f"max_results must be >= 1, got {max_results!r}")
    if bounds is None:
        return ViewportQueryResult()

    camera = normalize_camera(camera)

    scored: List[Tuple[float, RestaurantPoint]] = []
    for point in points:
        if not is_in_bounds(point, bounds):
            continue
        if not award_matches_filter(point.award, award_filter):
            continue
        if not _passes_year(point, min_award_year):
            continue
        scored.append((center_distance_score(point, camera), point))

    scored.sort(key=_sort_key(policy, visited_ids))

    visible = [point.with_visited(point.id in visited_ids) for _, point in scored[:max_results]]
    visited_count = sum(1 for point in visible if point.visited)

    logger.debug(
        "viewport query policy={} in_view={} returned={} visited={}",
        policy.value,
        len(scored),
        len(visible),
        visited_count,
    )
    return ViewportQueryResult(
        points_in_view=visible,
        total_matching_in_viewport=len(scored),
        visible_visited_count=visited_count,
    )
