from __future__ import annotations

import csv
import json
import math
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from models import GeoPoint, RestaurantPoint, RestaurantSource
from services.projection import normalize_point
from utils import haversine_m, require_non_negative

ID_PREFIX = "michelin-"
_TRUTHY = {"1", "true", "yes", "y", "t"}


def _field(row: Mapping[str, Any], *names: str) -> Any:
    lowered = {str(k).strip().lower(): v for k, v in row.items()}
    for name in names:
        value = lowered.get(name)
        if value not in (None, ""):
            return value
    return None


def _to_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_year(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def point_from_row(row: Mapping[str, Any], index: int) -> Optional[RestaurantPoint]:
    """Build a dataset point from a loosely-typed record; None for unusable rows."""
    lat = _to_float(_field(row, "latitude", "lat"))
    lon = _to_float(_field(row, "longitude", "lon", "lng"))
    name = _field(row, "name")
    if lat is None or lon is None or not name:
        return None
    # (0, 0) is what broken geocodes look like in the guide export
    if lat == 0 and lon == 0:
        return None
    if not -90.0 <= lat <= 90.0:
        return None

    award = str(_field(row, "award", "distinction", "latest_distinction") or "").strip()
    green = str(_field(row, "greenstar", "green_star", "has_green_star") or "").strip().lower()
    if green in _TRUTHY and "green star" not in award.lower():
        award = f"{award}, Green Star" if award else "Green Star"

    raw_id = _field(row, "id")
    return RestaurantPoint(
        id=f"{ID_PREFIX}{raw_id if raw_id is not None else index}",
        name=str(name).strip(),
        latitude=lat,
        longitude=normalize_point(lat, lon).longitude,
        source=RestaurantSource.DATASET,
        award=award or None,
        cuisine=_field(row, "cuisine"),
        address=_field(row, "address"),
        latest_award_year=_to_year(_field(row, "latestawardyear", "latest_award_year", "latest_year", "year")),
    )


class InMemoryDataset:
    """Restaurant dataset held in memory; answers full scans and radius queries."""

    def __init__(self, points: Iterable[RestaurantPoint]) -> None:
        self._points: List[RestaurantPoint] = list(points)

    def __len__(self) -> int:
        return len(self._points)

    def all(self) -> List[RestaurantPoint]:
        return list(self._points)

    def query_near(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        """Points within ``radius_m`` of ``point``, nearest first, with ``distance_m`` set."""
        center = normalize_point(point.latitude, point.longitude)
        radius_m = require_non_negative("radius_m", radius_m)

        # Cheap degree box first; longitude delta is taken the short way round.
        radius_km = radius_m / 1000.0
        dlat = radius_km / 110.574
        cos_lat = math.cos(math.radians(center.latitude))
        dlon = 180.0 if cos_lat < 1e-6 else radius_km / (111.320 * cos_lat)

        hits: List[RestaurantPoint] = []
        for candidate in self._points:
            if abs(candidate.latitude - center.latitude) > dlat:
                continue
            delta_lon = abs(((candidate.longitude - center.longitude + 540.0) % 360.0) - 180.0)
            if delta_lon > dlon:
                continue
            distance = haversine_m(center.latitude, center.longitude, candidate.latitude, candidate.longitude)
            if distance <= radius_m:
                hits.append(replace(candidate, distance_m=distance))

        hits.sort(key=lambda p: (p.distance_m, p.name))
        return hits

    @classmethod
    def from_records(cls, rows: Iterable[Mapping[str, Any]]) -> "InMemoryDataset":
        points: List[RestaurantPoint] = []
        skipped = 0
        for index, row in enumerate(rows):
            point = point_from_row(row, index)
            if point is None:
                skipped += 1
                continue
            points.append(point)
        if skipped:
            logger.debug("dataset: skipped {} rows without usable coordinates", skipped)
        return cls(points)

    @classmethod
    def from_csv(cls, path: str | Path) -> "InMemoryDataset":
        with open(path, newline="", encoding="utf-8") as fh:
            dataset = cls.from_records(csv.DictReader(fh))
        logger.info("Loaded {} restaurants from {}", len(dataset), path)
        return dataset

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryDataset":
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        rows: List[Dict[str, Any]] = payload.get("restaurants", []) if isinstance(payload, dict) else payload
        dataset = cls.from_records(rows)
        logger.info("Loaded {} restaurants from {}", len(dataset), path)
        return dataset

    @classmethod
    def from_path(cls, path: str | Path) -> "InMemoryDataset":
        if str(path).lower().endswith(".json"):
            return cls.from_json(path)
        return cls.from_csv(path)
