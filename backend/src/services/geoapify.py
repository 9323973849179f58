from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from config import Configuration
from errors import SourceFailedError, SourceUnavailableError
from models import GeoPoint, RestaurantPoint, RestaurantSource
from utils import haversine_m

RESTAURANT_CATEGORIES = "catering.restaurant"


class GeoapifyError(SourceFailedError):
    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message, source="geoapify", retryable=retryable)


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


def nearby_point_id(latitude: float, longitude: float, name: str) -> str:
    return f"nearby-{latitude:.6f}-{longitude:.6f}-{name.lower().strip()}"


class GeoapifyNearbySource:
    """Nearby restaurant POI search backed by the Geoapify Places API.

    Plays the part of the platform map search: unavailable without an API key.
    """

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.geoapify_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.policy = _RetryPolicy()

    def is_available(self) -> bool:
        return bool(self.cfg.geoapify_api_key)

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        params = {**params, "apiKey": self.cfg.geoapify_api_key}
        policy = self.policy
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.geoapify_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise GeoapifyError(f"request error: {exc}", retryable=True)

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}", retryable=True)

            if not resp.ok:
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}")

            try:
                return resp.json()
            except ValueError:
                raise GeoapifyError("invalid json response")

    def _parse_places(self, features: List[dict], center: GeoPoint) -> List[RestaurantPoint]:
        results: list[RestaurantPoint] = []
        for feat in features:
            props: Dict[str, Any] = feat.get("properties") or {}
            name = props.get("name")
            lon = props.get("lon")
            lat = props.get("lat")
            if lon is None or lat is None:
                geom = feat.get("geometry") or {}
                coords = geom.get("coordinates") or [None, None]
                if isinstance(coords, list) and len(coords) >= 2:
                    lon, lat = coords[0], coords[1]
            # unnamed POIs are useless in a restaurant picker
            if not name or lon is None or lat is None:
                continue

            address = props.get("formatted") or props.get("address_line2") or None
            catering = props.get("catering") or {}
            cuisine = catering.get("cuisine") if isinstance(catering, dict) else None
            lat, lon = float(lat), float(lon)
            results.append(
                RestaurantPoint(
                    id=nearby_point_id(lat, lon, str(name)),
                    name=str(name),
                    latitude=lat,
                    longitude=lon,
                    source=RestaurantSource.ON_DEVICE_SEARCH,
                    cuisine=(str(cuisine) if cuisine else None),
                    address=(str(address) if address else None),
                    distance_m=haversine_m(center.latitude, center.longitude, lat, lon),
                )
            )
        results.sort(key=lambda p: p.distance_m or 0.0)
        return results

    def places_circle(self, point: GeoPoint, radius_m: float, *, limit: Optional[int] = None) -> List[RestaurantPoint]:
        if not self.is_available():
            raise SourceUnavailableError("GEOAPIFY_API_KEY is not configured")
        radius_m = max(radius_m, 1.0)
        params = {
            "categories": RESTAURANT_CATEGORIES,
            "filter": f"circle:{point.longitude},{point.latitude},{radius_m:.0f}",
            "bias": f"proximity:{point.longitude},{point.latitude}",
            "limit": limit or self.cfg.geoapify_max_results,
        }
        payload = self._get("/v2/places", params)
        results = self._parse_places(payload.get("features") or [], point)
        logger.debug("geoapify circle r={}m -> {} places", int(radius_m), len(results))
        return results

    async def search(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        return await asyncio.to_thread(self.places_circle, point, radius_m)
