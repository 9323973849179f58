"""Client for the Google Places nearby-search endpoint (the remote places source)."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from errors import SourceFailedError
from models import GeoPoint, RestaurantPoint, RestaurantSource
from utils import haversine_m

_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_OK_STATUSES = {"OK", "ZERO_RESULTS"}
_RETRYABLE_STATUSES = {"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"}


class GooglePlacesError(SourceFailedError):
    """Raised when the Places API returns a non-successful response."""

    def __init__(self, message: str, *, status: str, retryable: bool = False) -> None:
        super().__init__(message, source="google_places", retryable=retryable)
        self.status = status


class GooglePlacesSource:
    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = _BASE_URL,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.get(
                f"{self.base_url}/{endpoint}/json",
                params={**params, "key": self.api_key},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise GooglePlacesError(f"request timeout: {exc}", status="TIMEOUT", retryable=True)
        except requests.RequestException as exc:
            raise GooglePlacesError(f"request error: {exc}", status="NETWORK", retryable=True)

        if response.status_code >= 400:
            raise GooglePlacesError(
                f"HTTP error: {response.status_code}",
                status=f"HTTP_{response.status_code}",
                retryable=response.status_code >= 500,
            )
        try:
            payload = response.json()
        except ValueError:
            raise GooglePlacesError("invalid json response", status="INVALID_JSON")

        status = payload.get("status")
        if status not in _OK_STATUSES:
            logger.error("{} failed: status={}, error_message={}", endpoint, status, payload.get("error_message"))
            raise GooglePlacesError(
                payload.get("error_message") or f"API error: {status}",
                status=str(status),
                retryable=status in _RETRYABLE_STATUSES,
            )
        return payload

    def _to_points(self, results: List[Dict[str, Any]], center: GeoPoint) -> List[RestaurantPoint]:
        points: List[RestaurantPoint] = []
        for place in results:
            location = (place.get("geometry") or {}).get("location") or {}
            lat, lon = location.get("lat"), location.get("lng")
            if not place.get("place_id") or not place.get("name") or lat is None or lon is None:
                continue
            lat, lon = float(lat), float(lon)
            points.append(
                RestaurantPoint(
                    id=f"google-{place['place_id']}",
                    name=str(place["name"]),
                    latitude=lat,
                    longitude=lon,
                    source=RestaurantSource.REMOTE_PLACES,
                    address=place.get("vicinity") or place.get("formatted_address"),
                    distance_m=haversine_m(center.latitude, center.longitude, lat, lon),
                )
            )
        points.sort(key=lambda p: p.distance_m or 0.0)
        return points

    def nearby_search(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        """Restaurants around ``point``; an empty list when no API key is configured."""
        if not self.is_enabled():
            return []
        payload = self._get(
            "nearbysearch",
            {
                "location": f"{point.latitude},{point.longitude}",
                "radius": str(int(round(radius_m))),
                "type": "restaurant",
            },
        )
        return self._to_points(payload.get("results") or [], point)

    async def search(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        return await asyncio.to_thread(self.nearby_search, point, radius_m)
