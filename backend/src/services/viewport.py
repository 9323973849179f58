from __future__ import annotations

from typing import Any, Mapping, Optional

from models import CameraSnapshot, RestaurantPoint, ViewportBounds
from services.projection import (
    MAX_LATITUDE,
    lat_to_y,
    lon_to_x,
    mercator_scale,
    normalize_camera,
    normalize_longitude,
    x_to_lon,
    y_to_lat,
)
from utils import require_non_negative


def viewport_bounds(camera: CameraSnapshot, width: float, height: float) -> Optional[ViewportBounds]:
    """Geographic rectangle covered by a ``width`` x ``height`` pixel viewport.

    Returns None while the layout is unmeasured (either side is 0).
    """
    width = require_non_negative("width", width)
    height = require_non_negative("height", height)
    if not width or not height:
        return None

    camera = normalize_camera(camera)
    zoom = camera.zoom
    scale = mercator_scale(zoom)
    center_x = lon_to_x(camera.longitude, zoom)
    center_y = lat_to_y(camera.latitude, zoom)
    half_width = width / 2.0
    half_height = height / 2.0

    min_x = center_x - half_width
    max_x = center_x + half_width
    min_y = center_y - half_height
    max_y = center_y + half_height

    latitude_covers_world = height >= scale
    longitude_covers_world = width >= scale

    if latitude_covers_world:
        min_latitude, max_latitude = -MAX_LATITUDE, MAX_LATITUDE
    else:
        # y grows southwards, so the bottom edge is the minimum latitude.
        # Edges pushed past the top or bottom of the world pin to the clamp limit.
        min_latitude = -MAX_LATITUDE if max_y >= scale else y_to_lat(max(0.0, max_y), zoom)
        max_latitude = MAX_LATITUDE if min_y <= 0 else y_to_lat(min(scale, min_y), zoom)

    if longitude_covers_world:
        min_longitude, max_longitude = -180.0, 180.0
    else:
        min_longitude = x_to_lon(min_x, zoom)
        max_longitude = x_to_lon(max_x, zoom)

    return ViewportBounds(
        min_latitude=min(min_latitude, max_latitude),
        max_latitude=max(min_latitude, max_latitude),
        min_longitude=min_longitude,
        max_longitude=max_longitude,
        wraps_date_line=not longitude_covers_world and min_longitude > max_longitude,
    )


def contains(bounds: ViewportBounds, latitude: float, longitude: float) -> bool:
    latitude = max(-MAX_LATITUDE, min(MAX_LATITUDE, latitude))
    if latitude < bounds.min_latitude or latitude > bounds.max_latitude:
        return False
    if not -180.0 < longitude <= 180.0:
        longitude = normalize_longitude(longitude)
    if not bounds.wraps_date_line:
        return bounds.min_longitude <= longitude <= bounds.max_longitude
    return longitude >= bounds.min_longitude or longitude <= bounds.max_longitude


def is_in_bounds(point: RestaurantPoint, bounds: ViewportBounds) -> bool:
    return contains(bounds, point.latitude, point.longitude)


def normalize_camera_event(event: Mapping[str, Any], fallback: CameraSnapshot) -> CameraSnapshot:
    """Fill the gaps of a partial camera-move event from ``fallback`` and normalize.

    Map widgets report ``{"coordinates": {"latitude", "longitude"}, "zoom"}`` with
    any of the fields possibly missing mid-gesture.
    """
    coordinates = event.get("coordinates") or {}
    latitude = coordinates.get("latitude")
    longitude = coordinates.get("longitude")
    zoom = event.get("zoom")

    return normalize_camera(
        CameraSnapshot(
            latitude=fallback.latitude if latitude is None else latitude,
            longitude=fallback.longitude if longitude is None else longitude,
            zoom=fallback.zoom if zoom is None else zoom,
        )
    )
