"""Spherical Web-Mercator transforms.

Pixel space is the usual slippy-map square: ``x`` grows eastwards from the
antimeridian, ``y`` grows southwards from the top edge, and both span
``[0, mercator_scale(zoom)]``. Every other module goes through these helpers
instead of repeating the formulas.
"""

from __future__ import annotations

import math

from errors import InvalidInputError
from models import CameraSnapshot, GeoPoint
from utils import require_finite

TILE_SIZE = 256.0
MAX_LATITUDE = 85.05112878


def mercator_scale(zoom: float) -> float:
    return TILE_SIZE * math.pow(2.0, max(0.0, require_finite("zoom", zoom)))


def clamp_latitude(latitude: float) -> float:
    latitude = require_finite("latitude", latitude)
    return max(-MAX_LATITUDE, min(MAX_LATITUDE, latitude))


def normalize_longitude(longitude: float) -> float:
    """Map any longitude into (-180, 180]; -180 itself becomes 180."""
    longitude = require_finite("longitude", longitude)
    normalized = ((longitude + 180.0) % 360.0) - 180.0
    if normalized <= -180.0:
        normalized = 180.0
    return normalized


def lon_to_x(longitude: float, zoom: float) -> float:
    scale = mercator_scale(zoom)
    return ((normalize_longitude(longitude) + 180.0) / 360.0) * scale


def lat_to_y(latitude: float, zoom: float) -> float:
    scale = mercator_scale(zoom)
    sin = math.sin(math.radians(clamp_latitude(latitude)))
    y = 0.5 - math.log((1 + sin) / (1 - sin)) / (4 * math.pi)
    return y * scale


def x_to_lon(pixel_x: float, zoom: float) -> float:
    scale = mercator_scale(zoom)
    return normalize_longitude((require_finite("pixel_x", pixel_x) / scale) * 360.0 - 180.0)


def y_to_lat(pixel_y: float, zoom: float) -> float:
    scale = mercator_scale(zoom)
    n = math.pi - (2 * math.pi * require_finite("pixel_y", pixel_y)) / scale
    return clamp_latitude(math.degrees(math.atan(math.sinh(n))))


def normalize_point(latitude: float, longitude: float) -> GeoPoint:
    """Validate a raw coordinate pair and put its longitude in canonical form."""
    latitude = require_finite("latitude", latitude)
    if not -90.0 <= latitude <= 90.0:
        raise InvalidInputError(f"latitude must be within [-90, 90], got {latitude!r}")
    return GeoPoint(latitude=latitude, longitude=normalize_longitude(longitude))


def normalize_camera(camera: CameraSnapshot) -> CameraSnapshot:
    return CameraSnapshot(
        latitude=clamp_latitude(camera.latitude),
        longitude=normalize_longitude(camera.longitude),
        zoom=max(0.0, require_finite("zoom", camera.zoom)),
    )
