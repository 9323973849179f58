from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


class Configuration(BaseModel):
    # Remote places (Google Places)
    google_places_api_key: Optional[str] = Field(default=None)
    google_places_base_url: str = Field(default="https://maps.googleapis.com/maps/api/place")
    google_places_timeout: int = Field(default=10)

    # Nearby POI search (Geoapify)
    geoapify_api_key: Optional[str] = Field(default=None)
    geoapify_base_url: str = Field(default="https://api.geoapify.com")
    geoapify_timeout: int = Field(default=15)
    geoapify_max_results: int = Field(default=20)

    # Static dataset
    dataset_path: Optional[str] = Field(default=None)

    # Per-source radii in meters
    dataset_radius_m: float = Field(default=500.0, ge=0)
    nearby_radius_m: float = Field(default=200.0, ge=0)
    remote_radius_m: float = Field(default=150.0, ge=0)

    # Viewport
    max_results_in_view: int = Field(default=500, ge=1)
    camera_debounce_ms: int = Field(default=120, ge=0)
    min_award_year: Optional[int] = Field(default=None)

    # Matching
    likely_match_threshold: float = Field(default=0.5)

    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "google_places_api_key": os.getenv("GOOGLE_PLACES_API_KEY"),
            "google_places_base_url": os.getenv("GOOGLE_PLACES_BASE_URL"),
            "google_places_timeout": os.getenv("GOOGLE_PLACES_TIMEOUT"),
            "geoapify_api_key": os.getenv("GEOAPIFY_API_KEY"),
            "geoapify_base_url": os.getenv("GEOAPIFY_BASE_URL"),
            "geoapify_timeout": os.getenv("GEOAPIFY_TIMEOUT"),
            "geoapify_max_results": os.getenv("GEOAPIFY_MAX_RESULTS"),
            "dataset_path": os.getenv("DATASET_PATH"),
            "dataset_radius_m": os.getenv("DATASET_RADIUS_M"),
            "nearby_radius_m": os.getenv("NEARBY_RADIUS_M"),
            "remote_radius_m": os.getenv("REMOTE_RADIUS_M"),
            "max_results_in_view": os.getenv("MAX_RESULTS_IN_VIEW"),
            "camera_debounce_ms": os.getenv("CAMERA_DEBOUNCE_MS"),
            "min_award_year": os.getenv("MIN_AWARD_YEAR"),
            "likely_match_threshold": os.getenv("LIKELY_MATCH_THRESHOLD"),
            "log_level": os.getenv("LOG_LEVEL"),
        }

        for k, v in env_map.items():
            if v is None or v == "":
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    @property
    def remote_enabled(self) -> bool:
        return bool(self.google_places_api_key)

    @property
    def nearby_enabled(self) -> bool:
        return bool(self.geoapify_api_key)

    def log_summary(self) -> str:
        return (
            "dataset=%s radii(m)=%s/%s/%s max_in_view=%s debounce_ms=%s geoapify=%s google_places=%s"
            % (
                self.dataset_path or "unset",
                self.dataset_radius_m,
                self.nearby_radius_m,
                self.remote_radius_m,
                self.max_results_in_view,
                self.camera_debounce_ms,
                mask_secret(self.geoapify_api_key),
                mask_secret(self.google_places_api_key),
            )
        )
