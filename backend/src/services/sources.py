"""Capability interfaces for the restaurant sources the resolver consumes."""

from __future__ import annotations

from typing import List, Protocol

from models import GeoPoint, RestaurantPoint


class DatasetSource(Protocol):
    """Static restaurant dataset (the Michelin guide snapshot)."""

    def all(self) -> List[RestaurantPoint]:
        ...

    def query_near(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        ...


class NearbySearchSource(Protocol):
    """POI search that may not exist on every platform.

    ``search`` raises ``SourceFailedError`` (or any exception) on failure.
    """

    def is_available(self) -> bool:
        ...

    async def search(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        ...


class RemotePlacesSource(Protocol):
    """Credentialed places API; a missing credential means disabled, not broken."""

    def is_enabled(self) -> bool:
        ...

    async def search(self, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        ...
