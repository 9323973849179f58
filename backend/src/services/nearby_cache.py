"""Single-flight cache in front of the nearby POI search.

One entry per rounded ``lat:lon:radius`` key holds the shared ``asyncio.Task``
for that search. Concurrent callers get the same task, so the underlying source
sees at most one request per key. Successful results stay cached for the life
of the process; a failed (or cancelled) search drops its entry before the error
reaches any caller, so the next call retries.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List

from loguru import logger

from models import GeoPoint, RestaurantPoint
from services.sources import NearbySearchSource
from utils import require_finite, require_non_negative


def nearby_key(latitude: float, longitude: float, radius_m: float) -> str:
    # 4 decimals is roughly 11 m, enough to absorb camera jitter
    radius = float(radius_m)
    radius_text = str(int(radius)) if radius.is_integer() else repr(radius)
    return f"{latitude:.4f}:{longitude:.4f}:{radius_text}"


class NearbySearchCache:
    def __init__(self, source: NearbySearchSource) -> None:
        self.source = source
        self._entries: Dict[str, "asyncio.Task[List[RestaurantPoint]]"] = {}
        self.hit_count = 0
        self.miss_count = 0

    def get(self, latitude: float, longitude: float, radius_m: float) -> "asyncio.Task[List[RestaurantPoint]]":
        """Return the shared task for this key, starting the search if there is none.

        Must be called from inside a running event loop.
        """
        latitude = require_finite("latitude", latitude)
        longitude = require_finite("longitude", longitude)
        radius_m = require_non_negative("radius_m", radius_m)

        key = nearby_key(latitude, longitude, radius_m)
        task = self._entries.get(key)
        if task is not None:
            self.hit_count += 1
            logger.debug("nearby cache hit key={} pending={}", key, not task.done())
            return task

        self.miss_count += 1
        logger.debug("nearby cache miss key={}", key)
        point = GeoPoint(latitude=latitude, longitude=longitude)
        task = asyncio.ensure_future(self._run(key, point, radius_m))
        self._entries[key] = task
        return task

    async def search(self, latitude: float, longitude: float, radius_m: float) -> List[RestaurantPoint]:
        # shield: a caller giving up must not cancel the search other callers share
        return list(await asyncio.shield(self.get(latitude, longitude, radius_m)))

    async def _run(self, key: str, point: GeoPoint, radius_m: float) -> List[RestaurantPoint]:
        try:
            return await self.source.search(point, radius_m)
        except (Exception, asyncio.CancelledError):
            # clear() or invalidate() may already have handed the key to a newer search
            if self._entries.get(key) is asyncio.current_task():
                self.invalidate(key)
            raise

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("nearby cache entry dropped key={}", key)

    def clear(self) -> None:
        size = len(self._entries)
        self._entries.clear()
        self.hit_count = 0
        self.miss_count = 0
        logger.info("Nearby cache cleared: {} entries removed", size)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, int]:
        return {
            "size": len(self._entries),
            "hits": self.hit_count,
            "misses": self.miss_count,
        }
