from __future__ import annotations

import asyncio
from typing import Callable, Optional

from loguru import logger

from config import Configuration
from models import CameraSnapshot
from services.projection import normalize_camera


class ViewportDebouncer:
    """Coalesce bursts of camera-move events into one viewport recomputation.

    Owns one pending-snapshot slot and one timer handle. The first ``push`` of a
    burst arms a ``window_s`` timer; later pushes only replace the pending
    snapshot, so when the timer fires the callback sees the last camera of the
    burst. ``window_s == 0`` delivers every push immediately, for hosts that
    already throttle their camera callbacks. One instance per map view; call
    ``close`` when the view goes away.
    """

    def __init__(
        self,
        callback: Callable[[CameraSnapshot], None],
        window_s: float = 0.12,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if window_s < 0:
            raise ValueError("window_s must be >= 0")
        self._callback = callback
        self.window_s = window_s
        self._loop = loop
        self._pending: Optional[CameraSnapshot] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self.delivered = 0

    @classmethod
    def from_config(
        cls,
        cfg: Configuration,
        callback: Callable[[CameraSnapshot], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "ViewportDebouncer":
        return cls(callback, window_s=cfg.camera_debounce_ms / 1000.0, loop=loop)

    @property
    def pending(self) -> Optional[CameraSnapshot]:
        return self._pending

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def push(self, snapshot: CameraSnapshot) -> None:
        if self._closed:
            return
        self._pending = normalize_camera(snapshot)
        if self.window_s == 0:
            self.flush()
            return
        if self._handle is None:
            loop = self._loop or asyncio.get_running_loop()
            self._handle = loop.call_later(self.window_s, self._fire)

    def flush(self) -> None:
        """Deliver the pending snapshot now, if any, and disarm the timer."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        snapshot, self._pending = self._pending, None
        if snapshot is None or self._closed:
            return
        self.delivered += 1
        self._callback(snapshot)

    def _fire(self) -> None:
        self._handle = None
        self.flush()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._pending is not None:
            logger.debug("debouncer closed with an undelivered camera snapshot")
        self._pending = None
        self._closed = True
