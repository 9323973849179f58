import asyncio

import pytest

from config import Configuration
from models import CameraSnapshot
from services.debounce import ViewportDebouncer


def test_burst_delivers_last_snapshot() -> None:
    received = []

    async def run():
        debouncer = ViewportDebouncer(received.append, window_s=0.01)
        debouncer.push(CameraSnapshot(1.0, 1.0, 3.0))
        debouncer.push(CameraSnapshot(2.0, 2.0, 4.0))
        debouncer.push(CameraSnapshot(3.0, 190.0, -1.0))
        assert debouncer.armed
        assert received == []
        await asyncio.sleep(0.05)
        assert not debouncer.armed
        return debouncer.delivered

    delivered = asyncio.run(run())
    assert delivered == 1
    assert len(received) == 1
    assert received[0].latitude == 3.0
    assert received[0].longitude == pytest.approx(-170.0)
    assert received[0].zoom == 0.0


def test_new_burst_after_delivery_arms_again() -> None:
    received = []

    async def run():
        debouncer = ViewportDebouncer(received.append, window_s=0.01)
        debouncer.push(CameraSnapshot(1.0, 1.0, 3.0))
        await asyncio.sleep(0.05)
        debouncer.push(CameraSnapshot(2.0, 2.0, 3.0))
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert [s.latitude for s in received] == [1.0, 2.0]


def test_zero_window_delivers_immediately() -> None:
    received = []
    debouncer = ViewportDebouncer(received.append, window_s=0)
    debouncer.push(CameraSnapshot(1.0, 1.0, 3.0))
    debouncer.push(CameraSnapshot(2.0, 2.0, 3.0))
    assert [s.latitude for s in received] == [1.0, 2.0]
    assert debouncer.pending is None


def test_flush_delivers_now() -> None:
    received = []

    async def run():
        debouncer = ViewportDebouncer(received.append, window_s=10)
        debouncer.push(CameraSnapshot(1.0, 1.0, 3.0))
        debouncer.flush()
        assert not debouncer.armed
        debouncer.flush()

    asyncio.run(run())
    assert len(received) == 1


def test_close_drops_pending_and_ignores_later_pushes() -> None:
    received = []

    async def run():
        debouncer = ViewportDebouncer(received.append, window_s=0.01)
        debouncer.push(CameraSnapshot(1.0, 1.0, 3.0))
        debouncer.close()
        debouncer.push(CameraSnapshot(2.0, 2.0, 3.0))
        await asyncio.sleep(0.05)
        assert debouncer.pending is None

    asyncio.run(run())
    assert received == []


def test_negative_window_rejected() -> None:
    with pytest.raises(ValueError):
        ViewportDebouncer(lambda s: None, window_s=-0.1)


def test_window_comes_from_configuration(monkeypatch) -> None:
    monkeypatch.setenv("CAMERA_DEBOUNCE_MS", "300")
    debouncer = ViewportDebouncer.from_config(Configuration.from_env(), lambda s: None)
    assert debouncer.window_s == pytest.approx(0.3)

    assert ViewportDebouncer.from_config(Configuration(), lambda s: None).window_s == pytest.approx(0.12)


def test_configured_zero_window_bypasses_debounce(monkeypatch) -> None:
    monkeypatch.setenv("CAMERA_DEBOUNCE_MS", "0")
    received = []
    debouncer = ViewportDebouncer.from_config(Configuration.from_env(), received.append)
    debouncer.push(CameraSnapshot(1.0, 1.0, 3.0))
    assert len(received) == 1
