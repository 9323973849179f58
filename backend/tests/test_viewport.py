import pytest

from errors import InvalidInputError
from models import CameraSnapshot, ViewportBounds
from services.projection import MAX_LATITUDE
from services.viewport import contains, normalize_camera_event, viewport_bounds


def test_unmeasured_viewport_has_no_bounds():
    camera = CameraSnapshot(40.7128, -74.006, 12)
    assert viewport_bounds(camera, 0, 600) is None
    assert viewport_bounds(camera, 800, 0) is None


def test_negative_size_rejected():
    with pytest.raises(InvalidInputError):
        viewport_bounds(CameraSnapshot(0, 0, 3), -1, 600)


def test_new_york_viewport_contains_center():
    camera = CameraSnapshot(40.7128, -74.006, 12)
    bounds = viewport_bounds(camera, 800, 600)
    assert bounds is not None
    assert bounds.min_latitude < 40.7128 < bounds.max_latitude
    assert bounds.min_longitude < -74.006 < bounds.max_longitude
    assert not bounds.wraps_date_line
    # roughly 8 km north-south at this zoom
    assert 0.1 < bounds.max_latitude - bounds.min_latitude < 0.2


@pytest.mark.parametrize(
    "camera",
    [
        CameraSnapshot(40.7128, -74.006, 12),
        CameraSnapshot(MAX_LATITUDE, 0.0, 3),
        CameraSnapshot(-85.1, 179.99, 5),
        CameraSnapshot(0.0, 180.0, 2),
        CameraSnapshot(0.0, -180.0, 10),
        CameraSnapshot(20.0, 0.0, 2.5),
        CameraSnapshot(-33.8688, 151.2093, 18),
    ],
)
def test_bounds_contain_camera_center(camera):
    bounds = viewport_bounds(camera, 800, 600)
    assert bounds is not None
    assert contains(bounds, camera.latitude, camera.longitude)


def test_whole_world_at_zoom_zero():
    bounds = viewport_bounds(CameraSnapshot(10.0, 30.0, 0), 800, 600)
    assert bounds == ViewportBounds(-MAX_LATITUDE, MAX_LATITUDE, -180.0, 180.0, False)


def test_viewport_across_antimeridian():
    bounds = viewport_bounds(CameraSnapshot(0.0, 179.0, 4), 800, 600)
    assert bounds is not None
    assert bounds.wraps_date_line
    assert bounds.min_longitude > bounds.max_longitude
    assert contains(bounds, 0.0, 179.0)
    assert contains(bounds, 0.0, -175.0)
    assert not contains(bounds, 0.0, 0.0)


def test_contains_with_wrapping_bounds():
    bounds = ViewportBounds(-10.0, 10.0, 170.0, -170.0, wraps_date_line=True)
    assert contains(bounds, 0.0, 179.0)
    assert contains(bounds, 0.0, -175.0)
    assert contains(bounds, 0.0, 180.0)
    assert contains(bounds, 0.0, -180.0)
    assert not contains(bounds, 0.0, 0.0)
    assert not contains(bounds, 0.0, 169.0)
    assert not contains(bounds, 11.0, 179.0)


def test_contains_normalizes_out_of_range_longitude():
    bounds = ViewportBounds(-10.0, 10.0, -20.0, 20.0)
    assert contains(bounds, 0.0, 365.0)
    assert not contains(bounds, 0.0, 200.0)


def test_camera_event_falls_back_for_missing_fields():
    fallback = CameraSnapshot(40.0, -73.0, 11.0)
    assert normalize_camera_event({}, fallback) == fallback

    partial = normalize_camera_event({"coordinates": {"latitude": 41.0}}, fallback)
    assert partial == CameraSnapshot(41.0, -73.0, 11.0)


def test_camera_event_is_normalized():
    fallback = CameraSnapshot(0.0, 0.0, 5.0)
    event = {"coordinates": {"latitude": 89.0, "longitude": 190.0}, "zoom": -1}
    camera = normalize_camera_event(event, fallback)
    assert camera.latitude == MAX_LATITUDE
    assert camera.longitude == pytest.approx(-170.0)
    assert camera.zoom == 0.0
