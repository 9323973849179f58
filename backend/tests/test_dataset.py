import json

import pytest

from errors import InvalidInputError
from models import GeoPoint, RestaurantSource
from services.dataset import InMemoryDataset, point_from_row

CENTER = GeoPoint(40.7128, -74.0060)


def _rows():
    return [
        {"Id": "1", "Name": "Near", "Latitude": "40.7138", "Longitude": "-74.0060", "Award": "1 Star"},
        {"Id": "2", "Name": "Mid", "Latitude": "40.7164", "Longitude": "-74.0060", "Award": "Bib Gourmand"},
        {"Id": "3", "Name": "Far", "Latitude": "40.7308", "Longitude": "-74.0060"},
        {"Id": "4", "Name": "Broken", "Latitude": "0", "Longitude": "0"},
        {"Id": "5", "Name": "No Coordinates", "Latitude": "", "Longitude": "-74.0"},
    ]


def test_point_from_row_maps_columns():
    point = point_from_row(
        {"Name": " Blue Hill ", "Latitude": "40.73", "Longitude": "-74.0", "Award": "1 Star", "GreenStar": "1",
         "Cuisine": "Farm to table", "LatestAwardYear": "2024"},
        7,
    )
    assert point is not None
    assert point.id == "michelin-7"
    assert point.name == "Blue Hill"
    assert point.award == "1 Star, Green Star"
    assert point.cuisine == "Farm to table"
    assert point.latest_award_year == 2024
    assert point.source is RestaurantSource.DATASET


def test_unusable_rows_are_skipped():
    dataset = InMemoryDataset.from_records(_rows())
    assert len(dataset) == 3
    assert {p.id for p in dataset.all()} == {"michelin-1", "michelin-2", "michelin-3"}


def test_query_near_filters_and_sorts_by_distance():
    dataset = InMemoryDataset.from_records(_rows())
    hits = dataset.query_near(CENTER, 500)

    assert [p.name for p in hits] == ["Near", "Mid"]
    assert hits[0].distance_m == pytest.approx(111, abs=2)
    assert hits[0].distance_m < hits[1].distance_m <= 500


def test_query_near_across_antimeridian():
    dataset = InMemoryDataset.from_records(
        [{"Id": "x", "Name": "Date Line Diner", "Latitude": "0", "Longitude": "-179.999"}]
    )
    hits = dataset.query_near(GeoPoint(0.0, 179.999), 500)
    assert [p.id for p in hits] == ["michelin-x"]


def test_query_near_rejects_negative_radius():
    with pytest.raises(InvalidInputError):
        InMemoryDataset([]).query_near(CENTER, -1)


def test_from_csv(tmp_path):
    path = tmp_path / "michelin.csv"
    path.write_text(
        "Name,Address,Location,Price,Cuisine,Longitude,Latitude,Award,GreenStar\n"
        "Le Bernardin,155 W 51st St,New York,$$$$,Seafood,-73.9818,40.7615,3 Stars,0\n"
        "Blue Hill,75 Washington Pl,New York,$$$$,Farm to table,-73.9995,40.7320,1 Star,1\n",
        encoding="utf-8",
    )
    dataset = InMemoryDataset.from_path(path)
    assert [p.name for p in dataset.all()] == ["Le Bernardin", "Blue Hill"]
    assert dataset.all()[1].award == "1 Star, Green Star"
    assert dataset.all()[0].address == "155 W 51st St"


def test_from_json(tmp_path):
    path = tmp_path / "michelin.json"
    path.write_text(
        json.dumps({"restaurants": [{"id": 42, "name": "Atomix", "lat": 40.7443, "lng": -73.9843, "award": "2 Stars"}]}),
        encoding="utf-8",
    )
    dataset = InMemoryDataset.from_path(path)
    assert dataset.all()[0].id == "michelin-42"
    assert dataset.all()[0].award == "2 Stars"
