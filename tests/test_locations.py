import pytest

from image_organizer.exceptions import DataUnavailable
from image_organizer.geo.geocoder import Geocoder, location_tag
from image_organizer.geo.locations import LocationIndex
from image_organizer.models import Coordinates, LocationRecord


def test_load_skips_malformed_rows(cities_csv):
    index = LocationIndex.load(cities_csv)

    assert len(index) == 3
    assert [r.name for r in index.records] == ["Paris", "London", "Tokyo"]
    assert index.records[0] == LocationRecord("Paris", "FR", 48.8566, 2.3522)


def test_load_accepts_country_iso2_column(tmp_path):
    p = tmp_path / "cities.csv"
    p.write_text("city,country_iso2,lat,lng\nLyon,FR,45.76,4.84\n", encoding="utf-8")

    index = LocationIndex.load(p)

    assert index.records == (LocationRecord("Lyon", "FR", 45.76, 4.84),)


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(DataUnavailable):
        LocationIndex.load(tmp_path / "nope.csv")


def test_load_missing_columns_raises(tmp_path):
    p = tmp_path / "cities.csv"
    p.write_text("name,latitude,longitude\nParis,48.8,2.3\n", encoding="utf-8")

    with pytest.raises(DataUnavailable):
        LocationIndex.load(p)


def test_nearest_uses_planar_distance(location_index):
    assert location_index.nearest(48.0, 2.0).name == "Paris"
    assert location_index.nearest(52.0, 0.0).name == "London"
    assert location_index.nearest(30.0, 130.0).name == "Tokyo"


def test_nearest_is_not_great_circle():
    # Across the date line the planar metric picks the far side of the globe
    index = LocationIndex([
        LocationRecord("West", "AA", 0.0, -179.0),
        LocationRecord("Middle", "BB", 0.0, 170.0),
    ])
    assert index.nearest(0.0, 179.5).name == "Middle"


def test_nearest_tie_keeps_first_record():
    index = LocationIndex([
        LocationRecord("North", "AA", 1.0, 0.0),
        LocationRecord("South", "BB", -1.0, 0.0),
        LocationRecord("NorthAgain", "CC", 1.0, 0.0),
    ])
    assert index.nearest(0.0, 0.0).name == "North"


def test_nearest_on_empty_index():
    assert LocationIndex([]).nearest(10.0, 10.0) is None


def test_find_by_name(location_index):
    assert location_index.find("paris").country_code == "FR"
    assert location_index.find("Paris", "fr").name == "Paris"
    assert location_index.find("Paris", "GB") is None
    assert location_index.find("Atlantis") is None


def test_geocoder_resolve(location_index):
    geocoder = Geocoder(location_index)

    assert geocoder.resolve(Coordinates(48.85, 2.35)) == "Paris-FR"
    assert geocoder.resolve(None) is None
    assert Geocoder(LocationIndex([])).resolve(Coordinates(48.85, 2.35)) is None


def test_location_tag():
    assert location_tag(LocationRecord("New York", "US", 40.7, -74.0)) == "New York-US"
