"""Tests for GeoJSON assembly."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from filters import MapFilterQuery
from geojson import clusters_to_feature_collection, districts_to_feature_collection, pois_to_feature_collection
from grid import cluster_pois


def test_poi_coordinates_are_lng_lat(make_poi):
    pois = [make_poi(lat=30.1, lng=79.9), make_poi(lat=29.5, lng=78.2)]
    fc = pois_to_feature_collection(pois, total=2, query=MapFilterQuery())
    assert fc["type"] == "FeatureCollection"
    for feature, poi in zip(fc["features"], pois):
        assert feature["geometry"] == {"type": "Point", "coordinates": [poi.lng, poi.lat]}


def test_poi_properties(make_poi):
    poi = make_poi(
        id="l-7",
        entity_type="listing",
        title="Pine Cottage",
        slug="pine-cottage",
        category="homestay",
        district_name="Almora",
        village_name="Binsar",
        price=2200,
        rating=4.4,
        featured=True,
        tags=["wifi", "view"],
        extra={"altitude": "2400"},
    )
    (feature,) = pois_to_feature_collection([poi], total=1, query=MapFilterQuery())["features"]
    assert feature["id"] == "l-7"
    props = feature["properties"]
    assert props["type"] == "listing"
    assert props["district"] == "Almora"
    assert props["village"] == "Binsar"
    assert props["price"] == 2200
    assert props["featured"] is True
    assert props["tags"] == ["wifi", "view"]
    assert props["altitude"] == "2400"


def test_extra_cannot_override_known_fields(make_poi):
    poi = make_poi(title="Real Title", extra={"title": "Spoofed", "type": "district"})
    props = pois_to_feature_collection([poi], 1, MapFilterQuery())["features"][0]["properties"]
    assert props["title"] == "Real Title"
    assert props["type"] == "village"


def test_metadata_reports_pagination(make_poi):
    q = MapFilterQuery(limit=2, offset=4)
    fc = pois_to_feature_collection([make_poi()], total=5, query=q)
    assert fc["metadata"] == {"total": 5, "offset": 4, "limit": 2}


def test_cluster_features(make_poi):
    pois = [make_poi(lat=30.0, lng=79.0), make_poi(lat=30.4, lng=79.4, entity_type="event")]
    fc = clusters_to_feature_collection(cluster_pois(pois, 5), total=2, query=MapFilterQuery())
    (feature,) = fc["features"]
    assert feature["geometry"]["coordinates"] == pytest.approx([79.2, 30.2])
    props = feature["properties"]
    assert props["cluster"] is True
    assert props["point_count"] == 2
    assert props["types"] == {"village": 1, "event": 1}
    assert props["bounds"] == {"minLat": 30.0, "maxLat": 30.4, "minLng": 79.0, "maxLng": 79.4}


def test_district_features():
    fc = districts_to_feature_collection([
        {"id": "d1", "name": "Almora", "slug": "almora", "latitude": 29.6, "longitude": 79.66,
         "overview": "Cultural heart", "image_url": None},
    ])
    (feature,) = fc["features"]
    assert feature["geometry"]["coordinates"] == [79.66, 29.6]
    assert feature["properties"]["type"] == "district"
    assert feature["properties"]["title"] == "Almora"
    assert feature["properties"]["excerpt"] == "Cultural heart"
