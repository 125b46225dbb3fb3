"""Tests for POI row conversion and source failover."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from errors import DataSourceError
from filters import MapFilterQuery
from sources import DataSource, FailoverSource, PoiPage, row_to_poi, rows_to_pois


class StubSource(DataSource):
    def __init__(self, name, page=None, error=None):
        self.name = name
        self.page = page
        self.error = error
        self.calls = 0

    def fetch(self, query):
        self.calls += 1
        if self.error:
            raise self.error
        return self.page


def _row(**kwargs):
    row = {
        "entity_id": "v1",
        "entity_type": "village",
        "title": "Kausani",
        "lat": 29.84,
        "lng": 79.6,
        "is_featured": 1,
        "tags": ["sunrise"],
        "properties": {"altitude": 1890, "note": None},
        "price_min": None,
        "rating": 4.6,
    }
    row.update(kwargs)
    return row


def test_row_to_poi_maps_columns():
    poi = row_to_poi(_row(district_name="Bageshwar", image_url="/img/k.jpg"))
    assert poi.id == "v1"
    assert poi.entity_type == "village"
    assert poi.featured is True
    assert poi.tags == ["sunrise"]
    assert poi.district_name == "Bageshwar"
    assert poi.image == "/img/k.jpg"
    assert poi.extra == {"altitude": "1890"}


def test_rows_without_coordinates_are_dropped():
    rows = [_row(), _row(entity_id="v2", lat=None), _row(entity_id="v3", lng=None)]
    assert [p.id for p in rows_to_pois(rows)] == ["v1"]


def test_rows_with_invalid_values_are_dropped():
    rows = [_row(lat=95.0), _row(lng=-190.0), _row(entity_type="castle"), _row(rating=7)]
    assert rows_to_pois(rows) == []


def test_failover_uses_primary_when_healthy():
    page = PoiPage(items=[], total=0)
    primary = StubSource("primary", page=page)
    fallback = StubSource("fallback", page=PoiPage(items=[], total=99))
    assert FailoverSource(primary, fallback).fetch(MapFilterQuery()) is page
    assert fallback.calls == 0


def test_failover_falls_back_once_on_error():
    primary = StubSource("primary", error=DataSourceError("boom", action="select_pois"))
    fallback_page = PoiPage(items=[], total=3)
    fallback = StubSource("fallback", page=fallback_page)
    assert FailoverSource(primary, fallback).fetch(MapFilterQuery()) is fallback_page
    assert primary.calls == 1
    assert fallback.calls == 1


def test_failover_propagates_when_both_fail():
    primary = StubSource("primary", error=DataSourceError("boom"))
    fallback = StubSource("fallback", error=DataSourceError("also boom"))
    with pytest.raises(DataSourceError) as exc_info:
        FailoverSource(primary, fallback).fetch(MapFilterQuery())
    assert exc_info.value.message == "also boom"
    assert primary.calls == 1
