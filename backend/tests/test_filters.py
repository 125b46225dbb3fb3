"""Tests for filter parsing and in-memory evaluation."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

import config
from errors import ValidationError
from filters import (
    BBox,
    MapFilterQuery,
    apply_page,
    matches,
    parse_bbox,
    parse_filter_query,
    parse_search_query,
    to_sql,
)


def test_defaults():
    q = parse_filter_query({})
    assert q.types == ["village", "provider", "listing", "package", "place", "event"]
    assert q.limit == 200
    assert q.offset == 0
    assert q.bbox is None
    assert not q.featured
    assert not q.wants_clusters


def test_limit_is_clamped():
    assert parse_filter_query({"limit": "10000"}).limit == 500
    assert parse_filter_query({"limit": "501"}).limit == 500
    assert parse_filter_query({"limit": "20"}).limit == 20
    assert MapFilterQuery(limit=9999).limit == config.MAX_LIMIT


def test_parse_lists_and_flags():
    q = parse_filter_query({
        "types": "village, event",
        "categories": "homestay,,trek ",
        "featured": "true",
        "cluster": "true",
        "zoom": "7",
        "district": "d-1",
    })
    assert q.types == ["village", "event"]
    assert q.categories == ["homestay", "trek"]
    assert q.featured
    assert q.district == "d-1"
    assert q.wants_clusters


def test_clustering_needs_low_zoom():
    assert not parse_filter_query({"cluster": "true", "zoom": "10"}).wants_clusters
    assert not parse_filter_query({"cluster": "true"}).wants_clusters
    assert not parse_filter_query({"zoom": "4"}).wants_clusters
    assert parse_filter_query({"cluster": "true", "zoom": "9"}).wants_clusters


def test_zoom_clamped_to_range():
    assert parse_filter_query({"zoom": "35"}).zoom == 20
    assert parse_filter_query({"zoom": "-2"}).zoom == 0


def test_parse_bbox_order():
    assert parse_bbox("79.0,30.0,79.5,30.5") == BBox(79.0, 30.0, 79.5, 30.5)


@pytest.mark.parametrize("raw", ["79,30,79.5", "a,b,c,d", "80,30,79,31", "79,31,80,30", "79,30,nan,31"])
def test_malformed_bbox_rejected(raw):
    with pytest.raises(ValidationError):
        parse_bbox(raw)


@pytest.mark.parametrize("params", [
    {"minPrice": "cheap"},
    {"maxPrice": "1e"},
    {"minRating": "four"},
    {"limit": "lots"},
    {"offset": "-1"},
    {"zoom": "7.5"},
    {"types": "village,castle"},
])
def test_malformed_params_rejected(params):
    with pytest.raises(ValidationError):
        parse_filter_query(params)


def test_bbox_containment_inclusive(make_poi):
    q = parse_filter_query({"bbox": "79.0,30.0,79.5,30.5"})
    assert matches(q, make_poi(lat=30.0, lng=79.0))
    assert matches(q, make_poi(lat=30.5, lng=79.5))
    assert not matches(q, make_poi(lat=30.51, lng=79.2))
    assert not matches(q, make_poi(lat=30.2, lng=78.99))


def test_villages_in_bbox_sorted_featured_then_title(make_poi):
    pois = [
        make_poi(title="Munsiyari", lat=30.1, lng=79.1),
        make_poi(title="Chaukori", lat=30.2, lng=79.2),
        make_poi(title="Sarmoli", lat=30.3, lng=79.3, featured=True),
        make_poi(title="Outside North", lat=31.2, lng=79.2),
        make_poi(title="Outside West", lat=30.2, lng=78.2),
        make_poi(title="Event Inside", entity_type="event", lat=30.2, lng=79.2),
    ]
    q = parse_filter_query({"types": "village", "bbox": "79.0,30.0,79.5,30.5", "limit": "10"})
    page, total = apply_page(q, pois)
    assert [p.title for p in page] == ["Sarmoli", "Chaukori", "Munsiyari"]
    assert total == 3
    for p in page:
        assert q.bbox.contains(p.lat, p.lng)


def test_search_is_case_insensitive_on_title(make_poi):
    pois = [
        make_poi(title="Temple View Homestay"),
        make_poi(title="Mountain Temple"),
        make_poi(title="Riverside Resort", category="temple"),
    ]
    page, _ = apply_page(parse_filter_query({"search": "temple"}), pois)
    assert [p.title for p in page] == ["Mountain Temple", "Temple View Homestay"]


def test_filters_are_conjunctive(make_poi):
    pois = [
        make_poi(title="A", entity_type="listing", category="stay", price=1500, rating=4.5, district_id="d1"),
        make_poi(title="B", entity_type="listing", category="stay", price=5000, rating=4.5, district_id="d1"),
        make_poi(title="C", entity_type="listing", category="trek", price=1500, rating=4.5, district_id="d1"),
        make_poi(title="D", entity_type="listing", category="stay", price=1500, rating=3.0, district_id="d1"),
        make_poi(title="E", entity_type="listing", category="stay", price=1500, rating=4.5, district_id="d2"),
        make_poi(title="F", entity_type="listing", category="stay", price=None, rating=4.5, district_id="d1"),
    ]
    q = parse_filter_query({
        "types": "listing",
        "categories": "stay",
        "minPrice": "1000",
        "maxPrice": "2000",
        "minRating": "4",
        "district": "d1",
    })
    page, total = apply_page(q, pois)
    assert [p.title for p in page] == ["A"]
    assert total == 1


def test_pagination_after_ordering(make_poi):
    pois = [make_poi(title=t) for t in ["e", "b", "d", "a", "c"]]
    page, total = apply_page(parse_filter_query({"limit": "2", "offset": "1"}), pois)
    assert [p.title for p in page] == ["b", "c"]
    assert total == 5


def test_title_order_is_case_sensitive(make_poi):
    pois = [make_poi(title="apple"), make_poi(title="Zebra"), make_poi(title="Banana")]
    page, _ = apply_page(MapFilterQuery(), pois)
    assert [p.title for p in page] == ["Banana", "Zebra", "apple"]


def test_search_query_requires_two_characters():
    assert parse_search_query({"q": "a"}) is None
    assert parse_search_query({}) is None
    q = parse_search_query({"q": "te", "limit": "200"})
    assert q.search == "te"
    assert q.limit == 50
    assert q.types is None


def test_search_query_type_filter():
    q = parse_search_query({"q": "kausani", "type": "village"})
    assert q.types == ["village"]
    assert q.limit == 10


def test_to_sql_builds_conjunction():
    q = parse_filter_query({
        "types": "village,event",
        "bbox": "79.0,30.0,79.5,30.5",
        "featured": "true",
        "search": "50%_off",
    })
    where, params = to_sql(q)
    assert where.count(" AND ") >= 5
    assert "entity_type IN (?, ?)" in where
    assert "is_featured = 1" in where
    assert params[:2] == ("village", "event")
    assert params[2:6] == (30.0, 30.5, 79.0, 79.5)
    assert params[-1] == "%50\\%\\_off%"


def test_to_sql_without_filters():
    where, params = to_sql(MapFilterQuery(types=None))
    assert where == ""
    assert params == ()
