"""Map filter evaluation: query-string parsing, SQL translation and in-memory matching.

Both renditions apply the same conjunction of filters and the same ordering
(featured first, then title, then id) so the cache query and the fallback path
return identical pages for identical data.
"""

import math
from dataclasses import dataclass, field
from typing import Mapping

import config
from errors import ValidationError
from models import PointOfInterest


@dataclass(frozen=True)
class BBox:
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


@dataclass
class MapFilterQuery:
    bbox: BBox | None = None
    # None means no type restriction
    types: list[str] | None = field(default_factory=lambda: list(config.DEFAULT_POI_TYPES))
    categories: list[str] = field(default_factory=list)
    district: str | None = None
    featured: bool = False
    min_price: float | None = None
    max_price: float | None = None
    min_rating: float | None = None
    search: str | None = None
    limit: int = config.DEFAULT_LIMIT
    offset: int = 0
    cluster: bool = False
    zoom: int | None = None

    def __post_init__(self):
        self.limit = clamp_limit(self.limit)
        self.offset = max(self.offset, 0)

    @property
    def wants_clusters(self) -> bool:
        return self.cluster and self.zoom is not None and self.zoom < config.CLUSTER_MAX_ZOOM


def clamp_limit(limit: int, maximum: int = config.MAX_LIMIT) -> int:
    return max(0, min(limit, maximum))


# ---------- Parsing ----------

def _split_csv(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _parse_float(name: str, raw: str | None) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}")
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number, got {raw!r}")
    return value


def _parse_int(name: str, raw: str | None, default: int | None) -> int | None:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}")


def parse_bbox(raw: str | None) -> BBox | None:
    """Parse ``minLng,minLat,maxLng,maxLat``."""
    if not raw:
        return None
    parts = raw.split(",")
    if len(parts) != 4:
        raise ValidationError("bbox must be minLng,minLat,maxLng,maxLat")
    min_lng, min_lat, max_lng, max_lat = (_parse_float("bbox", p.strip()) for p in parts)
    if None in (min_lng, min_lat, max_lng, max_lat):
        raise ValidationError("bbox must have four numbers")
    if min_lng > max_lng or min_lat > max_lat:
        raise ValidationError("bbox minimums must not exceed maximums")
    return BBox(min_lng, min_lat, max_lng, max_lat)


def _parse_types(raw: str | None, allowed: list[str]) -> list[str]:
    types = _split_csv(raw)
    unknown = [t for t in types if t not in allowed]
    if unknown:
        raise ValidationError(f"Unknown type(s): {', '.join(unknown)}")
    return types


def parse_filter_query(params: Mapping[str, str]) -> MapFilterQuery:
    """Build a MapFilterQuery from raw query-string values."""
    types = _parse_types(params.get("types"), config.ENTITY_TYPES) or list(config.DEFAULT_POI_TYPES)
    offset = _parse_int("offset", params.get("offset"), 0)
    if offset < 0:
        raise ValidationError("offset must not be negative")
    zoom = _parse_int("zoom", params.get("zoom"), None)
    if zoom is not None:
        zoom = max(0, min(zoom, config.MAX_ZOOM))

    return MapFilterQuery(
        bbox=parse_bbox(params.get("bbox")),
        types=types,
        categories=_split_csv(params.get("categories")),
        district=params.get("district") or None,
        featured=params.get("featured") == "true",
        min_price=_parse_float("minPrice", params.get("minPrice")),
        max_price=_parse_float("maxPrice", params.get("maxPrice")),
        min_rating=_parse_float("minRating", params.get("minRating")),
        search=params.get("search") or None,
        limit=_parse_int("limit", params.get("limit"), config.DEFAULT_LIMIT),
        offset=offset,
        cluster=params.get("cluster") == "true",
        zoom=zoom,
    )


def parse_search_query(params: Mapping[str, str]) -> MapFilterQuery | None:
    """Title search (``q``, ``type``, ``limit``). None when ``q`` is too short to search."""
    q = (params.get("q") or "").strip()
    if len(q) < config.SEARCH_MIN_CHARS:
        return None
    entity_type = params.get("type") or None
    types = _parse_types(entity_type, config.ENTITY_TYPES) if entity_type else None
    limit = _parse_int("limit", params.get("limit"), config.SEARCH_DEFAULT_LIMIT)
    return MapFilterQuery(
        types=types,
        search=q,
        limit=clamp_limit(limit, config.SEARCH_MAX_LIMIT),
    )


# ---------- SQL translation ----------

def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def to_sql(query: MapFilterQuery) -> tuple[str, tuple]:
    """Translate the filters into a WHERE fragment over the POI cache columns."""
    clauses: list[str] = []
    params: list = []

    if query.types is not None:
        if not query.types:
            clauses.append("1 = 0")
        else:
            clauses.append(f"entity_type IN ({', '.join('?' for _ in query.types)})")
            params.extend(query.types)
    if query.bbox:
        clauses.append("lat >= ? AND lat <= ? AND lng >= ? AND lng <= ?")
        params.extend([query.bbox.min_lat, query.bbox.max_lat, query.bbox.min_lng, query.bbox.max_lng])
    if query.district:
        clauses.append("district_id = ?")
        params.append(query.district)
    if query.featured:
        clauses.append("is_featured = 1")
    if query.categories:
        clauses.append(f"category IN ({', '.join('?' for _ in query.categories)})")
        params.extend(query.categories)
    if query.min_price is not None:
        clauses.append("price_min >= ?")
        params.append(query.min_price)
    if query.max_price is not None:
        clauses.append("price_min <= ?")
        params.append(query.max_price)
    if query.min_rating is not None:
        clauses.append("rating >= ?")
        params.append(query.min_rating)
    if query.search:
        clauses.append("title_search LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(query.search.casefold()))

    return " AND ".join(clauses), tuple(params)


# ---------- In-memory evaluation ----------

def matches(query: MapFilterQuery, poi: PointOfInterest) -> bool:
    if query.types is not None and poi.entity_type not in query.types:
        return False
    if query.bbox and not query.bbox.contains(poi.lat, poi.lng):
        return False
    if query.district and poi.district_id != query.district:
        return False
    if query.featured and not poi.featured:
        return False
    if query.categories and poi.category not in query.categories:
        return False
    if query.min_price is not None and (poi.price is None or poi.price < query.min_price):
        return False
    if query.max_price is not None and (poi.price is None or poi.price > query.max_price):
        return False
    if query.min_rating is not None and (poi.rating is None or poi.rating < query.min_rating):
        return False
    if query.search and query.search.casefold() not in poi.title.casefold():
        return False
    return True


def sort_key(poi: PointOfInterest) -> tuple:
    return (not poi.featured, poi.title, poi.id)


def apply_page(query: MapFilterQuery, pois: list[PointOfInterest]) -> tuple[list[PointOfInterest], int]:
    """Filter, order and paginate. Returns the page and the total number of matches."""
    matched = sorted((p for p in pois if matches(query, p)), key=sort_key)
    return matched[query.offset:query.offset + query.limit], len(matched)
