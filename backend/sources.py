"""POI data sources: the cache query, the snapshot fallback and their failover composition."""

import logging
from dataclasses import dataclass

import pydantic

import config
import db
from errors import DataSourceError
from filters import MapFilterQuery, apply_page, to_sql
from models import PointOfInterest

logger = logging.getLogger(__name__)


@dataclass
class PoiPage:
    items: list[PointOfInterest]
    total: int


def row_to_poi(row: dict) -> PointOfInterest | None:
    """Convert a cache row to a POI; rows without valid coordinates yield None."""
    if row.get("lat") is None or row.get("lng") is None:
        return None
    extra = {k: str(v) for k, v in (row.get("properties") or {}).items() if v is not None}
    try:
        return PointOfInterest(
            id=str(row["entity_id"]),
            entity_type=row["entity_type"],
            title=row["title"],
            slug=row.get("slug"),
            excerpt=row.get("excerpt"),
            image=row.get("image_url"),
            category=row.get("category"),
            district_id=row.get("district_id"),
            district_name=row.get("district_name"),
            village_name=row.get("village_name"),
            price=row.get("price_min"),
            rating=row.get("rating"),
            featured=bool(row.get("is_featured")),
            tags=list(row.get("tags") or []),
            lat=row["lat"],
            lng=row["lng"],
            extra=extra,
        )
    except pydantic.ValidationError as exc:
        logger.warning("Skipping invalid POI row %s/%s: %s",
                       row.get("entity_type"), row.get("entity_id"), exc.errors()[0]["msg"])
        return None


def rows_to_pois(rows: list[dict]) -> list[PointOfInterest]:
    return [p for p in (row_to_poi(r) for r in rows) if p is not None]


class DataSource:
    name = "base"

    def fetch(self, query: MapFilterQuery) -> PoiPage:
        raise NotImplementedError


class PrimarySource(DataSource):
    """Filters, orders and paginates inside the database against the POI cache table."""

    name = "primary"

    def __init__(self, table: str = config.POI_CACHE_TABLE) -> None:
        self.table = table

    def fetch(self, query: MapFilterQuery) -> PoiPage:
        where, params = to_sql(query)
        rows, total = db.select_pois(self.table, where, params, query.limit, query.offset)
        return PoiPage(items=rows_to_pois(rows), total=total)


class FallbackSource(DataSource):
    """Reads every active row of the snapshot table and evaluates the filters in memory."""

    name = "fallback"

    def __init__(self, table: str = config.POI_FALLBACK_TABLE) -> None:
        self.table = table

    def fetch(self, query: MapFilterQuery) -> PoiPage:
        pois = rows_to_pois(db.get_active_pois(self.table))
        items, total = apply_page(query, pois)
        return PoiPage(items=items, total=total)


class FailoverSource(DataSource):
    """Tries ``primary`` once and, on DataSourceError, ``fallback`` once. No retries."""

    name = "failover"

    def __init__(self, primary: DataSource, fallback: DataSource) -> None:
        self.primary = primary
        self.fallback = fallback

    def fetch(self, query: MapFilterQuery) -> PoiPage:
        try:
            return self.primary.fetch(query)
        except DataSourceError as exc:
            logger.warning(
                "%s source failed (%s: %s), using %s source",
                self.primary.name, exc.action, exc.message, self.fallback.name,
            )
        return self.fallback.fetch(query)


def default_source() -> DataSource:
    return FailoverSource(PrimarySource(), FallbackSource())
