"""Database layer: schema, read queries, seed helpers and the local POI cache rebuild.

Supports two modes:
- Remote (Turso): when TURSO_DATABASE_URL is set, connects via libsql with embedded replica.
- Local (dev): when TURSO_DATABASE_URL is empty, uses a local SQLite file via libsql.

Every read wraps driver failures in DataSourceError tagged with the action name.
"""

import json
from datetime import datetime, timezone

import libsql_experimental as libsql

import config
from errors import DataSourceError

TURSO_DATABASE_URL = config.TURSO_DATABASE_URL
TURSO_AUTH_TOKEN = config.TURSO_AUTH_TOKEN
DB_PATH = config.DB_PATH


def get_conn():
    if TURSO_DATABASE_URL:
        conn = libsql.connect(
            "local.db",
            sync_url=TURSO_DATABASE_URL,
            auth_token=TURSO_AUTH_TOKEN,
        )
        conn.sync()
    else:
        conn = libsql.connect(str(DB_PATH))
    return conn


def _rows_to_dicts(cursor) -> list[dict]:
    """Convert cursor results to list of dicts using cursor.description."""
    if cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _row_to_dict(cursor) -> dict | None:
    """Convert single cursor result to dict."""
    if cursor.description is None:
        return None
    columns = [desc[0] for desc in cursor.description]
    row = cursor.fetchone()
    if row is None:
        return None
    return dict(zip(columns, row))


def _fetch_all(action: str, sql: str, params: tuple = ()) -> list[dict]:
    try:
        conn = get_conn()
        try:
            return _rows_to_dicts(conn.execute(sql, params))
        finally:
            conn.close()
    except Exception as exc:
        raise DataSourceError(str(exc), action=action) from exc


def _fetch_one(action: str, sql: str, params: tuple = ()) -> dict | None:
    try:
        conn = get_conn()
        try:
            return _row_to_dict(conn.execute(sql, params))
        finally:
            conn.close()
    except Exception as exc:
        raise DataSourceError(str(exc), action=action) from exc


def _commit(conn) -> None:
    conn.commit()
    if TURSO_DATABASE_URL:
        conn.sync()


def _json_or(value, default):
    if not value:
        return default
    if isinstance(value, (dict, list)):
        return value
    return json.loads(value)


# ---- Schema ----

_POI_COLUMNS = """
    entity_id     TEXT NOT NULL,
    entity_type   TEXT NOT NULL,
    title         TEXT NOT NULL,
    title_search  TEXT,
    slug          TEXT,
    excerpt       TEXT,
    image_url     TEXT,
    category      TEXT,
    district_id   TEXT,
    district_name TEXT,
    village_name  TEXT,
    price_min     REAL,
    rating        REAL,
    is_featured   INTEGER NOT NULL DEFAULT 0,
    is_active     INTEGER NOT NULL DEFAULT 1,
    tags          TEXT,
    properties    TEXT,
    lat           REAL,
    lng           REAL,
    last_updated  TEXT,
    PRIMARY KEY (entity_type, entity_id)
"""

_SEO = "seo_title TEXT, seo_description TEXT, seo_image_url TEXT"

# Content tables the map cache and the share metadata are built from
ENTITY_TABLES: dict[str, str] = {
    "districts": f"""
        id TEXT PRIMARY KEY, name TEXT NOT NULL, slug TEXT, overview TEXT, image_url TEXT,
        latitude REAL, longitude REAL, status TEXT DEFAULT 'draft', {_SEO}
    """,
    "villages": f"""
        id TEXT PRIMARY KEY, name TEXT NOT NULL, slug TEXT, tagline TEXT, description TEXT,
        thumbnail_image_url TEXT, district_id TEXT, latitude REAL, longitude REAL,
        status TEXT DEFAULT 'draft', is_featured INTEGER DEFAULT 0, {_SEO}
    """,
    "tourism_providers": f"""
        id TEXT PRIMARY KEY, name TEXT NOT NULL, description TEXT, image_url TEXT, category TEXT,
        district_id TEXT, village_id TEXT, latitude REAL, longitude REAL, rating REAL,
        is_active INTEGER DEFAULT 1, is_featured INTEGER DEFAULT 0, {_SEO}
    """,
    "tourism_listings": f"""
        id TEXT PRIMARY KEY, title TEXT NOT NULL, slug TEXT, short_description TEXT,
        thumbnail_image_url TEXT, category TEXT, base_price REAL, rating REAL, district_id TEXT,
        latitude REAL, longitude REAL, is_active INTEGER DEFAULT 1, is_featured INTEGER DEFAULT 0, {_SEO}
    """,
    "travel_packages": f"""
        id TEXT PRIMARY KEY, title TEXT NOT NULL, slug TEXT, short_description TEXT,
        thumbnail_image_url TEXT, price_per_person REAL, district_id TEXT,
        latitude REAL, longitude REAL, is_active INTEGER DEFAULT 1, is_featured INTEGER DEFAULT 0, {_SEO}
    """,
    "local_products": f"""
        id TEXT PRIMARY KEY, name TEXT NOT NULL, slug TEXT, description TEXT, image_url TEXT, {_SEO}
    """,
    "cms_stories": f"""
        id TEXT PRIMARY KEY, title TEXT NOT NULL, slug TEXT, excerpt TEXT, cover_image_url TEXT, {_SEO}
    """,
    "cms_events": f"""
        id TEXT PRIMARY KEY, title TEXT NOT NULL, slug TEXT, description TEXT, banner_image_url TEXT,
        district_id TEXT, latitude REAL, longitude REAL, status TEXT DEFAULT 'draft',
        is_featured INTEGER DEFAULT 0, {_SEO}
    """,
    "thoughts": f"""
        id TEXT PRIMARY KEY, title TEXT NOT NULL, slug TEXT, content TEXT, image_url TEXT, {_SEO}
    """,
}

_SUPPORT_TABLES: dict[str, str] = {
    config.POI_CACHE_TABLE: _POI_COLUMNS,
    config.POI_FALLBACK_TABLE: _POI_COLUMNS,
    "map_highlights": """
        id TEXT PRIMARY KEY, title TEXT NOT NULL, slug TEXT, excerpt TEXT, description TEXT,
        image_url TEXT, highlight_type TEXT, geometry_type TEXT, coordinates TEXT,
        center_lat REAL, center_lng REAL, radius_meters REAL,
        stroke_color TEXT, fill_color TEXT, stroke_width REAL,
        is_featured INTEGER DEFAULT 0, is_active INTEGER DEFAULT 1,
        status TEXT DEFAULT 'draft', priority INTEGER DEFAULT 0
    """,
    "entity_share_preview": """
        entity_type TEXT NOT NULL, entity_id TEXT NOT NULL, title TEXT, description TEXT,
        image_url TEXT, use_default INTEGER NOT NULL DEFAULT 1, templates TEXT,
        PRIMARY KEY (entity_type, entity_id)
    """,
    "site_share_preview": """
        id INTEGER PRIMARY KEY, singleton_flag INTEGER NOT NULL DEFAULT 1,
        default_title TEXT, default_description TEXT, default_image_url TEXT,
        og_type TEXT, twitter_card TEXT, twitter_site TEXT, templates TEXT
    """,
    "cms_site_settings": """
        id INTEGER PRIMARY KEY, site_name TEXT, meta_description TEXT, tagline TEXT
    """,
}

TABLES = {**ENTITY_TABLES, **_SUPPORT_TABLES}


def init_db() -> None:
    conn = get_conn()
    for name, columns in TABLES.items():
        conn.execute(f"CREATE TABLE IF NOT EXISTS {name} ({columns})")
    conn.execute(
        f"CREATE INDEX IF NOT EXISTS idx_{config.POI_CACHE_TABLE}_latlng "
        f"ON {config.POI_CACHE_TABLE} (lat, lng)"
    )
    _commit(conn)
    conn.close()


# ---- Seed / admin writes ----

def _to_column(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def insert_row(table: str, row: dict) -> None:
    """Insert or replace one row; dict/list values are stored as JSON."""
    if table not in TABLES:
        raise ValueError(f"Unknown table {table}")
    columns = list(row)
    values = tuple(_to_column(v) for v in row.values())
    conn = get_conn()
    conn.execute(
        f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join('?' for _ in columns)})",
        values,
    )
    _commit(conn)
    conn.close()


def upsert_pois(pois: list[dict], table: str = config.POI_CACHE_TABLE) -> None:
    for p in pois:
        insert_row(table, {**p, "title_search": p["title"].casefold()})


# ---- POI cache ----

def _decode_poi_row(d: dict) -> dict:
    d["tags"] = _json_or(d.get("tags"), [])
    d["properties"] = _json_or(d.get("properties"), {})
    d["is_featured"] = bool(d.get("is_featured"))
    return d


# Rows PointOfInterest would reject never reach a page or a total
_VALID_POI = (
    "is_active = 1 AND lat BETWEEN -90 AND 90 AND lng BETWEEN -180 AND 180 "
    "AND (rating IS NULL OR rating BETWEEN 0 AND 5) "
    f"AND entity_type IN ({', '.join(repr(t) for t in config.ENTITY_TYPES)})"
)


def select_pois(
    table: str, where: str, params: tuple, limit: int, offset: int
) -> tuple[list[dict], int]:
    """Return one ordered page of cache rows matching ``where`` plus the total match count."""
    base = f"FROM {table} WHERE {_VALID_POI}"
    if where:
        base += f" AND {where}"
    action = f"select_pois:{table}"
    total_row = _fetch_one(action, f"SELECT COUNT(*) AS total {base}", params)
    rows = _fetch_all(
        action,
        f"SELECT * {base} ORDER BY is_featured DESC, title ASC, entity_id ASC LIMIT ? OFFSET ?",
        params + (limit, offset),
    )
    total = total_row["total"] if total_row else 0
    return [_decode_poi_row(r) for r in rows], total


def get_active_pois(table: str) -> list[dict]:
    rows = _fetch_all(
        f"get_active_pois:{table}",
        f"SELECT * FROM {table} WHERE {_VALID_POI}",
    )
    return [_decode_poi_row(r) for r in rows]


# Each SELECT yields the cache columns in insert order; the trailing ? is last_updated.
_CACHE_SOURCES = [
    """SELECT v.id, 'village', v.name, v.slug, v.tagline, v.thumbnail_image_url, NULL,
              v.district_id, d.name, v.name, NULL, NULL, COALESCE(v.is_featured, 0), 1,
              '[]', '{}', v.latitude, v.longitude, ?
       FROM villages v LEFT JOIN districts d ON d.id = v.district_id
       WHERE v.status = 'published' AND v.latitude IS NOT NULL AND v.longitude IS NOT NULL""",
    """SELECT p.id, 'provider', p.name, NULL, p.description, p.image_url, p.category,
              p.district_id, d.name, vi.name, NULL, p.rating, COALESCE(p.is_featured, 0), 1,
              '[]', '{}', p.latitude, p.longitude, ?
       FROM tourism_providers p
       LEFT JOIN districts d ON d.id = p.district_id
       LEFT JOIN villages vi ON vi.id = p.village_id
       WHERE p.is_active = 1 AND p.latitude IS NOT NULL AND p.longitude IS NOT NULL""",
    """SELECT l.id, 'listing', l.title, l.slug, l.short_description, l.thumbnail_image_url,
              l.category, l.district_id, d.name, NULL, l.base_price, l.rating,
              COALESCE(l.is_featured, 0), 1, '[]', '{}', l.latitude, l.longitude, ?
       FROM tourism_listings l LEFT JOIN districts d ON d.id = l.district_id
       WHERE l.is_active = 1 AND l.latitude IS NOT NULL AND l.longitude IS NOT NULL""",
    """SELECT t.id, 'package', t.title, t.slug, t.short_description, t.thumbnail_image_url,
              NULL, t.district_id, d.name, NULL, t.price_per_person, NULL,
              COALESCE(t.is_featured, 0), 1, '[]', '{}', t.latitude, t.longitude, ?
       FROM travel_packages t LEFT JOIN districts d ON d.id = t.district_id
       WHERE t.is_active = 1 AND t.latitude IS NOT NULL AND t.longitude IS NOT NULL""",
    """SELECT e.id, 'event', e.title, e.slug, e.description, e.banner_image_url,
              NULL, e.district_id, d.name, NULL, NULL, NULL,
              COALESCE(e.is_featured, 0), 1, '[]', '{}', e.latitude, e.longitude, ?
       FROM cms_events e LEFT JOIN districts d ON d.id = e.district_id
       WHERE e.status = 'published' AND e.latitude IS NOT NULL AND e.longitude IS NOT NULL""",
]

_CACHE_INSERT = """INSERT OR REPLACE INTO {table}
    (entity_id, entity_type, title, slug, excerpt, image_url, category,
     district_id, district_name, village_name, price_min, rating, is_featured, is_active,
     tags, properties, lat, lng, last_updated)
    """


def rebuild_poi_cache() -> int:
    """Repopulate the cache table from the content tables and mirror it into the snapshot."""
    cache, snapshot = config.POI_CACHE_TABLE, config.POI_FALLBACK_TABLE
    now = datetime.now(timezone.utc).isoformat()
    try:
        conn = get_conn()
        try:
            conn.execute(f"DELETE FROM {cache}")
            for select in _CACHE_SOURCES:
                conn.execute(_CACHE_INSERT.format(table=cache) + select, (now,))
            titles = _rows_to_dicts(conn.execute(f"SELECT entity_type, entity_id, title FROM {cache}"))
            for t in titles:
                conn.execute(
                    f"UPDATE {cache} SET title_search = ? WHERE entity_type = ? AND entity_id = ?",
                    (t["title"].casefold(), t["entity_type"], t["entity_id"]),
                )
            conn.execute(f"DELETE FROM {snapshot}")
            conn.execute(f"INSERT INTO {snapshot} SELECT * FROM {cache}")
            _commit(conn)
            row = _row_to_dict(conn.execute(f"SELECT COUNT(*) AS total FROM {cache}"))
        finally:
            conn.close()
    except Exception as exc:
        raise DataSourceError(str(exc), action="rebuild_poi_cache") from exc
    return row["total"] if row else 0


# ---- Highlights / districts ----

def get_highlights() -> list[dict]:
    rows = _fetch_all(
        "get_highlights",
        "SELECT * FROM map_highlights WHERE is_active = 1 AND status = 'published' "
        "ORDER BY priority DESC",
    )
    for d in rows:
        d["coordinates"] = _json_or(d.get("coordinates"), [])
        d["is_featured"] = bool(d.get("is_featured"))
        d["is_active"] = bool(d.get("is_active"))
    return rows


def get_published_districts() -> list[dict]:
    return _fetch_all(
        "get_published_districts",
        "SELECT id, name, slug, latitude, longitude, overview, image_url FROM districts "
        "WHERE status = 'published' AND latitude IS NOT NULL AND longitude IS NOT NULL "
        "ORDER BY name",
    )


# ---- Share metadata ----

def get_site_share_row() -> dict | None:
    d = _fetch_one(
        "get_site_share_row",
        "SELECT * FROM site_share_preview WHERE singleton_flag = 1 LIMIT 1",
    )
    if d:
        d["templates"] = _json_or(d.get("templates"), {})
    return d


def get_cms_settings_row() -> dict | None:
    return _fetch_one(
        "get_cms_settings_row",
        "SELECT site_name, meta_description, tagline FROM cms_site_settings LIMIT 1",
    )


def get_entity(table: str, column: str, value: str) -> dict | None:
    if table not in ENTITY_TABLES:
        raise ValueError(f"Unknown entity table {table}")
    return _fetch_one(
        f"get_entity:{table}",
        f"SELECT * FROM {table} WHERE {column} = ? LIMIT 1",
        (value,),
    )


def get_share_override(entity_type: str, entity_id: str) -> dict | None:
    d = _fetch_one(
        "get_share_override",
        "SELECT * FROM entity_share_preview WHERE entity_type = ? AND entity_id = ?",
        (entity_type, entity_id),
    )
    if d:
        d["use_default"] = bool(d.get("use_default"))
        d["templates"] = _json_or(d.get("templates"), {})
    return d
