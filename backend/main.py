"""FastAPI application for map POIs and share metadata."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Header, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

import config
import db
from errors import ServiceError
from filters import parse_filter_query, parse_search_query
from geojson import clusters_to_feature_collection, districts_to_feature_collection, pois_to_feature_collection
from grid import cluster_pois
from meta import MetaResolver, build_share_links, is_crawler, load_site_defaults, parse_page_url, render_html
from models import SearchResult, ShareLinksRequest
from refresh import refresh_cache, verify_token
from sources import DataSource, default_source

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(title="Map POI Service", version="1.0.0", lifespan=lifespan)

# CORS: allow frontend origin(s)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cache_headers(max_age: int, stale: int | None = None) -> dict[str, str]:
    value = f"public, max-age={max_age}"
    if stale:
        value += f", stale-while-revalidate={stale}"
    return {"Cache-Control": value}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    action = getattr(exc, "action", "") or request.url.path
    if exc.status_code >= 500:
        logger.error("%s %s failed [%s]: %s", request.method, request.url.path, action, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


# ---------- Dependencies ----------

def get_source() -> DataSource:
    return default_source()


def get_meta_store():
    return db


# ---------- Health check ----------

@app.get("/health")
async def health():
    return {"status": "ok"}


# ---------- Map POIs ----------

@app.get("/map-pois/pois")
@app.get("/map-pois/map-pois")
async def get_pois(request: Request, source: DataSource = Depends(get_source)):
    query = parse_filter_query(request.query_params)
    page = source.fetch(query)
    if query.wants_clusters:
        clusters = cluster_pois(page.items, query.zoom)
        body = clusters_to_feature_collection(clusters, page.total, query)
    else:
        body = pois_to_feature_collection(page.items, page.total, query)
    return JSONResponse(body, headers=_cache_headers(config.POI_CACHE_SECONDS))


@app.get("/map-pois/highlights")
async def get_highlights():
    return JSONResponse(db.get_highlights(), headers=_cache_headers(config.HIGHLIGHTS_CACHE_SECONDS))


@app.get("/map-pois/districts")
async def get_districts():
    body = districts_to_feature_collection(db.get_published_districts())
    return JSONResponse(body, headers=_cache_headers(config.DISTRICTS_CACHE_SECONDS))


@app.get("/map-pois/search")
async def search_pois(request: Request, source: DataSource = Depends(get_source)):
    query = parse_search_query(request.query_params)
    if query is None:
        return []
    page = source.fetch(query)
    return [SearchResult.from_poi(p).model_dump() for p in page.items]


@app.post("/map-pois/refresh-cache")
async def refresh_cache_endpoint(authorization: str | None = Header(default=None)):
    await verify_token(authorization)
    return await refresh_cache(authorization)


@app.api_route("/map-pois/{action}", methods=["GET", "POST"])
async def unknown_action(action: str):
    return JSONResponse({"error": "Unknown action"}, status_code=400)


# ---------- Share metadata ----------

def _meta_response(request: Request, store, entity_type: str | None, ident: str | None, page_url: str | None):
    resolver = MetaResolver(load_site_defaults(store), store=store)
    meta = resolver.resolve(entity_type, ident, page_url)
    user_agent = request.headers.get("user-agent")
    logger.info(
        "Resolved meta for %s/%s (crawler=%s): %s",
        entity_type, ident, is_crawler(user_agent), meta.title,
    )
    headers = _cache_headers(config.META_CACHE_SECONDS, config.META_STALE_SECONDS)
    if "application/json" in request.headers.get("accept", ""):
        return JSONResponse(meta.model_dump(by_alias=True), headers=headers)
    return HTMLResponse(render_html(meta), headers=headers)


@app.get("/og-meta/resolve")
async def resolve_meta_from_url(
    request: Request,
    url: str | None = Query(None, description="Public page URL to resolve"),
    store=Depends(get_meta_store),
):
    entity_type, ident = parse_page_url(url) if url else (None, None)
    return _meta_response(request, store, entity_type, ident, url)


@app.get("/og-meta/resolve/{entity_type}/{entity_id}")
@app.get("/og-meta/{entity_type}/{entity_id}")
async def resolve_meta(request: Request, entity_type: str, entity_id: str, store=Depends(get_meta_store)):
    return _meta_response(request, store, entity_type, entity_id, None)


@app.post("/share-preview/generate-links")
async def generate_share_links(body: ShareLinksRequest, store=Depends(get_meta_store)):
    defaults = load_site_defaults(store)
    override = None
    if body.entity_id:
        override = MetaResolver(defaults, store=store).find_override(body.entity_type, body.entity_id)
    return build_share_links(body, defaults, override)
