"""POI cache refresh: bearer-token check and rebuild trigger.

When AUTH_USER_URL is set the token is verified against the auth service,
otherwise only its presence is checked. When REFRESH_RPC_URL is set the rebuild
is delegated to that procedure over HTTP, otherwise the cache is rebuilt from
the local content tables.
"""

import logging
import time
from contextlib import asynccontextmanager

import httpx

import config
import db
from errors import DataSourceError, UnauthorizedError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _client(client: httpx.AsyncClient | None):
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT_S) as owned:
        yield owned


def _headers(authorization: str) -> dict[str, str]:
    headers = {"Authorization": authorization}
    if config.SERVICE_API_KEY:
        headers["apikey"] = config.SERVICE_API_KEY
    return headers


async def verify_token(authorization: str | None, client: httpx.AsyncClient | None = None) -> None:
    if not authorization:
        raise UnauthorizedError("Unauthorized")
    if not config.AUTH_USER_URL:
        return
    async with _client(client) as c:
        try:
            resp = await c.get(config.AUTH_USER_URL, headers=_headers(authorization))
        except httpx.HTTPError as exc:
            raise DataSourceError(f"Auth service unreachable: {exc}", action="verify_token") from exc
    if resp.status_code != 200:
        logger.warning("Token rejected by auth service: HTTP %d", resp.status_code)
        raise UnauthorizedError("Unauthorized")


async def refresh_cache(authorization: str, client: httpx.AsyncClient | None = None) -> dict:
    start_time = time.time()
    if config.REFRESH_RPC_URL:
        async with _client(client) as c:
            try:
                resp = await c.post(config.REFRESH_RPC_URL, headers=_headers(authorization), json={})
            except httpx.HTTPError as exc:
                raise DataSourceError(str(exc), action="refresh_map_poi_cache") from exc
        if resp.status_code >= 400:
            raise DataSourceError(
                f"Refresh procedure returned HTTP {resp.status_code}: {resp.text[:200]}",
                action="refresh_map_poi_cache",
            )
        count = None
    else:
        count = db.rebuild_poi_cache()

    logger.info("POI cache refreshed in %.1fs (%s rows)", time.time() - start_time,
                "remote" if count is None else count)
    result = {"success": True, "message": "POI cache refreshed"}
    if count is not None:
        result["count"] = count
    return result
