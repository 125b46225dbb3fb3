"""Share metadata resolution: Open Graph / Twitter tags for shared pages.

Each field is resolved through a fixed chain, highest priority first:

1. the per-entity override, unless it is marked ``use_default``;
2. the entity's own content (``seo_*`` field, the table's natural field, then
   a generic list of common column names);
3. the site-wide defaults, which themselves fall back to literal strings.

A lookup miss at any stage falls through to the next one, so resolution
always produces a result.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlparse

from jinja2 import Environment, FileSystemLoader, select_autoescape

import config
import db
from errors import DataSourceError
from models import ResolvedMeta, ShareLinksRequest, ShareOverride, SiteDefaults

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

DESCRIPTION_FIELDS = ["description", "tagline", "excerpt", "short_description", "overview"]
IMAGE_FIELDS = ["image_url", "thumbnail_image_url", "banner_image", "cover_image_url"]


@dataclass(frozen=True)
class EntityMapping:
    table: str
    title_field: str
    desc_field: str
    image_field: str
    route: str
    slug_field: str | None = "slug"


ENTITY_TABLE_MAP: dict[str, EntityMapping] = {
    "village": EntityMapping("villages", "name", "tagline", "thumbnail_image_url", "villages"),
    "district": EntityMapping("districts", "name", "overview", "image_url", "districts"),
    "provider": EntityMapping("tourism_providers", "name", "description", "image_url", "providers", None),
    "listing": EntityMapping("tourism_listings", "title", "short_description", "thumbnail_image_url", "listings"),
    "package": EntityMapping("travel_packages", "title", "short_description", "thumbnail_image_url",
                             "travel-packages"),
    "product": EntityMapping("local_products", "name", "description", "image_url", "products"),
    "story": EntityMapping("cms_stories", "title", "excerpt", "cover_image_url", "stories"),
    "event": EntityMapping("cms_events", "title", "description", "banner_image_url", "events"),
    "thought": EntityMapping("thoughts", "title", "content", "image_url", "thoughts"),
}

ROUTE_TO_ENTITY = {m.route: entity_type for entity_type, m in ENTITY_TABLE_MAP.items()}

OG_TYPES = {"product": "product", "story": "article", "thought": "article", "event": "event"}


def truncate(text: str, max_len: int) -> str:
    if not text or len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def ensure_absolute_url(url: str | None, base: str = config.SITE_ORIGIN) -> str | None:
    if not url:
        return None
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return "https:" + url
    return f"{base}{'' if url.startswith('/') else '/'}{url}"


def is_crawler(user_agent: str | None) -> bool:
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(bot.lower() in ua for bot in config.SOCIAL_CRAWLERS)


def is_site_url(url: str | None, origin: str = config.SITE_ORIGIN) -> bool:
    """True for http(s) URLs on the same host as ``origin``."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and parsed.netloc.lower() == urlparse(origin).netloc.lower()


def parse_page_url(page_url: str) -> tuple[str | None, str | None]:
    """Map a public page URL such as ``/villages/munsiyari`` to (entity_type, id-or-slug)."""
    parts = [p for p in urlparse(page_url).path.split("/") if p]
    if len(parts) >= 2 and parts[0] in ROUTE_TO_ENTITY:
        return ROUTE_TO_ENTITY[parts[0]], parts[1]
    return None, None


def with_site_name(title: str, site_name: str) -> str:
    if any(keyword in title for keyword in config.BRAND_KEYWORDS):
        return title
    return f"{title} | {site_name}"


def _first(*values) -> str | None:
    for v in values:
        if isinstance(v, str) and v.strip():
            return v
    return None


class MetaResolver:
    """Resolves ResolvedMeta for an entity against an injected SiteDefaults.

    ``store`` needs ``get_entity(table, column, value)`` and
    ``get_share_override(entity_type, entity_id)``; the ``db`` module serves.
    """

    def __init__(self, defaults: SiteDefaults, store=db, origin: str = config.SITE_ORIGIN) -> None:
        self.defaults = defaults
        self.store = store
        self.origin = origin.rstrip("/")

    def find_entity(self, entity_type: str, ident: str) -> dict | None:
        mapping = ENTITY_TABLE_MAP.get(entity_type)
        if mapping is None:
            return None
        try:
            entity = self.store.get_entity(mapping.table, "id", ident)
            if entity is None and mapping.slug_field and not UUID_RE.match(ident):
                entity = self.store.get_entity(mapping.table, mapping.slug_field, ident)
            return entity
        except DataSourceError as exc:
            logger.error("Entity lookup failed for %s/%s (%s): %s", entity_type, ident, exc.action, exc.message)
            return None

    def find_override(self, entity_type: str, entity_id: str) -> ShareOverride | None:
        try:
            row = self.store.get_share_override(entity_type, entity_id)
        except DataSourceError as exc:
            logger.error("Override lookup failed for %s/%s: %s", entity_type, entity_id, exc.message)
            return None
        return ShareOverride(**row) if row else None

    def resolve(self, entity_type: str | None, ident: str | None, page_url: str | None = None) -> ResolvedMeta:
        d = self.defaults
        title, description, image = d.default_title, d.default_description, d.default_image_url
        og_type = d.og_type
        if page_url and not is_site_url(page_url, self.origin):
            logger.warning("Ignoring off-site page URL %r", page_url)
            page_url = None
        canonical = page_url or self.origin

        entity = self.find_entity(entity_type, ident) if entity_type and ident else None
        if entity is not None:
            mapping = ENTITY_TABLE_MAP[entity_type]
            override = self.find_override(entity_type, str(entity["id"]))
            active = override if override and not override.use_default else ShareOverride()

            title = _first(active.title, entity.get("seo_title"), entity.get(mapping.title_field)) or title
            description = _first(
                active.description,
                entity.get("seo_description"),
                entity.get(mapping.desc_field),
                *(entity.get(f) for f in DESCRIPTION_FIELDS),
            ) or description
            image = _first(
                active.image_url,
                entity.get("seo_image_url"),
                entity.get(mapping.image_field),
                *(entity.get(f) for f in IMAGE_FIELDS),
            ) or image
            og_type = OG_TYPES.get(entity_type, config.FALLBACK_OG_TYPE)
            if not page_url:
                canonical = f"{self.origin}/{mapping.route}/{entity.get(mapping.slug_field or 'id') or entity['id']}"
        elif entity_type and ident:
            logger.info("No %s matching %r, using site defaults", entity_type, ident)

        return ResolvedMeta(
            title=truncate(with_site_name(title, d.site_name), config.TITLE_MAX_LEN),
            description=truncate(description, config.DESCRIPTION_MAX_LEN),
            image=ensure_absolute_url(image, self.origin),
            canonical_url=canonical,
            og_type=og_type,
            twitter_card=d.twitter_card,
            twitter_site=d.twitter_site,
            site_name=d.site_name,
            locale=d.locale,
        )


def load_site_defaults(store=db) -> SiteDefaults:
    """Site-wide defaults from the database; literal defaults when the rows are missing or unreadable."""
    try:
        return SiteDefaults.from_rows(store.get_site_share_row(), store.get_cms_settings_row())
    except DataSourceError as exc:
        logger.error("Could not load site share defaults (%s): %s", exc.action, exc.message)
        return SiteDefaults()


# Generic markers on top of the named crawlers, for the client-side redirect check
_GENERIC_BOT_MARKERS = ["bot", "crawl", "spider"]


def crawler_pattern() -> str:
    return "|".join(re.escape(m) for m in _GENERIC_BOT_MARKERS + config.SOCIAL_CRAWLERS)


def render_html(meta: ResolvedMeta) -> str:
    return _env.get_template("og_meta.html").render(meta=meta, crawler_pattern=crawler_pattern())


# ---------- Share links ----------

def substitute(template: str, values: dict[str, str]) -> str:
    result = template
    for key, value in values.items():
        result = result.replace("{" + key + "}", value or "")
    return result


def _with_ref(page_url: str, channel: str) -> str:
    return f"{page_url}{'&' if '?' in page_url else '?'}ref={channel}"


def build_share_links(
    request: ShareLinksRequest, defaults: SiteDefaults, override: ShareOverride | None = None
) -> dict:
    """Per-channel share URLs with templated messages. Returns ``{"links": ..., "templates": ...}``."""
    templates = dict(defaults.templates)
    if override and not override.use_default and override.templates:
        templates.update(override.templates)

    placeholders = {
        "entity_title": request.title or defaults.site_name,
        "entity_description": request.description or "",
        "short_url": request.page_url,
        "site_name": defaults.site_name,
    }

    links: dict[str, str] = {}
    for channel in config.SHARE_CHANNELS:
        url = _with_ref(request.page_url, channel)
        values = {**placeholders, "short_url": url}
        message = substitute(templates.get(channel, "{entity_title}"), values)
        if channel == "whatsapp":
            links[channel] = f"https://wa.me/?text={quote(message, safe='')}"
        elif channel == "facebook":
            links[channel] = (
                f"https://www.facebook.com/sharer/sharer.php?u={quote(url, safe='')}"
                f"&quote={quote(message, safe='')}"
            )
        elif channel == "twitter":
            links[channel] = f"https://twitter.com/intent/tweet?text={quote(message, safe='')}"
        elif channel == "linkedin":
            links[channel] = f"https://www.linkedin.com/sharing/share-offsite/?url={quote(url, safe='')}"
        elif channel == "email":
            subject = substitute(templates.get("email_subject", "{entity_title}"), placeholders)
            body = substitute(templates.get("email_body", "{entity_description}\n\n{short_url}"), values)
            links[channel] = f"mailto:?subject={quote(subject, safe='')}&body={quote(body, safe='')}"
    links["copy"] = _with_ref(request.page_url, "copy")

    return {"links": links, "templates": templates}
