"""Pydantic models for POIs, search results and share metadata."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

import config


class PointOfInterest(BaseModel):
    id: str
    entity_type: str
    title: str
    slug: str | None = None
    excerpt: str | None = None
    image: str | None = None
    category: str | None = None
    district_id: str | None = None
    district_name: str | None = None
    village_name: str | None = None
    price: float | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    featured: bool = False
    tags: list[str] = []
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    # Pass-through properties stored with the cached record
    extra: dict[str, str] = {}

    @field_validator("entity_type")
    @classmethod
    def known_type(cls, v: str) -> str:
        if v not in config.ENTITY_TYPES:
            raise ValueError(f"unknown entity type {v!r}")
        return v


class SearchResult(BaseModel):
    id: str
    type: str
    title: str
    slug: str | None = None
    excerpt: str | None = None
    lat: float
    lng: float
    district: str | None = None
    category: str | None = None
    image: str | None = None

    @classmethod
    def from_poi(cls, poi: PointOfInterest) -> "SearchResult":
        return cls(
            id=poi.id,
            type=poi.entity_type,
            title=poi.title,
            slug=poi.slug,
            excerpt=poi.excerpt,
            lat=poi.lat,
            lng=poi.lng,
            district=poi.district_name,
            category=poi.category,
            image=poi.image,
        )


class SiteDefaults(BaseModel):
    """Site-wide share defaults, merged from the share-preview row and CMS settings."""

    default_title: str = config.SITE_NAME
    default_description: str = config.FALLBACK_DESCRIPTION
    default_image_url: str | None = None
    og_type: str = config.FALLBACK_OG_TYPE
    twitter_card: str = config.FALLBACK_TWITTER_CARD
    twitter_site: str = config.TWITTER_SITE
    site_name: str = config.SITE_NAME
    locale: str = config.LOCALE
    templates: dict[str, str] = {}

    @classmethod
    def from_rows(cls, share_row: dict | None, cms_row: dict | None) -> "SiteDefaults":
        share_row = share_row or {}
        cms_row = cms_row or {}
        site_name = cms_row.get("site_name") or config.SITE_NAME
        return cls(
            default_title=share_row.get("default_title") or site_name,
            default_description=(
                share_row.get("default_description")
                or cms_row.get("meta_description")
                or config.FALLBACK_DESCRIPTION
            ),
            default_image_url=share_row.get("default_image_url") or None,
            og_type=share_row.get("og_type") or config.FALLBACK_OG_TYPE,
            twitter_card=share_row.get("twitter_card") or config.FALLBACK_TWITTER_CARD,
            twitter_site=share_row.get("twitter_site") or config.TWITTER_SITE,
            site_name=site_name,
            templates=share_row.get("templates") or {},
        )


class ShareOverride(BaseModel):
    """Per-entity manual override; ignored while ``use_default`` is true."""

    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    use_default: bool = True
    templates: dict[str, str] = {}


class ResolvedMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    description: str
    image: str | None = None
    canonical_url: str
    og_type: str
    twitter_card: str
    twitter_site: str
    site_name: str
    locale: str


class ShareLinksRequest(BaseModel):
    entity_type: str
    entity_id: str | None = None
    page_url: str
    title: str | None = None
    description: str | None = None
