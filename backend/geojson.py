"""GeoJSON FeatureCollection assembly for POIs, clusters and districts.

Coordinates are always emitted in GeoJSON order: [lng, lat].
"""

from filters import MapFilterQuery
from grid import Cluster
from models import PointOfInterest


def _point(lat: float, lng: float) -> dict:
    return {"type": "Point", "coordinates": [lng, lat]}


def poi_properties(poi: PointOfInterest) -> dict:
    """Well-known fields plus pass-through extras; well-known fields win on key collision."""
    props: dict = dict(poi.extra)
    props.update({
        "id": poi.id,
        "type": poi.entity_type,
        "title": poi.title,
        "slug": poi.slug,
        "excerpt": poi.excerpt,
        "image": poi.image,
        "category": poi.category,
        "district": poi.district_name,
        "village": poi.village_name,
        "price": poi.price,
        "rating": poi.rating,
        "featured": poi.featured,
        "tags": list(poi.tags),
    })
    return props


def poi_feature(poi: PointOfInterest) -> dict:
    return {
        "type": "Feature",
        "id": poi.id,
        "geometry": _point(poi.lat, poi.lng),
        "properties": poi_properties(poi),
    }


def cluster_feature(cluster: Cluster) -> dict:
    return {
        "type": "Feature",
        "geometry": _point(cluster.lat, cluster.lng),
        "properties": {
            "cluster": True,
            "point_count": cluster.count,
            "types": dict(cluster.types),
            "bounds": cluster.bounds.to_dict(),
        },
    }


def _metadata(total: int, query: MapFilterQuery) -> dict:
    return {"total": total, "offset": query.offset, "limit": query.limit}


def pois_to_feature_collection(pois: list[PointOfInterest], total: int, query: MapFilterQuery) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [poi_feature(p) for p in pois],
        "metadata": _metadata(total, query),
    }


def clusters_to_feature_collection(clusters: list[Cluster], total: int, query: MapFilterQuery) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [cluster_feature(c) for c in clusters],
        "metadata": _metadata(total, query),
    }


def districts_to_feature_collection(districts: list[dict]) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "id": d["id"],
                "geometry": _point(d["latitude"], d["longitude"]),
                "properties": {
                    "id": d["id"],
                    "type": "district",
                    "title": d["name"],
                    "slug": d.get("slug"),
                    "excerpt": d.get("overview"),
                    "image": d.get("image_url"),
                },
            }
            for d in districts
        ],
    }
