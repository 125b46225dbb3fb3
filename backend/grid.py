"""Grid clustering: bucket POIs into degree-sized cells at low zoom levels.

Cells are sized in degrees, not meters, so clusters cover less ground east-west
as latitude grows.
"""

import math
from dataclasses import dataclass, field

import config
from models import PointOfInterest


@dataclass
class Bounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def extend(self, lat: float, lng: float) -> None:
        self.min_lat = min(self.min_lat, lat)
        self.max_lat = max(self.max_lat, lat)
        self.min_lng = min(self.min_lng, lng)
        self.max_lng = max(self.max_lng, lng)

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

    def to_dict(self) -> dict[str, float]:
        return {
            "minLat": self.min_lat,
            "maxLat": self.max_lat,
            "minLng": self.min_lng,
            "maxLng": self.max_lng,
        }


@dataclass
class Cluster:
    lat: float
    lng: float
    bounds: Bounds
    count: int = 0
    types: dict[str, int] = field(default_factory=dict)

    def add(self, poi: PointOfInterest) -> None:
        self.count += 1
        self.types[poi.entity_type] = self.types.get(poi.entity_type, 0) + 1
        # Incremental mean
        self.lat = (self.lat * (self.count - 1) + poi.lat) / self.count
        self.lng = (self.lng * (self.count - 1) + poi.lng) / self.count
        self.bounds.extend(poi.lat, poi.lng)


def grid_size(zoom: int) -> float:
    """Cell edge in degrees: 2 ** (8 - min(zoom, 8)). Lower zoom, larger cells."""
    return float(2 ** (config.CLUSTER_BASE_EXPONENT - min(zoom, config.CLUSTER_BASE_EXPONENT)))


def cell_key(lat: float, lng: float, size: float) -> tuple[int, int]:
    return math.floor(lng / size), math.floor(lat / size)


def cluster_pois(pois: list[PointOfInterest], zoom: int) -> list[Cluster]:
    """Single-pass reduction to one cluster per non-empty cell, in first-seen order."""
    size = grid_size(zoom)
    clusters: dict[tuple[int, int], Cluster] = {}
    for poi in pois:
        key = cell_key(poi.lat, poi.lng, size)
        cluster = clusters.get(key)
        if cluster is None:
            cluster = Cluster(
                lat=poi.lat,
                lng=poi.lng,
                bounds=Bounds(poi.lat, poi.lat, poi.lng, poi.lng),
            )
            clusters[key] = cluster
        cluster.add(poi)
    return list(clusters.values())
