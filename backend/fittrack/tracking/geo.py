"""Route geometry: recorded points and great-circle distances."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from fittrack.core.constants import EARTH_RADIUS_KM, LAT_MAX, LAT_MIN, LNG_MAX, LNG_MIN


class InvalidGeoPoint(ValueError):
    """Coordinate outside the valid latitude/longitude range (or not a number)."""


def _coord(name: str, value: Any, lo: float, hi: float) -> float:
    if isinstance(value, bool):
        raise InvalidGeoPoint(f"{name} must be a number, got {value!r}")
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidGeoPoint(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(v) or v < lo or v > hi:
        raise InvalidGeoPoint(f"{name} {value!r} outside [{lo:g}, {hi:g}]")
    return v


def _timestamp(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidGeoPoint(f"timestamp must be a number, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidGeoPoint(f"timestamp must be a number, got {value!r}") from None
    if not math.isfinite(v):
        raise InvalidGeoPoint(f"timestamp {value!r} is not finite")
    return int(v)


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A single recorded position.

    Attributes:
        lat: Latitude in decimal degrees, within [-90, 90].
        lng: Longitude in decimal degrees, within [-180, 180].
        timestamp_ms: Unix epoch milliseconds of the fix.
    """

    lat: float
    lng: float
    timestamp_ms: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "lat", _coord("latitude", self.lat, LAT_MIN, LAT_MAX))
        object.__setattr__(self, "lng", _coord("longitude", self.lng, LNG_MIN, LNG_MAX))
        object.__setattr__(self, "timestamp_ms", _timestamp(self.timestamp_ms))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GeoPoint":
        try:
            return cls(lat=data["lat"], lng=data["lng"], timestamp_ms=data["timestamp_ms"])
        except KeyError as exc:
            raise InvalidGeoPoint(f"missing field {exc.args[0]!r}") from None

    def to_dict(self) -> dict[str, Any]:
        return {"lat": self.lat, "lng": self.lng, "timestamp_ms": self.timestamp_ms}


def as_geo_point(value: GeoPoint | Mapping[str, Any]) -> GeoPoint:
    """Accept a GeoPoint or a {lat, lng, timestamp_ms} mapping."""

    if isinstance(value, GeoPoint):
        return value
    return GeoPoint.from_dict(value)


def point_distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in km between two points (Haversine, R = 6371 km)."""

    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def route_distance_km(route: Sequence[GeoPoint]) -> float:
    """Total distance of a route, summed pairwise in route order.

    Live tracking adds the same per-segment terms one append at a time, so the
    two results match exactly for the same point sequence.
    """

    if len(route) < 2:
        return 0.0
    total = 0.0
    for i in range(1, len(route)):
        total += point_distance_km(route[i - 1], route[i])
    return total


def route_geojson(route: Sequence[GeoPoint]) -> dict[str, Any] | None:
    """Route as a GeoJSON LineString ([lng, lat] order), or None when empty."""

    if not route:
        return None
    return {"type": "LineString", "coordinates": [[p.lng, p.lat] for p in route]}


def route_bounds(route: Sequence[GeoPoint]) -> dict[str, float] | None:
    if not route:
        return None
    lats = [p.lat for p in route]
    lngs = [p.lng for p in route]
    return {
        "minLat": min(lats),
        "minLng": min(lngs),
        "maxLat": max(lats),
        "maxLng": max(lngs),
    }
