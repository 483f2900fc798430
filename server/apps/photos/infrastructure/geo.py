"""Great-circle helpers for proximity queries.

Distances are computed on a sphere with the mean Earth radius, in
metres. Bounding boxes are conservative: every point within the radius
falls inside the box, some points inside the box are farther away.
"""

import math
from dataclasses import dataclass
from typing import Final

from server.apps.photos.values import GeoPoint

EARTH_RADIUS_M: Final = 6371000.0

# Widen boxes slightly so rounding never drops a boundary point
_BOX_MARGIN_DEG: Final = 1e-7

_FULL_LONGITUDE: Final = ((-180.0, 180.0),)


def haversine_m(start: GeoPoint, end: GeoPoint) -> float:
    """Great-circle distance between two points in metres."""
    lat1, lat2 = math.radians(start.lat), math.radians(end.lat)
    dlat = lat2 - lat1
    dlng = math.radians(end.lng - start.lng)
    hav = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, hav)))


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Latitude range plus one or two longitude ranges.

    Two longitude ranges appear when the box crosses the antimeridian.
    """

    min_lat: float
    max_lat: float
    longitude_ranges: tuple[tuple[float, float], ...]


def bounding_box(center: GeoPoint, radius_m: float) -> BoundingBox:
    """Smallest lat/lng box enclosing a circle on the sphere.

    Args:
        center: Circle center.
        radius_m: Circle radius in metres, non-negative.

    Returns:
        Box covering every point within radius_m of center.
    """
    angular = radius_m / EARTH_RADIUS_M
    delta_lat = math.degrees(angular) + _BOX_MARGIN_DEG
    min_lat = center.lat - delta_lat
    max_lat = center.lat + delta_lat

    # Circle touches a pole: every longitude is reachable
    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(
            min_lat=max(min_lat, -90.0),
            max_lat=min(max_lat, 90.0),
            longitude_ranges=_FULL_LONGITUDE,
        )

    ratio = math.sin(angular) / math.cos(math.radians(center.lat))
    if angular >= math.pi / 2 or ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, _FULL_LONGITUDE)

    delta_lng = math.degrees(math.asin(ratio)) + _BOX_MARGIN_DEG
    min_lng = center.lng - delta_lng
    max_lng = center.lng + delta_lng

    if min_lng < -180.0:
        ranges = ((min_lng + 360.0, 180.0), (-180.0, max_lng))
    elif max_lng > 180.0:
        ranges = ((min_lng, 180.0), (-180.0, max_lng - 360.0))
    else:
        ranges = ((min_lng, max_lng),)
    return BoundingBox(min_lat, max_lat, ranges)
