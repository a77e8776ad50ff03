"""Great-circle distance between two fixes."""

from __future__ import annotations

from math import asin, cos, radians, sin, sqrt
from typing import Protocol

from urbantrack.core.constants import EARTH_RADIUS_M


class HasCoordinates(Protocol):
    lat: float
    lon: float


def haversine_meters(a: HasCoordinates, b: HasCoordinates) -> float:
    """Return the haversine distance in meters between *a* and *b*.

    Pure function: identical inputs give identical output and
    ``haversine_meters(p, p) == 0``.
    """
    lat1, lat2 = radians(a.lat), radians(b.lat)
    dlat = radians(b.lat - a.lat)
    dlon = radians(b.lon - a.lon)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h just past 1 for antipodal points
    c = 2 * asin(sqrt(min(1.0, h)))
    return EARTH_RADIUS_M * c
