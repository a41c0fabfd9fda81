"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # clamp guards against rounding pushing sqrt(a) just above 1
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def has_coordinates(lat: Optional[float], lng: Optional[float]) -> bool:
    """True when both values are present and finite."""
    if lat is None or lng is None:
        return False
    try:
        return math.isfinite(float(lat)) and math.isfinite(float(lng))
    except (TypeError, ValueError):
        return False
