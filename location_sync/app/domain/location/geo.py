"""
Great-circle distance helpers.

Used by geofence containment and anywhere two fixes are compared by place.
"""

import math

from location_sync.app.domain.location.types import Coordinate

# Mean Earth radius in meters
EARTH_RADIUS_METERS = 6371000.0


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate the great-circle (haversine) distance between two coordinates.

    Coordinates may be Decimal or float; trigonometry runs in float.
    The haversine term is clamped to [0, 1] so rounding on identical or
    antipodal points cannot leave the sqrt/atan2 domain.

    Returns:
        Distance in meters
    """
    lat1 = math.radians(float(a.latitude))
    lat2 = math.radians(float(b.latitude))
    dlat = lat2 - lat1
    dlon = math.radians(float(b.longitude) - float(a.longitude))

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    h = min(1.0, max(0.0, h))

    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_METERS * c
