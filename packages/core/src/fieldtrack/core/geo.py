"""Geofence verification -- Haversine distance and threshold classification

verify() never rejects a reading. It classifies it and, when the reading is
outside the threshold, returns one localized warning with the rounded
distance. Reported GPS accuracy is not taken into account.
"""

import math

from pydantic import BaseModel, Field

from .config import GEOFENCE_THRESHOLD_M
from .messages import get_message
from .models.geo import GeoCoordinate

EARTH_RADIUS_M = 6_371_000.0


class GeofenceResult(BaseModel):
    """Outcome of a geofence check"""

    distance_meters: float
    within_range: bool
    warnings: list[str] = Field(default_factory=list)


def distance(a: GeoCoordinate, b: GeoCoordinate) -> float:
    """Great-circle distance between two coordinates

    Args:
        a: first coordinate
        b: second coordinate

    Returns:
        Distance in meters (symmetric, 0 for identical points)
    """
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    delta_phi = math.radians(b.lat - a.lat)
    delta_lambda = math.radians(b.lng - a.lng)

    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    # clamp rounding noise so antipodal points stay in the domain of asin
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def verify(
    reference: GeoCoordinate,
    observed: GeoCoordinate,
    threshold_meters: float | None = None,
    locale: str | None = None,
) -> GeofenceResult:
    """Classify an observed reading against a reference location

    Args:
        reference: task location
        observed: reported worker location
        threshold_meters: geofence radius, defaults to GEOFENCE_THRESHOLD_M
        locale: warning locale, defaults to FIELDTRACK_LOCALE

    Returns:
        GeofenceResult; warnings holds one entry when out of range
    """
    threshold = GEOFENCE_THRESHOLD_M if threshold_meters is None else threshold_meters
    meters = distance(reference, observed)
    within_range = meters <= threshold

    warnings: list[str] = []
    if not within_range:
        warnings.append(
            get_message("geofence.out_of_range", locale, distance=round(meters))
        )

    return GeofenceResult(
        distance_meters=meters,
        within_range=within_range,
        warnings=warnings,
    )
