# ============================================================
# 📦 src/trip_planning/domain/haversine_utils.py
# ============================================================

import math
from typing import Dict, Optional, Union

from trip_planning.config.settings import ClusteringConfig
from trip_planning.domain.entities import LatLng, Location

Point = Union[LatLng, Location]

# sentinel for "no distance signal"
UNREACHABLE = math.inf

_DEFAULT_CONFIG = ClusteringConfig()


def _is_finite(value) -> bool:
    if value is None:
        return True
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def haversine(coord1, coord2):
    """
    Great-circle distance between two (lat, lng) pairs, in kilometres.
    """
    R = 6371  # mean Earth radius in km
    lat1, lon1 = coord1
    lat2, lon2 = coord2

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def walking_minutes(
    origin: Optional[Point],
    destination: Optional[Point],
    config: ClusteringConfig = _DEFAULT_CONFIG,
) -> float:
    """
    Estimated walking time in whole minutes.

    minutes = km / speed * detour * 60, rounded.
    Returns UNREACHABLE (inf) when a point is missing, has no latitude
    or carries a non-finite coordinate; never raises.
    """
    if origin is None or destination is None:
        return UNREACHABLE
    if not origin.lat or not destination.lat:
        return UNREACHABLE
    if not all(_is_finite(v) for v in (origin.lat, origin.lng, destination.lat, destination.lng)):
        return UNREACHABLE

    distance_km = haversine(
        (origin.lat, origin.lng or 0.0),
        (destination.lat, destination.lng or 0.0),
    )
    hours = distance_km / config.walking_speed_kmh * config.detour_factor
    if not math.isfinite(hours):
        return UNREACHABLE
    return round(hours * 60)


def travel_times(
    origin: Optional[Point],
    destination: Optional[Point],
    config: ClusteringConfig = _DEFAULT_CONFIG,
) -> Dict[str, Optional[int]]:
    """
    Walking / transit / driving estimates. Transit and driving are fixed
    ratios of the walking time while no routing provider is wired in.
    """
    walking = walking_minutes(origin, destination, config)
    if math.isinf(walking):
        return {"walkingMinutes": None, "transitMinutes": None, "drivingMinutes": None}

    return {
        "walkingMinutes": int(walking),
        "transitMinutes": round(walking * config.transit_ratio),
        "drivingMinutes": round(walking * config.driving_ratio),
    }
