# ============================================================
# ⚙️ src/trip_planning/config/settings.py
# ============================================================

import os
from dataclasses import dataclass, field
from typing import FrozenSet


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ============================================================
# 🧭 Clustering heuristics
# ============================================================
@dataclass(frozen=True)
class ClusteringConfig:
    """
    Tunable weights of the placement engine.
    Defaults reproduce the production behaviour:
      - 15 min walking threshold
      - 5 km/h walking speed with a 20% detour penalty
      - dining venues pulled towards activity-dense clusters
    """
    max_walking_minutes: int = 15
    walking_speed_kmh: float = 5.0
    detour_factor: float = 1.2
    transit_ratio: float = 0.5
    driving_ratio: float = 0.3
    near_plan_minutes: int = 10
    dining_priority_enabled: bool = True
    default_suggested_nights: int = 2
    dining_types: FrozenSet[str] = field(default_factory=lambda: frozenset({"restaurant", "bar", "cafe"}))
    activity_types: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"activity", "photo_spot", "experience"})
    )

    @classmethod
    def from_env(cls) -> "ClusteringConfig":
        return cls(
            max_walking_minutes=int(os.getenv("MAX_WALKING_MINUTES", "15")),
            walking_speed_kmh=float(os.getenv("WALKING_SPEED_KMH", "5.0")),
            detour_factor=float(os.getenv("WALKING_DETOUR_FACTOR", "1.2")),
            transit_ratio=float(os.getenv("TRANSIT_RATIO", "0.5")),
            driving_ratio=float(os.getenv("DRIVING_RATIO", "0.3")),
            near_plan_minutes=int(os.getenv("NEAR_PLAN_MINUTES", "10")),
            dining_priority_enabled=_env_bool("DINING_PRIORITY_ENABLED", True),
            default_suggested_nights=int(os.getenv("DEFAULT_SUGGESTED_NIGHTS", "2")),
        )


# ============================================================
# 🌍 Reverse geocoding collaborators
# ============================================================
@dataclass(frozen=True)
class GeocoderConfig:
    mapbox_token: str | None = None
    nominatim_url: str | None = None
    timeout_s: float = 3.0
    user_agent: str = "TripPlanner/NeighborhoodNamer"

    @classmethod
    def from_env(cls) -> "GeocoderConfig":
        return cls(
            mapbox_token=os.getenv("MAPBOX_ACCESS_TOKEN") or None,
            nominatim_url=os.getenv("NOMINATIM_URL") or None,
            timeout_s=float(os.getenv("GEOCODER_TIMEOUT_S", "3")),
        )


def get_plan_store_kind() -> str:
    """postgres | memory"""
    return os.getenv("PLAN_STORE", "postgres").strip().lower()


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").strip().upper()
