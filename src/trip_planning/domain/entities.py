# ==========================================================
# 📦 src/trip_planning/domain/entities.py
# ==========================================================

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# ==========================================================
# 📍 Coordinates
# ==========================================================
@dataclass(frozen=True)
class LatLng:
    lat: float = 0.0
    lng: float = 0.0

    @property
    def is_unknown(self) -> bool:
        # {0,0} means "no centroid", never the Gulf of Guinea
        return not self.lat and not self.lng

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LatLng":
        if not data:
            return cls()
        return cls(lat=_as_float(data.get("lat")) or 0.0, lng=_as_float(data.get("lng")) or 0.0)


@dataclass(frozen=True)
class Location:
    """Optional position of a card, with the free-text area it declares."""
    lat: Optional[float] = None
    lng: Optional[float] = None
    area: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.lat) and bool(self.lng)

    def to_latlng(self) -> LatLng:
        return LatLng(lat=self.lat or 0.0, lng=self.lng or 0.0)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Location"]:
        if not isinstance(data, dict):
            return None
        area = data.get("area")
        return cls(
            lat=_as_float(data.get("lat")),
            lng=_as_float(data.get("lng")),
            area=area.strip() if isinstance(area, str) and area.strip() else None,
        )


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN / inf never count as a coordinate
    return number if math.isfinite(number) else None


# ==========================================================
# 🃏 Plan item (card)
# ==========================================================
@dataclass
class PlanItem:
    """
    Planning record of a point of interest.
    `card_data` is the card exactly as supplied by the content source;
    deleting the item never touches the underlying place.
    """
    id: str
    city_plan_id: str
    card_data: Dict[str, Any]
    cluster_id: Optional[str] = None
    display_order: int = 0

    @property
    def name(self) -> str:
        return self.card_data.get("name") or ""

    @property
    def type(self) -> str:
        return self.card_data.get("type") or ""

    @property
    def location(self) -> Optional[Location]:
        return Location.from_dict(self.card_data.get("location"))

    @property
    def duration(self) -> float:
        return _as_float(self.card_data.get("duration")) or 0.0

    @property
    def is_clustered(self) -> bool:
        return self.cluster_id is not None


# ==========================================================
# 🗺️ Cluster (walkable area)
# ==========================================================
@dataclass
class Cluster:
    id: str
    city_plan_id: str
    name: str
    center: LatLng = field(default_factory=LatLng)
    display_order: int = 0
    items: List[PlanItem] = field(default_factory=list)


@dataclass(frozen=True)
class SuggestedCluster:
    """
    "Day N" placeholder regenerated on every read.
    Deliberately not a Cluster: it has no city plan, no items and
    no store method accepts it.
    """
    id: str
    name: str
    description: str
    day_number: int
    center: LatLng

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "dayNumber": self.day_number,
            "center": self.center.to_dict(),
        }


# ==========================================================
# 🏙️ City plan / Trip plan
# ==========================================================
@dataclass
class CityPlan:
    id: str
    trip_plan_id: str
    city_id: str
    city_data: Dict[str, Any]
    display_order: int = 0
    clusters: List[Cluster] = field(default_factory=list)
    unclustered: List[PlanItem] = field(default_factory=list)

    @property
    def city_name(self) -> str:
        return self.city_data.get("name") or self.city_data.get("city") or self.city_id


@dataclass
class TripPlan:
    id: str
    route_id: str
    user_id: Optional[str] = None
    status: str = "planning"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cities: List[CityPlan] = field(default_factory=list)


# ==========================================================
# 🎯 Placement decision (selector output)
# ==========================================================
@dataclass(frozen=True)
class PlacementDecision:
    cluster_id: Optional[str] = None
    create_new: bool = False
    suggested_name: str = ""

    @classmethod
    def use_cluster(cls, cluster_id: str) -> "PlacementDecision":
        return cls(cluster_id=cluster_id)

    @classmethod
    def create(cls, suggested_name: str) -> "PlacementDecision":
        return cls(create_new=True, suggested_name=suggested_name)
