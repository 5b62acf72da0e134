# ============================================================
# 📦 src/trip_planning/domain/day_suggestions.py
# ============================================================

from typing import Any, Dict, List, Optional

from trip_planning.domain.entities import LatLng, SuggestedCluster

DEFAULT_NIGHTS = 2


def _city_center(city: Dict[str, Any]) -> LatLng:
    coords = city.get("coordinates") or {}
    return LatLng(
        lat=float(city.get("lat") or city.get("latitude") or coords.get("lat") or 0),
        lng=float(city.get("lng") or city.get("longitude") or coords.get("lng") or 0),
    )


def _day_description(day: int, nights: int, city_name: str) -> str:
    if day == 1:
        return f"Your first day exploring {city_name}"
    if day == nights:
        return f"Final day in {city_name}"
    return f"Day {day} in {city_name}"


def generate_suggested_clusters(
    city: Optional[Dict[str, Any]],
    default_nights: int = DEFAULT_NIGHTS,
) -> List[SuggestedCluster]:
    """
    One "Day N" placeholder per night, all centred on the city.
    Never persisted; ids are stable so repeated reads line up in the UI.
    """
    city = city or {}
    city_name = city.get("name") or city.get("city") or "City"
    city_key = city.get("id") or city_name
    nights = int(city.get("nights") or city.get("suggestedNights") or default_nights)
    center = _city_center(city)

    return [
        SuggestedCluster(
            id=f"day-{day}-{city_key}",
            name=f"Day {day}",
            description=_day_description(day, nights, city_name),
            day_number=day,
            center=center,
        )
        for day in range(1, nights + 1)
    ]
