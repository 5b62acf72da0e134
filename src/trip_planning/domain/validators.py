#trip_planning/domain/validators.py

import math
import secrets
import time
from typing import Any, Dict, List, Optional, Tuple

from trip_planning.domain.errors import PlanningValidationError


def generate_id(prefix: str = "id") -> str:
    """`{prefix}-{epoch ms}-{8 hex}`, the id format shared by every planning row."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def require(value: Any, field: str) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PlanningValidationError(f"{field} is required")
    return value


def validate_card(card: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not isinstance(card, dict) or not card:
        raise PlanningValidationError("card is required")
    location = card.get("location")
    if location is not None:
        if not isinstance(location, dict):
            raise PlanningValidationError("card.location must be an object with lat/lng")
        _check_coordinate(location.get("lat"), "card.location.lat", 90.0)
        _check_coordinate(location.get("lng"), "card.location.lng", 180.0)
    return card


def _check_coordinate(value: Any, field: str, limit: float) -> None:
    """None is allowed (no location); anything else must be a finite number in range."""
    if value is None:
        return
    if isinstance(value, bool):
        raise PlanningValidationError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PlanningValidationError(f"{field} must be a number")
    if not math.isfinite(number) or abs(number) > limit:
        raise PlanningValidationError(f"{field} is out of range: {value}")


def validate_cards(cards: Optional[List[Dict[str, Any]]], field: str) -> List[Dict[str, Any]]:
    if cards is None:
        return []
    if not isinstance(cards, list):
        raise PlanningValidationError(f"{field} must be a list")
    return [validate_card(c) for c in cards]


def parse_point(raw: Optional[str], field: str) -> Tuple[float, float]:
    """'48.86,2.35' → (48.86, 2.35)"""
    if not raw:
        raise PlanningValidationError(f"{field} parameter required")
    try:
        lat_raw, lng_raw = raw.split(",")
        lat, lng = float(lat_raw), float(lng_raw)
    except ValueError:
        raise PlanningValidationError(f"{field} must be formatted as 'lat,lng'")

    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lng <= 180.0):
        raise PlanningValidationError(f"{field} is out of range: {raw}")
    return lat, lng
