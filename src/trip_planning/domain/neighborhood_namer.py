# ============================================================
# 📍 src/trip_planning/domain/neighborhood_namer.py
# ============================================================

import threading
from typing import Dict, Optional, Tuple

import requests
from loguru import logger

from trip_planning.config.settings import GeocoderConfig
from trip_planning.domain.cluster_selector import GENERIC_AREA_NAME
from trip_planning.domain.entities import Location

MAPBOX_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{lng},{lat}.json"
NOMINATIM_KEYS = ("neighbourhood", "suburb", "quarter", "city_district")


class NeighborhoodNamer:
    """
    Human name for a freshly created cluster.

    Order:
      1. Memory cache (coordinates rounded to 4 decimals)
      2. Mapbox reverse geocoding (neighborhood, then locality)
      3. Nominatim reverse geocoding
      4. Area declared by the card / selector suggestion
      5. "{City} Area"

    Best-effort: every network failure degrades to the next tier.
    """

    def __init__(self, config: Optional[GeocoderConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or GeocoderConfig()
        self.session = session or requests.Session()
        self.cache_mem: Dict[Tuple[float, float], str] = {}
        self.cache_lock = threading.Lock()
        self.stats = {"cache_mem": 0, "mapbox": 0, "nominatim": 0, "fallback": 0}

    # ============================================================
    # 🌍 Main lookup
    # ============================================================
    def resolve(self, location: Optional[Location], city_name: str, suggested_name: str = "") -> str:
        if location is not None and location.is_usable:
            key = (round(location.lat, 4), round(location.lng, 4))

            with self.cache_lock:
                cached = self.cache_mem.get(key)
            if cached:
                self.stats["cache_mem"] += 1
                logger.debug(f"⚡ cache_mem | {key} → {cached}")
                return cached

            name = self._from_mapbox(location)
            source = "mapbox"
            if not name:
                name = self._from_nominatim(location)
                source = "nominatim"

            if name:
                self.stats[source] += 1
                with self.cache_lock:
                    self.cache_mem[key] = name
                logger.info(f"🏷️ {source}_ok | ({location.lat}, {location.lng}) → {name}")
                return name

        self.stats["fallback"] += 1
        return self.fallback_name(location, city_name, suggested_name)

    @staticmethod
    def fallback_name(location: Optional[Location], city_name: str, suggested_name: str = "") -> str:
        if location is not None and location.area:
            return location.area
        if suggested_name and suggested_name != GENERIC_AREA_NAME:
            return suggested_name
        return f"{city_name or 'City'} Area"

    # ============================================================
    # 🗺️ MAPBOX
    # ============================================================
    def _from_mapbox(self, location: Location) -> Optional[str]:
        if not self.config.mapbox_token:
            return None

        try:
            r = self.session.get(
                MAPBOX_URL.format(lng=location.lng, lat=location.lat),
                params={
                    "types": "neighborhood,locality",
                    "access_token": self.config.mapbox_token,
                },
                timeout=self.config.timeout_s,
            )
            if r.status_code != 200:
                logger.warning(f"⚠️ Mapbox HTTP {r.status_code}")
                return None

            features = r.json().get("features") or []
            for place_type in ("neighborhood", "locality"):
                for feature in features:
                    if place_type in (feature.get("place_type") or []) and feature.get("text"):
                        return feature["text"]
            return None

        except Exception as e:
            logger.warning(f"⚠️ Mapbox reverse geocoding failed: {e}")
            return None

    # ============================================================
    # 🧭 NOMINATIM
    # ============================================================
    def _from_nominatim(self, location: Location) -> Optional[str]:
        if not self.config.nominatim_url:
            return None

        try:
            r = self.session.get(
                f"{self.config.nominatim_url.rstrip('/')}/reverse",
                params={
                    "lat": location.lat,
                    "lon": location.lng,
                    "format": "json",
                    "zoom": 16,
                    "addressdetails": 1,
                },
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.timeout_s,
            )
            if r.status_code != 200:
                logger.warning(f"⚠️ Nominatim HTTP {r.status_code}")
                return None

            address = r.json().get("address") or {}
            for key in NOMINATIM_KEYS:
                if address.get(key):
                    return address[key]
            return None

        except Exception as e:
            logger.warning(f"⚠️ Nominatim reverse geocoding failed: {e}")
            return None
