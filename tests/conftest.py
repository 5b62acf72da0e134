# tests/conftest.py

import pytest

from trip_planning.application.planning_use_case import PlanningUseCase
from trip_planning.config.settings import ClusteringConfig, GeocoderConfig
from trip_planning.domain.neighborhood_namer import NeighborhoodNamer
from trip_planning.infrastructure.memory_store import InMemoryPlanStore

PARIS = {
    "id": "paris",
    "name": "Paris",
    "country": "France",
    "coordinates": {"lat": 48.8566, "lng": 2.3522},
}
LYON = {
    "id": "lyon",
    "name": "Lyon",
    "country": "France",
    "coordinates": {"lat": 45.764, "lng": 4.8357},
}


def make_card(card_id, card_type, lat=None, lng=None, area=None, name=None, duration=60):
    card = {"id": card_id, "name": name or card_id, "type": card_type, "duration": duration}
    if lat is not None or lng is not None or area is not None:
        card["location"] = {"lat": lat, "lng": lng}
        if area:
            card["location"]["area"] = area
    return card


@pytest.fixture
def config():
    return ClusteringConfig()


@pytest.fixture
def store():
    return InMemoryPlanStore()


@pytest.fixture
def use_case(store, config):
    # no token, no nominatim url: the namer never leaves the process
    namer = NeighborhoodNamer(GeocoderConfig())
    return PlanningUseCase(store=store, config=config, namer=namer)


@pytest.fixture
def route_id(use_case):
    result = use_case.start_plan(PARIS, LYON)
    return result["routeId"]
