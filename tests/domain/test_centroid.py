# tests/domain/test_centroid.py

import pytest

from trip_planning.config.settings import ClusteringConfig
from trip_planning.domain.centroid import (
    calculate_centroid,
    cluster_summary,
    max_walking_distance,
    total_duration,
)
from trip_planning.domain.entities import Cluster, LatLng, PlanItem


def _item(item_id, lat=None, lng=None, duration=0, card_type="activity"):
    card = {"id": item_id, "name": item_id, "type": card_type, "duration": duration}
    if lat is not None or lng is not None:
        card["location"] = {"lat": lat, "lng": lng}
    return PlanItem(id=item_id, city_plan_id="cp", card_data=card)


def test_centroid_is_mean_of_located_members():
    items = [_item("a", 48.86, 2.35), _item("b", 48.87, 2.36)]
    center = calculate_centroid(items)

    assert center.lat == pytest.approx(48.865)
    assert center.lng == pytest.approx(2.355)


def test_centroid_ignores_members_without_usable_coordinates():
    items = [
        _item("a", 48.86, 2.35),
        _item("no-location"),
        _item("only-lat", 48.0, None),
        _item("zero-lng", 48.0, 0),
    ]
    assert calculate_centroid(items) == LatLng(48.86, 2.35)


def test_centroid_unknown_when_nothing_is_located():
    assert calculate_centroid([]) == LatLng(0.0, 0.0)
    assert calculate_centroid([_item("x")]).is_unknown


def test_max_walking_distance_and_duration():
    config = ClusteringConfig()
    items = [_item("a", 48.86, 2.35, duration=90), _item("b", 48.861, 2.351, duration=30)]

    assert max_walking_distance(items[:1], config) == 0
    assert max_walking_distance(items, config) == 2
    assert total_duration(items) == 120


def test_cluster_summary_shape():
    items = [_item("a", 48.86, 2.35, duration=45)]
    cluster = Cluster(id="c1", city_plan_id="cp", name="Le Marais", center=LatLng(48.86, 2.35), items=items)

    summary = cluster_summary(cluster, ClusteringConfig())

    assert summary["id"] == "c1"
    assert summary["center"] == {"lat": 48.86, "lng": 2.35}
    assert [c["id"] for c in summary["items"]] == ["a"]
    assert summary["totalDuration"] == 45
    assert summary["maxWalkingDistance"] == 0
