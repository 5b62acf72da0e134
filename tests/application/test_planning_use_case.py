# tests/application/test_planning_use_case.py

import threading

import pytest

from conftest import LYON, PARIS, make_card
from trip_planning.domain.errors import PlanningNotFoundError, PlanningValidationError


def _city(use_case, route_id, city_id="paris"):
    plan = use_case.get_plan(route_id)
    return next(c for c in plan["cities"] if c["cityId"] == city_id)


# ==========================================================
# 🆕 Plan lifecycle
# ==========================================================
def test_start_plan_lays_out_cities(use_case):
    result = use_case.start_plan(PARIS, LYON, waypoints=[{"id": "dijon", "name": "Dijon", "suggestedNights": 3}])
    cities = result["tripPlan"]["cities"]

    assert result["routeId"].startswith("route-")
    assert result["tripPlan"]["status"] == "planning"
    assert [c["cityId"] for c in cities] == ["paris", "dijon", "lyon"]
    assert [c["city"]["nights"] for c in cities] == [1, 3, 2]
    assert cities[0]["city"]["isOrigin"] and cities[-1]["city"]["isDestination"]
    assert [len(c["suggestedClusters"]) for c in cities] == [1, 3, 2]
    assert all(c["clusters"] == [] and c["unclustered"] == [] for c in cities)


def test_start_plan_requires_both_ends(use_case):
    with pytest.raises(PlanningValidationError):
        use_case.start_plan(PARIS, None)


def test_create_plan_from_route_rejects_duplicates(use_case):
    use_case.create_plan_from_route("route-abc", [PARIS, LYON])
    with pytest.raises(PlanningValidationError):
        use_case.create_plan_from_route("route-abc", [PARIS, LYON])


def test_unknown_route(use_case):
    with pytest.raises(PlanningNotFoundError):
        use_case.get_plan("route-missing")
    with pytest.raises(PlanningNotFoundError):
        use_case.add_item("route-missing", "paris", make_card("x", "activity", 48.86, 2.35))


def test_add_item_creates_missing_city_plan(use_case, route_id):
    result = use_case.add_item(route_id, "tokyo", make_card("senso-ji", "activity", 35.7148, 139.7967))
    again = use_case.add_item(route_id, "tokyo", make_card("kaminarimon", "photo_spot", 35.7111, 139.7964))

    cities = use_case.get_plan(route_id)["cities"]
    assert [c["cityId"] for c in cities] == ["paris", "lyon", "tokyo"]
    tokyo = cities[-1]
    assert tokyo["city"] == {"id": "tokyo", "name": "tokyo"}
    assert result["isNewCluster"] and not again["isNewCluster"]
    assert again["clusterId"] == result["clusterId"]
    assert [i["id"] for i in tokyo["clusters"][0]["items"]] == ["senso-ji", "kaminarimon"]


# ==========================================================
# 📍 Add / remove, full lifecycle of one cluster
# ==========================================================
def test_end_to_end_cluster_lifecycle(use_case, route_id):
    first = use_case.add_item(route_id, "paris", make_card("louvre-photo", "photo_spot", 48.86, 2.35))
    assert first["isNewCluster"]
    assert first["clusterName"] == "Paris Area"

    cluster = _city(use_case, route_id)["clusters"][0]
    assert cluster["center"] == {"lat": 48.86, "lng": 2.35}

    second = use_case.add_item(route_id, "paris", make_card("corner-cafe", "cafe", 48.861, 2.351))
    assert not second["isNewCluster"]
    assert second["clusterId"] == first["clusterId"]

    cluster = _city(use_case, route_id)["clusters"][0]
    assert cluster["center"]["lat"] == pytest.approx(48.8605)
    assert cluster["center"]["lng"] == pytest.approx(2.3505)
    assert [i["id"] for i in cluster["items"]] == ["louvre-photo", "corner-cafe"]

    removed = use_case.remove_item(route_id, "louvre-photo")
    assert removed == {"success": True, "clusterDeleted": False}
    cluster = _city(use_case, route_id)["clusters"][0]
    assert cluster["center"]["lat"] == pytest.approx(48.861)
    assert cluster["center"]["lng"] == pytest.approx(2.351)

    removed = use_case.remove_item(route_id, "corner-cafe")
    assert removed == {"success": True, "clusterDeleted": True}
    assert _city(use_case, route_id)["clusters"] == []


def test_far_item_opens_second_cluster_named_after_area(use_case, route_id):
    use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))
    result = use_case.add_item(route_id, "paris", make_card("sacre-coeur", "activity", 48.8867, 2.3431, "Montmartre"))

    assert result["isNewCluster"]
    assert result["clusterName"] == "Montmartre"
    assert len(_city(use_case, route_id)["clusters"]) == 2


def test_item_without_location_joins_first_cluster(use_case, route_id):
    first = use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))
    result = use_case.add_item(route_id, "paris", {"id": "walking-tour", "name": "Walking tour", "type": "experience"})

    assert result["clusterId"] == first["clusterId"]
    cluster = _city(use_case, route_id)["clusters"][0]
    assert cluster["center"] == {"lat": 48.8606, "lng": 2.3376}


def test_generated_item_id_is_stored_on_the_card(use_case, route_id):
    result = use_case.add_item(route_id, "paris", {"name": "Picnic", "type": "activity"})

    assert result["itemId"].startswith("item-")
    items = _city(use_case, route_id)["clusters"][0]["items"]
    assert items[0]["id"] == result["itemId"]


def test_duplicate_item_id_is_rejected(use_case, route_id):
    card = make_card("louvre", "activity", 48.8606, 2.3376)
    use_case.add_item(route_id, "paris", card)
    with pytest.raises(PlanningValidationError):
        use_case.add_item(route_id, "paris", card)


def test_placement_failure_keeps_item_unclustered(use_case, route_id, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("selector crashed")

    monkeypatch.setattr(use_case.selector, "select", broken)
    result = use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))

    assert result["clusterId"] is None
    assert not result["isNewCluster"]
    city = _city(use_case, route_id)
    assert city["clusters"] == []
    assert [i["id"] for i in city["unclustered"]] == ["louvre"]


def test_remove_item_validates_cluster_and_existence(use_case, route_id):
    use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))

    with pytest.raises(PlanningValidationError):
        use_case.remove_item(route_id, "louvre", cluster_id="cluster-other")
    with pytest.raises(PlanningNotFoundError):
        use_case.remove_item(route_id, "ghost")
    assert len(_city(use_case, route_id)["clusters"]) == 1


def test_remove_item_from_another_route_is_not_found(use_case, route_id):
    use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))
    other = use_case.start_plan(PARIS, LYON)["routeId"]

    with pytest.raises(PlanningNotFoundError):
        use_case.remove_item(other, "louvre")


def test_remove_item_scoped_to_another_city_is_not_found(use_case, route_id):
    use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))

    with pytest.raises(PlanningNotFoundError):
        use_case.remove_item(route_id, "louvre", city_id="lyon")
    with pytest.raises(PlanningNotFoundError):
        use_case.remove_item(route_id, "louvre", city_id="tokyo")
    assert [i["id"] for i in _city(use_case, route_id)["clusters"][0]["items"]] == ["louvre"]

    removed = use_case.remove_item(route_id, "louvre", city_id="paris")
    assert removed["clusterDeleted"]


# ==========================================================
# 🗺️ Explicit cluster management
# ==========================================================
def test_create_cluster_uses_member_centroid(use_case, route_id):
    cluster = use_case.create_cluster(
        route_id,
        "paris",
        "Left Bank",
        center={"lat": 1.0, "lng": 1.0},
        initial_items=[
            make_card("pantheon", "activity", 48.8462, 2.3464),
            make_card("luxembourg", "activity", 48.8462, 2.3372),
        ],
    )

    assert cluster["name"] == "Left Bank"
    assert cluster["center"]["lat"] == pytest.approx(48.8462)
    assert cluster["center"]["lng"] == pytest.approx(2.3418)
    assert len(cluster["items"]) == 2


def test_create_cluster_without_located_items_keeps_requested_center(use_case, route_id):
    cluster = use_case.create_cluster(
        route_id, "paris", "Ideas", center={"lat": 48.85, "lng": 2.35},
        initial_items=[{"id": "cooking-class", "name": "Cooking class", "type": "experience"}],
    )
    assert cluster["center"] == {"lat": 48.85, "lng": 2.35}


def test_create_cluster_requires_items(use_case, route_id):
    with pytest.raises(PlanningValidationError):
        use_case.create_cluster(route_id, "paris", "Empty", initial_items=[])
    with pytest.raises(PlanningValidationError):
        use_case.create_cluster(route_id, "paris", "", initial_items=[make_card("x", "activity")])


def test_item_has_single_owner_when_moved(use_case, route_id):
    added = use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))

    moved = use_case.create_cluster(
        route_id, "paris", "Favourites", initial_items=[make_card("louvre", "activity", 48.8606, 2.3376)],
    )

    city = _city(use_case, route_id)
    assert [c["id"] for c in city["clusters"]] == [moved["id"]]
    owners = [c["id"] for c in city["clusters"] if any(i["id"] == "louvre" for i in c["items"])]
    assert owners == [moved["id"]]
    assert added["clusterId"] != moved["id"]


def test_update_cluster_rename_add_remove(use_case, route_id):
    added = use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))
    cluster_id = added["clusterId"]

    updated = use_case.update_cluster(
        route_id,
        cluster_id,
        name="Louvre & Tuileries",
        add_items=[make_card("tuileries", "activity", 48.8634, 2.3275)],
    )
    assert updated["name"] == "Louvre & Tuileries"
    assert [i["id"] for i in updated["items"]] == ["louvre", "tuileries"]
    assert updated["center"]["lat"] == pytest.approx((48.8606 + 48.8634) / 2)

    updated = use_case.update_cluster(route_id, cluster_id, remove_item_ids=["louvre", "not-here"])
    assert [i["id"] for i in updated["items"]] == ["tuileries"]
    assert updated["center"] == {"lat": 48.8634, "lng": 2.3275}


def test_update_cluster_removing_last_item_deletes_it(use_case, route_id):
    added = use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))

    assert use_case.update_cluster(route_id, added["clusterId"], remove_item_ids=["louvre"]) is None
    assert _city(use_case, route_id)["clusters"] == []


def test_update_unknown_cluster(use_case, route_id):
    with pytest.raises(PlanningNotFoundError):
        use_case.update_cluster(route_id, "cluster-ghost", name="x")


def test_delete_cluster_unclusters_members(use_case, route_id):
    use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))
    added = use_case.add_item(route_id, "paris", make_card("tuileries", "activity", 48.8634, 2.3275))

    result = use_case.delete_cluster(route_id, added["clusterId"])

    assert result == {"success": True, "unclusteredCount": 2}
    city = _city(use_case, route_id)
    assert city["clusters"] == []
    assert [i["id"] for i in city["unclustered"]] == ["louvre", "tuileries"]


# ==========================================================
# 💾 Bulk save
# ==========================================================
def test_save_plan_normalizes_payload(use_case, route_id):
    use_case.add_item(route_id, "paris", make_card("old", "activity", 48.8606, 2.3376))

    use_case.save_plan(route_id, [{
        "cityId": "paris",
        "clusters": [
            {"id": "cluster-a", "name": "Marais", "center": {"lat": 0, "lng": 0}, "items": [
                make_card("picasso", "activity", 48.8598, 2.3625),
                make_card("vosges", "photo_spot", 48.8556, 2.3655),
            ]},
            {"id": "cluster-empty", "name": "Nothing", "items": []},
            {"id": "cluster-b", "name": "Dup", "items": [make_card("picasso", "activity", 48.8598, 2.3625)]},
        ],
        "unclustered": [make_card("cooking", "experience")],
    }])

    city = _city(use_case, route_id)
    assert [c["id"] for c in city["clusters"]] == ["cluster-a"]
    assert city["clusters"][0]["center"]["lat"] == pytest.approx((48.8598 + 48.8556) / 2)
    assert [i["id"] for i in city["unclustered"]] == ["cooking"]


def test_save_plan_requires_city_ids(use_case, route_id):
    with pytest.raises(PlanningValidationError):
        use_case.save_plan(route_id, [{"clusters": []}])


@pytest.mark.parametrize("lat", [float("nan"), float("inf"), 91.0])
def test_non_finite_coordinates_are_rejected_before_storage(use_case, route_id, lat):
    bad = make_card("broken", "activity", lat, 2.35)

    with pytest.raises(PlanningValidationError):
        use_case.add_item(route_id, "paris", bad)
    with pytest.raises(PlanningValidationError):
        use_case.create_cluster(route_id, "paris", "Broken", None, [bad])
    with pytest.raises(PlanningValidationError):
        use_case.save_plan(route_id, [{"cityId": "paris", "clusters": [{"name": "Broken", "items": [bad]}]}])
    with pytest.raises(PlanningValidationError):
        use_case.rank_by_proximity(route_id, "paris", [bad])

    # the city still places items normally afterwards
    added = use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))
    assert added["isNewCluster"]
    assert [i["id"] for i in _city(use_case, route_id)["clusters"][0]["items"]] == ["louvre"]


# ==========================================================
# 📏 Distance / proximity
# ==========================================================
def test_distance(use_case):
    result = use_case.distance((48.8606, 2.3376), (48.8530, 2.3499))
    assert 17 <= result["walkingMinutes"] <= 19
    assert result["transitMinutes"] == round(result["walkingMinutes"] * 0.5)


def test_rank_by_proximity_uses_city_center_without_clusters(use_case, route_id):
    cards = [
        make_card("versailles", "activity", 48.8049, 2.1204),
        make_card("hotel-de-ville", "activity", 48.8566, 2.3530),
    ]
    ranked = use_case.rank_by_proximity(route_id, "paris", cards)

    assert [c["id"] for c in ranked] == ["hotel-de-ville", "versailles"]
    assert ranked[0]["proximity"]["clusterName"] == "City Center"
    assert ranked[0]["proximity"]["isNear"]
    assert not ranked[1]["proximity"]["isNear"]


def test_rank_by_proximity_prefers_planned_clusters(use_case, route_id):
    added = use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))
    ranked = use_case.rank_by_proximity(route_id, "paris", [
        {"id": "no-location", "name": "Mystery", "type": "activity"},
        make_card("pont-des-arts", "photo_spot", 48.8583, 2.3375),
    ])

    assert ranked[0]["id"] == "pont-des-arts"
    assert ranked[0]["proximity"]["clusterId"] == added["clusterId"]
    assert ranked[1]["proximity"] is None


# ==========================================================
# 🔒 Serialization
# ==========================================================
def test_concurrent_adds_share_one_cluster(use_case, route_id):
    errors = []

    def add(n):
        try:
            use_case.add_item(route_id, "paris", make_card(f"spot-{n}", "activity", 48.86 + n * 0.0001, 2.35))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=add, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    clusters = _city(use_case, route_id)["clusters"]
    assert len(clusters) == 1
    assert len(clusters[0]["items"]) == 8


def test_cluster_write_failure_is_fatal(use_case, route_id, monkeypatch):
    from trip_planning.domain.errors import PlanStoreError
    from trip_planning.infrastructure.memory_store import InMemoryPlanSession

    def failing_insert(self, cluster):
        raise PlanStoreError("disk full")

    monkeypatch.setattr(InMemoryPlanSession, "insert_cluster", failing_insert)

    with pytest.raises(PlanStoreError):
        use_case.add_item(route_id, "paris", make_card("louvre", "activity", 48.8606, 2.3376))

    city = _city(use_case, route_id)
    assert city["clusters"] == [] and city["unclustered"] == []
