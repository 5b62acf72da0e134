# ============================================================
# 📦 src/trip_planning/domain/proximity.py
# ============================================================

from typing import Any, Dict, List

from trip_planning.config.settings import ClusteringConfig
from trip_planning.domain.entities import Cluster, Location
from trip_planning.domain.haversine_utils import UNREACHABLE, walking_minutes


def rank_cards_by_proximity(
    cards: List[Dict[str, Any]],
    clusters: List[Cluster],
    config: ClusteringConfig,
) -> List[Dict[str, Any]]:
    """
    Annotates candidate cards with their nearest cluster and sorts them:
    cards within `near_plan_minutes` first, then by walking time.
    Cards with no reachable cluster keep `proximity = None` and go last.
    """
    ranked = []
    for card in cards:
        location = Location.from_dict(card.get("location"))

        nearest_cluster, nearest_minutes = None, UNREACHABLE
        for cluster in clusters:
            minutes = walking_minutes(location, cluster.center, config)
            if minutes < nearest_minutes:
                nearest_cluster, nearest_minutes = cluster, minutes

        is_near = nearest_minutes <= config.near_plan_minutes
        proximity = None
        if nearest_cluster is not None:
            proximity = {
                "clusterId": nearest_cluster.id,
                "clusterName": nearest_cluster.name,
                "walkingMinutes": int(nearest_minutes),
                "isNear": is_near,
            }
        ranked.append((not is_near, nearest_minutes, {**card, "proximity": proximity}))

    # stable on equal keys
    ranked.sort(key=lambda row: (row[0], row[1]))
    return [card for _, _, card in ranked]
