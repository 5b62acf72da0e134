# ============================================================
# 📦 src/trip_planning/domain/centroid.py
# ============================================================

from itertools import combinations
from typing import Any, Dict, Iterable, List

import numpy as np

from trip_planning.config.settings import ClusteringConfig
from trip_planning.domain.entities import Cluster, LatLng, PlanItem
from trip_planning.domain.haversine_utils import walking_minutes


def located_items(items: Iterable[PlanItem]) -> List[PlanItem]:
    """Items whose lat and lng are both present and non-zero."""
    return [i for i in items if i.location is not None and i.location.is_usable]


def calculate_centroid(items: Iterable[PlanItem]) -> LatLng:
    """
    Arithmetic mean of the member coordinates.
    {0,0} when no member has valid coordinates; callers read that as unknown.
    Always a full pass, never incremental.
    """
    valid = located_items(items)
    if not valid:
        return LatLng(0.0, 0.0)

    coords = np.array([[i.location.lat, i.location.lng] for i in valid], dtype=float)
    lat, lng = np.mean(coords, axis=0)
    return LatLng(lat=float(lat), lng=float(lng))


def max_walking_distance(items: List[PlanItem], config: ClusteringConfig) -> int:
    """Largest pairwise walking time between located members (0 below two)."""
    valid = located_items(items)
    if len(valid) < 2:
        return 0

    worst = 0
    for a, b in combinations(valid, 2):
        worst = max(worst, int(walking_minutes(a.location, b.location, config)))
    return worst


def total_duration(items: Iterable[PlanItem]) -> float:
    return float(sum(i.duration for i in items))


def cluster_summary(cluster: Cluster, config: ClusteringConfig) -> Dict[str, Any]:
    """Read model of a cluster, derived fields recomputed on every read."""
    return {
        "id": cluster.id,
        "name": cluster.name,
        "center": cluster.center.to_dict(),
        "items": [item.card_data for item in cluster.items],
        "totalDuration": total_duration(cluster.items),
        "maxWalkingDistance": max_walking_distance(cluster.items, config),
    }
