# ============================================================
# 📦 src/trip_planning/domain/cluster_selector.py
# ============================================================

from typing import List, Optional

from loguru import logger

from trip_planning.config.settings import ClusteringConfig
from trip_planning.domain.entities import Cluster, Location, PlacementDecision, PlanItem
from trip_planning.domain.haversine_utils import UNREACHABLE, walking_minutes

GENERIC_AREA_NAME = "New Area"


class ClusterSelector:
    """
    Decides where a new item goes inside a city:

      1️⃣ no usable location  → first cluster in display order (or create)
      2️⃣ dining venue        → most activity-dense cluster within reach
      3️⃣ general case        → strictly nearest cluster within reach
      4️⃣ nothing in reach    → create a new cluster

    `clusters` must be in display order; ties keep that order.
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        self.config = config or ClusteringConfig()

    # ============================================================
    # 🎯 Entry point
    # ============================================================
    def select(self, item: PlanItem, clusters: List[Cluster]) -> PlacementDecision:
        location = item.location

        if location is None or not location.is_usable:
            if clusters:
                logger.debug(f"📍 '{item.name}' has no location → first cluster '{clusters[0].name}'")
                return PlacementDecision.use_cluster(clusters[0].id)
            return PlacementDecision.create(self.suggested_name(location))

        if self.config.dining_priority_enabled and item.type in self.config.dining_types:
            hub = self._best_cluster_for_dining(location, clusters)
            if hub is not None:
                logger.debug(f"🍽️ '{item.name}' anchored to activity hub '{hub.name}'")
                return PlacementDecision.use_cluster(hub.id)

        nearest = self._nearest_cluster(location, clusters)
        if nearest is not None:
            return PlacementDecision.use_cluster(nearest.id)

        return PlacementDecision.create(self.suggested_name(location))

    # ============================================================
    # 🍽️ Dining override
    # ============================================================
    def activity_count(self, cluster: Cluster) -> int:
        return sum(1 for i in cluster.items if i.type in self.config.activity_types)

    def _best_cluster_for_dining(self, location: Location, clusters: List[Cluster]) -> Optional[Cluster]:
        # most activities first, not nearest; sorted() is stable so display order breaks ties
        ranked = sorted(
            (c for c in clusters if self.activity_count(c) > 0),
            key=self.activity_count,
            reverse=True,
        )
        for cluster in ranked:
            if walking_minutes(location, cluster.center, self.config) <= self.config.max_walking_minutes:
                return cluster
        return None

    # ============================================================
    # 📏 Nearest within threshold
    # ============================================================
    def _nearest_cluster(self, location: Location, clusters: List[Cluster]) -> Optional[Cluster]:
        nearest = None
        nearest_minutes = UNREACHABLE

        for cluster in clusters:
            minutes = walking_minutes(location, cluster.center, self.config)
            if minutes <= self.config.max_walking_minutes and minutes < nearest_minutes:
                nearest, nearest_minutes = cluster, minutes

        return nearest

    @staticmethod
    def suggested_name(location: Optional[Location]) -> str:
        if location is not None and location.area:
            return location.area
        return GENERIC_AREA_NAME
