# ============================================================
# 📦 src/trip_planning/infrastructure/plan_store.py
# ============================================================

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

from trip_planning.domain.entities import CityPlan, Cluster, LatLng, PlanItem, TripPlan
from trip_planning.domain.errors import InvariantViolationError


class PlanSession(ABC):
    """
    One unit of work against the plan hierarchy
    (TripPlan → CityPlan → Cluster → Item).

    Everything done through a session commits or rolls back together.
    `lock_city_plan` serializes mutating sessions of the same city plan
    until the session ends.
    """

    # =========================================================
    # 🔒 Concurrency control
    # =========================================================
    @abstractmethod
    def lock_city_plan(self, city_plan_id: str) -> None: ...

    @abstractmethod
    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]: ...

    # =========================================================
    # 📖 Reads
    # =========================================================
    @abstractmethod
    def get_trip_plan_by_route(self, route_id: str) -> Optional[TripPlan]: ...

    @abstractmethod
    def list_city_plans(self, trip_plan_id: str) -> List[CityPlan]: ...

    @abstractmethod
    def find_city_plan(self, trip_plan_id: str, city_id: str) -> Optional[CityPlan]: ...

    @abstractmethod
    def list_clusters(self, city_plan_id: str) -> List[Cluster]:
        """Clusters in display order, each with its items in display order."""

    @abstractmethod
    def get_cluster(self, cluster_id: str) -> Optional[Cluster]: ...

    @abstractmethod
    def list_unclustered(self, city_plan_id: str) -> List[PlanItem]: ...

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[PlanItem]: ...

    @abstractmethod
    def find_empty_clusters(self, city_plan_id: str) -> List[str]: ...

    # =========================================================
    # ✍️ Writes
    # =========================================================
    @abstractmethod
    def insert_trip_plan(self, plan: TripPlan) -> None: ...

    @abstractmethod
    def insert_city_plan(self, city_plan: CityPlan) -> None: ...

    @abstractmethod
    def touch_trip_plan(self, trip_plan_id: str) -> None: ...

    @abstractmethod
    def next_cluster_order(self, city_plan_id: str) -> int: ...

    @abstractmethod
    def next_item_order(self, city_plan_id: str, cluster_id: Optional[str]) -> int: ...

    @abstractmethod
    def insert_cluster(self, cluster: Cluster) -> None: ...

    @abstractmethod
    def update_cluster_name(self, cluster_id: str, name: str) -> None: ...

    @abstractmethod
    def update_cluster_center(self, cluster_id: str, center: LatLng) -> None: ...

    @abstractmethod
    def delete_cluster(self, cluster_id: str) -> None: ...

    @abstractmethod
    def insert_item(self, item: PlanItem) -> None: ...

    @abstractmethod
    def move_item(self, item_id: str, cluster_id: Optional[str], display_order: int) -> None: ...

    @abstractmethod
    def delete_item(self, item_id: str) -> None: ...

    @abstractmethod
    def uncluster_items(self, cluster_id: str, start_order: int) -> int: ...

    @abstractmethod
    def clear_city_plan(self, city_plan_id: str) -> None: ...

    # =========================================================
    # 🧪 Invariants
    # =========================================================
    def assert_invariants(self, city_plan_id: str) -> None:
        """Fails loudly when a city plan would be left with an empty cluster."""
        empty = self.find_empty_clusters(city_plan_id)
        if empty:
            raise InvariantViolationError(
                f"City plan {city_plan_id} would persist empty clusters: {', '.join(empty)}"
            )


class PlanStore(ABC):
    """Factory of sessions; the single source of truth for plan state."""

    @abstractmethod
    @contextmanager
    def session(self) -> Iterator[PlanSession]: ...

    def setup(self) -> None:
        """Creates the schema when the backend needs one."""
