# ============================================================
# 📦 src/trip_planning/infrastructure/memory_store.py
# ============================================================

import copy
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from loguru import logger

from trip_planning.domain.entities import CityPlan, Cluster, LatLng, PlanItem, TripPlan
from trip_planning.domain.errors import InvariantViolationError
from trip_planning.infrastructure.plan_store import PlanSession, PlanStore


class _State:
    def __init__(self):
        self.trip_plans: Dict[str, TripPlan] = {}
        self.city_plans: Dict[str, CityPlan] = {}
        self.clusters: Dict[str, Cluster] = {}
        self.items: Dict[str, PlanItem] = {}


def _by_order(rows):
    return sorted(rows, key=lambda r: (r.display_order, r.id))


class InMemoryPlanSession(PlanSession):
    """
    Session over the in-memory state. The store lock is held for the
    whole session, so every session is serialized and sees its own writes.
    Rows are copied in and out; callers never alias stored objects.
    """

    def __init__(self, state: _State):
        self.state = state

    # =========================================================
    # 🔒 Concurrency control
    # =========================================================
    def lock_city_plan(self, city_plan_id: str) -> None:
        logger.debug(f"🔒 memory store already serialized | city_plan={city_plan_id}")

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        snapshot = copy.deepcopy(self.state.__dict__)
        try:
            yield
        except Exception:
            self.state.__dict__.update(snapshot)
            raise

    # =========================================================
    # 📖 Reads
    # =========================================================
    def get_trip_plan_by_route(self, route_id: str) -> Optional[TripPlan]:
        for plan in self.state.trip_plans.values():
            if plan.route_id == route_id:
                return copy.deepcopy(plan)
        return None

    def list_city_plans(self, trip_plan_id: str) -> List[CityPlan]:
        rows = [c for c in self.state.city_plans.values() if c.trip_plan_id == trip_plan_id]
        return copy.deepcopy(_by_order(rows))

    def find_city_plan(self, trip_plan_id: str, city_id: str) -> Optional[CityPlan]:
        for city_plan in self.state.city_plans.values():
            if city_plan.trip_plan_id == trip_plan_id and city_plan.city_id == city_id:
                return copy.deepcopy(city_plan)
        return None

    def _items_of(self, cluster_id: str) -> List[PlanItem]:
        return _by_order(i for i in self.state.items.values() if i.cluster_id == cluster_id)

    def list_clusters(self, city_plan_id: str) -> List[Cluster]:
        rows = _by_order(c for c in self.state.clusters.values() if c.city_plan_id == city_plan_id)
        return [replace(copy.deepcopy(c), items=copy.deepcopy(self._items_of(c.id))) for c in rows]

    def get_cluster(self, cluster_id: str) -> Optional[Cluster]:
        cluster = self.state.clusters.get(cluster_id)
        if cluster is None:
            return None
        return replace(copy.deepcopy(cluster), items=copy.deepcopy(self._items_of(cluster_id)))

    def list_unclustered(self, city_plan_id: str) -> List[PlanItem]:
        rows = [i for i in self.state.items.values() if i.city_plan_id == city_plan_id and i.cluster_id is None]
        return copy.deepcopy(_by_order(rows))

    def get_item(self, item_id: str) -> Optional[PlanItem]:
        item = self.state.items.get(item_id)
        return copy.deepcopy(item) if item else None

    def find_empty_clusters(self, city_plan_id: str) -> List[str]:
        return [
            c.id
            for c in _by_order(self.state.clusters.values())
            if c.city_plan_id == city_plan_id and not self._items_of(c.id)
        ]

    def next_cluster_order(self, city_plan_id: str) -> int:
        orders = [c.display_order for c in self.state.clusters.values() if c.city_plan_id == city_plan_id]
        return max(orders, default=-1) + 1

    def next_item_order(self, city_plan_id: str, cluster_id: Optional[str]) -> int:
        orders = [
            i.display_order
            for i in self.state.items.values()
            if i.city_plan_id == city_plan_id and i.cluster_id == cluster_id
        ]
        return max(orders, default=-1) + 1

    # =========================================================
    # ✍️ Writes (same constraints as the SQL schema)
    # =========================================================
    def insert_trip_plan(self, plan: TripPlan) -> None:
        if plan.id in self.state.trip_plans or self.get_trip_plan_by_route(plan.route_id):
            raise InvariantViolationError(f"duplicate trip plan {plan.id} / route {plan.route_id}")
        now = datetime.now(timezone.utc)
        self.state.trip_plans[plan.id] = replace(plan, cities=[], created_at=now, updated_at=now)

    def insert_city_plan(self, city_plan: CityPlan) -> None:
        if city_plan.trip_plan_id not in self.state.trip_plans:
            raise InvariantViolationError(f"trip plan {city_plan.trip_plan_id} does not exist")
        if city_plan.id in self.state.city_plans or self.find_city_plan(city_plan.trip_plan_id, city_plan.city_id):
            raise InvariantViolationError(f"duplicate city plan {city_plan.id} / city {city_plan.city_id}")
        self.state.city_plans[city_plan.id] = replace(copy.deepcopy(city_plan), clusters=[], unclustered=[])

    def touch_trip_plan(self, trip_plan_id: str) -> None:
        plan = self.state.trip_plans.get(trip_plan_id)
        if plan is not None:
            plan.updated_at = datetime.now(timezone.utc)

    def insert_cluster(self, cluster: Cluster) -> None:
        if cluster.city_plan_id not in self.state.city_plans:
            raise InvariantViolationError(f"city plan {cluster.city_plan_id} does not exist")
        if cluster.id in self.state.clusters:
            raise InvariantViolationError(f"duplicate cluster {cluster.id}")
        self.state.clusters[cluster.id] = replace(cluster, items=[])

    def update_cluster_name(self, cluster_id: str, name: str) -> None:
        if cluster_id in self.state.clusters:
            self.state.clusters[cluster_id].name = name

    def update_cluster_center(self, cluster_id: str, center: LatLng) -> None:
        if cluster_id in self.state.clusters:
            self.state.clusters[cluster_id].center = center

    def delete_cluster(self, cluster_id: str) -> None:
        if self._items_of(cluster_id):
            raise InvariantViolationError(f"cluster {cluster_id} still has items")
        self.state.clusters.pop(cluster_id, None)

    def insert_item(self, item: PlanItem) -> None:
        if item.city_plan_id not in self.state.city_plans:
            raise InvariantViolationError(f"city plan {item.city_plan_id} does not exist")
        if item.id in self.state.items:
            raise InvariantViolationError(f"duplicate item {item.id}")
        if item.cluster_id is not None and item.cluster_id not in self.state.clusters:
            raise InvariantViolationError(f"item {item.id} references missing cluster {item.cluster_id}")
        self.state.items[item.id] = copy.deepcopy(item)

    def move_item(self, item_id: str, cluster_id: Optional[str], display_order: int) -> None:
        if cluster_id is not None and cluster_id not in self.state.clusters:
            raise InvariantViolationError(f"item {item_id} references missing cluster {cluster_id}")
        item = self.state.items.get(item_id)
        if item is not None:
            item.cluster_id = cluster_id
            item.display_order = display_order

    def delete_item(self, item_id: str) -> None:
        self.state.items.pop(item_id, None)

    def uncluster_items(self, cluster_id: str, start_order: int) -> int:
        members = self._items_of(cluster_id)
        for offset, item in enumerate(members):
            item.cluster_id = None
            item.display_order = start_order + offset
        return len(members)

    def clear_city_plan(self, city_plan_id: str) -> None:
        for item_id in [i.id for i in self.state.items.values() if i.city_plan_id == city_plan_id]:
            del self.state.items[item_id]
        for cluster_id in [c.id for c in self.state.clusters.values() if c.city_plan_id == city_plan_id]:
            del self.state.clusters[cluster_id]


class InMemoryPlanStore(PlanStore):
    """
    Process-local plan store for development and tests.
    Single writer: one re-entrant lock guards every session, and a failed
    session restores the snapshot taken when it started.
    """

    def __init__(self):
        self._state = _State()
        self._lock = threading.RLock()

    @contextmanager
    def session(self) -> Iterator[PlanSession]:
        with self._lock:
            snapshot = copy.deepcopy(self._state.__dict__)
            try:
                yield InMemoryPlanSession(self._state)
            except Exception:
                self._state.__dict__.update(snapshot)
                raise
