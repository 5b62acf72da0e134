# ============================================================
# 📦 src/trip_planning/application/planning_use_case.py
# ============================================================

from typing import Any, Dict, List, Optional, Set, Tuple

from loguru import logger

from trip_planning.config.settings import ClusteringConfig, GeocoderConfig, get_plan_store_kind
from trip_planning.domain.centroid import calculate_centroid, cluster_summary
from trip_planning.domain.cluster_selector import ClusterSelector
from trip_planning.domain.day_suggestions import generate_suggested_clusters
from trip_planning.domain.entities import (
    CityPlan,
    Cluster,
    LatLng,
    PlacementDecision,
    PlanItem,
    TripPlan,
)
from trip_planning.domain.errors import (
    InvariantViolationError,
    PlanningNotFoundError,
    PlanningValidationError,
    PlanStoreError,
)
from trip_planning.domain.haversine_utils import travel_times
from trip_planning.domain.neighborhood_namer import NeighborhoodNamer
from trip_planning.domain.proximity import rank_cards_by_proximity
from trip_planning.domain.validators import generate_id, require, validate_card, validate_cards
from trip_planning.infrastructure.plan_store import PlanSession, PlanStore


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _place_name(value: Any, fallback: str) -> str:
    if isinstance(value, dict):
        return value.get("name") or value.get("city") or fallback
    return str(value) if value else fallback


class PlanningUseCase:
    """
    Every public planning operation.

    Mutating operations follow the same shape:
      1. validate input (no store access)
      2. open one store session, resolve the city plan, lock it
      3. read the current clusters fresh, decide in memory
      4. write, cascade, check invariants, commit
    """

    def __init__(
        self,
        store: PlanStore,
        config: Optional[ClusteringConfig] = None,
        namer: Optional[NeighborhoodNamer] = None,
    ):
        self.store = store
        self.config = config or ClusteringConfig()
        self.selector = ClusterSelector(self.config)
        self.namer = namer or NeighborhoodNamer()

    @classmethod
    def from_env(cls) -> "PlanningUseCase":
        kind = get_plan_store_kind()
        if kind == "memory":
            from trip_planning.infrastructure.memory_store import InMemoryPlanStore
            store = InMemoryPlanStore()
        elif kind == "postgres":
            from trip_planning.infrastructure.postgres_store import PostgresPlanStore
            store = PostgresPlanStore()
        else:
            raise ValueError(f"Unknown PLAN_STORE: {kind}")

        logger.info(f"⚙️ PlanningUseCase | store={kind}")
        return cls(
            store=store,
            config=ClusteringConfig.from_env(),
            namer=NeighborhoodNamer(GeocoderConfig.from_env()),
        )

    def setup(self):
        self.store.setup()

    # ============================================================
    # 🧭 Lookups shared by the operations
    # ============================================================
    @staticmethod
    def _require_plan(session: PlanSession, route_id: str) -> TripPlan:
        plan = session.get_trip_plan_by_route(route_id)
        if plan is None:
            raise PlanningNotFoundError(f"Plan not found for route {route_id}")
        return plan

    def _require_city_plan(self, session: PlanSession, route_id: str, city_id: str) -> Tuple[TripPlan, CityPlan]:
        plan = self._require_plan(session, route_id)
        city_plan = session.find_city_plan(plan.id, city_id)
        if city_plan is None:
            raise PlanningNotFoundError(f"City plan not found: route={route_id} city={city_id}")
        return plan, city_plan

    def _get_or_create_city_plan(self, session: PlanSession, route_id: str, city_id: str) -> Tuple[TripPlan, CityPlan]:
        """A city the route does not list yet gets a bare plan, appended after the others."""
        plan = self._require_plan(session, route_id)
        # serializes concurrent first adds to the same city
        session.lock_city_plan(f"{plan.id}:{city_id}")

        city_plan = session.find_city_plan(plan.id, city_id)
        if city_plan is not None:
            return plan, city_plan

        city_plan = CityPlan(
            id=generate_id("cityplan"),
            trip_plan_id=plan.id,
            city_id=city_id,
            city_data={"id": city_id, "name": city_id},
            display_order=len(session.list_city_plans(plan.id)),
        )
        session.insert_city_plan(city_plan)
        logger.info(f"🆕 City plan created on first item | route={route_id} | city={city_id}")
        return plan, city_plan

    def _require_owned_city_plan(self, session: PlanSession, route_id: str, city_plan_id: str) -> TripPlan:
        plan = self._require_plan(session, route_id)
        if city_plan_id not in {c.id for c in session.list_city_plans(plan.id)}:
            raise PlanningNotFoundError(f"City plan {city_plan_id} does not belong to route {route_id}")
        return plan

    # ============================================================
    # 🆕 Plan lifecycle
    # ============================================================
    def _build_city_data(self, waypoint: Any, index: int, total: int, nights: Optional[int] = None) -> Dict[str, Any]:
        data = waypoint if isinstance(waypoint, dict) else {"name": str(waypoint)}
        coords = data.get("coordinates") or {}
        return {
            "id": data.get("id") or f"city-{index}",
            "name": _place_name(data, "Unknown"),
            "country": data.get("country") or "",
            "coordinates": {
                "lat": data.get("lat") or data.get("latitude") or coords.get("lat") or 0,
                "lng": data.get("lng") or data.get("longitude") or coords.get("lng") or 0,
            },
            "nights": nights or data.get("nights") or data.get("suggestedNights") or 1,
            "isOrigin": index == 0,
            "isDestination": index == total - 1,
            "imageUrl": data.get("imageUrl"),
        }

    def create_plan_from_route(
        self,
        route_id: str,
        waypoints: List[Any],
        user_id: Optional[str] = None,
        nights_override: Optional[Dict[int, int]] = None,
    ) -> Dict[str, Any]:
        """One city plan per waypoint, ordered origin → destination."""
        require(route_id, "routeId")
        if not waypoints:
            raise PlanningValidationError("route has no waypoints")

        nights_override = nights_override or {}
        plan = TripPlan(id=generate_id("plan"), route_id=route_id, user_id=user_id, status="planning")

        with self.store.session() as session:
            if session.get_trip_plan_by_route(route_id) is not None:
                raise PlanningValidationError(f"A plan already exists for route {route_id}")

            session.insert_trip_plan(plan)

            seen: Set[str] = set()
            for index, waypoint in enumerate(waypoints):
                city_data = self._build_city_data(waypoint, index, len(waypoints), nights_override.get(index))
                if city_data["id"] in seen:
                    city_data["id"] = f"{city_data['id']}-{index}"
                seen.add(city_data["id"])

                session.insert_city_plan(CityPlan(
                    id=generate_id("cityplan"),
                    trip_plan_id=plan.id,
                    city_id=city_data["id"],
                    city_data=city_data,
                    display_order=index,
                ))

        logger.info(f"🆕 Trip plan created | route={route_id} | plan={plan.id} | cities={len(waypoints)}")
        return self.get_plan(route_id)

    def start_plan(
        self,
        origin: Any,
        destination: Any,
        waypoints: Optional[List[Any]] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Starts planning without a pre-existing route: origin 1 night, destination 2."""
        if not origin or not destination:
            raise PlanningValidationError("Origin and destination are required")

        stops = [origin, *(waypoints or []), destination]
        route_id = generate_id("route")
        trip_plan = self.create_plan_from_route(
            route_id,
            stops,
            user_id=user_id,
            nights_override={0: 1, len(stops) - 1: 2},
        )
        logger.info(
            f"🧭 Planning started | {_place_name(origin, '?')} → {_place_name(destination, '?')} | route={route_id}"
        )
        return {"routeId": route_id, "tripPlan": trip_plan}

    # ============================================================
    # 📖 Read model
    # ============================================================
    def _city_plan_to_dict(self, session: PlanSession, city_plan: CityPlan) -> Dict[str, Any]:
        clusters = session.list_clusters(city_plan.id)
        unclustered = session.list_unclustered(city_plan.id)
        return {
            "id": city_plan.id,
            "cityId": city_plan.city_id,
            "city": city_plan.city_data,
            "clusters": [cluster_summary(c, self.config) for c in clusters],
            "unclustered": [i.card_data for i in unclustered],
            "suggestedClusters": [
                s.to_dict()
                for s in generate_suggested_clusters(city_plan.city_data, self.config.default_suggested_nights)
            ],
        }

    def get_plan(self, route_id: str) -> Dict[str, Any]:
        require(route_id, "routeId")
        with self.store.session() as session:
            plan = self._require_plan(session, route_id)
            cities = [self._city_plan_to_dict(session, c) for c in session.list_city_plans(plan.id)]

        return {
            "id": plan.id,
            "routeId": plan.route_id,
            "userId": plan.user_id,
            "status": plan.status,
            "cities": cities,
            "createdAt": _iso(plan.created_at),
            "updatedAt": _iso(plan.updated_at),
        }

    # ============================================================
    # 🔁 Cascade: recompute or delete after membership changes
    # ============================================================
    @staticmethod
    def _settle_cluster(session: PlanSession, cluster_id: str) -> bool:
        """
        populated(N) → centroid recomputed
        empty        → deleted in the same session
        Returns True when the cluster was deleted.
        """
        cluster = session.get_cluster(cluster_id)
        if cluster is None:
            return True

        if not cluster.items:
            session.delete_cluster(cluster_id)
            logger.info(f"🗑️ Empty cluster deleted | {cluster.name} ({cluster_id})")
            return True

        center = calculate_centroid(cluster.items)
        session.update_cluster_center(cluster_id, center)
        logger.debug(f"🎯 Centroid recomputed | {cluster.name} → ({center.lat:.6f}, {center.lng:.6f})")
        return False

    @staticmethod
    def _assert_item_in_city(existing: PlanItem, city_plan_id: str):
        if existing.city_plan_id != city_plan_id:
            raise PlanningValidationError(f"Item {existing.id} already belongs to another city plan")

    # ============================================================
    # ➕ Add item (auto placement)
    # ============================================================
    def _place(self, session: PlanSession, city_plan: CityPlan, item: PlanItem) -> Tuple[Optional[Cluster], bool]:
        clusters = session.list_clusters(city_plan.id)
        decision: PlacementDecision = self.selector.select(item, clusters)

        if not decision.create_new:
            target = next(c for c in clusters if c.id == decision.cluster_id)
            return target, False

        name = self.namer.resolve(item.location, city_plan.city_name, decision.suggested_name)
        cluster = Cluster(
            id=generate_id("cluster"),
            city_plan_id=city_plan.id,
            name=name,
            center=calculate_centroid([item]),
            display_order=session.next_cluster_order(city_plan.id),
        )
        session.insert_cluster(cluster)
        logger.info(f"🆕 Cluster created | {cluster.name} ({cluster.id}) | city={city_plan.city_name}")
        return cluster, True

    def add_item(self, route_id: str, city_id: str, card: Dict[str, Any]) -> Dict[str, Any]:
        require(route_id, "routeId")
        require(city_id, "cityId")
        card = validate_card(card)

        with self.store.session() as session:
            plan, city_plan = self._get_or_create_city_plan(session, route_id, city_id)
            session.lock_city_plan(city_plan.id)

            item_id = str(card.get("id") or generate_id("item"))
            if session.get_item(item_id) is not None:
                raise PlanningValidationError(f"Item {item_id} is already in the plan")

            item = PlanItem(id=item_id, city_plan_id=city_plan.id, card_data={**card, "id": item_id})

            target, is_new = None, False
            try:
                with session.savepoint("placement"):
                    target, is_new = self._place(session, city_plan, item)
            except (InvariantViolationError, PlanStoreError):
                raise
            except Exception as e:
                # keep the item, clustering deferred
                logger.opt(exception=e).warning(f"⚠️ Placement failed for '{item.name}', adding unclustered: {e}")
                target, is_new = None, False

            item.cluster_id = target.id if target else None
            item.display_order = session.next_item_order(city_plan.id, item.cluster_id)
            session.insert_item(item)

            if target is not None and not is_new:
                self._settle_cluster(session, target.id)

            session.touch_trip_plan(plan.id)
            session.assert_invariants(city_plan.id)

        logger.info(
            f"📍 Item added | '{item.name}' ({item.type or 'n/a'}) → "
            f"{target.name if target else 'unclustered'}{' [new]' if is_new else ''}"
        )
        return {
            "success": True,
            "itemId": item.id,
            "clusterId": target.id if target else None,
            "clusterName": target.name if target else None,
            "isNewCluster": is_new,
        }

    # ============================================================
    # ➖ Remove item
    # ============================================================
    def remove_item(
        self,
        route_id: str,
        item_id: str,
        cluster_id: Optional[str] = None,
        city_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        require(route_id, "routeId")
        require(item_id, "itemId")

        with self.store.session() as session:
            item = session.get_item(item_id)
            if item is None:
                raise PlanningNotFoundError(f"Item {item_id} not found")
            plan = self._require_owned_city_plan(session, route_id, item.city_plan_id)
            if city_id:
                city_plan = session.find_city_plan(plan.id, city_id)
                if city_plan is None or city_plan.id != item.city_plan_id:
                    raise PlanningNotFoundError(f"Item {item_id} not found in city {city_id}")

            session.lock_city_plan(item.city_plan_id)
            item = session.get_item(item_id)
            if item is None:
                raise PlanningNotFoundError(f"Item {item_id} not found")

            if cluster_id and item.cluster_id != cluster_id:
                raise PlanningValidationError(f"Item {item_id} is not in cluster {cluster_id}")

            session.delete_item(item_id)
            cluster_deleted = False
            if item.cluster_id is not None:
                cluster_deleted = self._settle_cluster(session, item.cluster_id)

            session.touch_trip_plan(plan.id)
            session.assert_invariants(item.city_plan_id)

        logger.info(f"➖ Item removed | {item_id} | cluster={item.cluster_id} | cluster_deleted={cluster_deleted}")
        return {"success": True, "clusterDeleted": cluster_deleted}

    # ============================================================
    # 🗺️ Explicit cluster management
    # ============================================================
    def _attach_cards(
        self,
        session: PlanSession,
        city_plan_id: str,
        cluster_id: str,
        cards: List[Dict[str, Any]],
    ) -> Set[str]:
        """
        Inserts new cards into the cluster; cards already planned in the
        same city are moved (never duplicated).
        Returns the ids of clusters that lost items.
        """
        emptied: Set[str] = set()
        order = session.next_item_order(city_plan_id, cluster_id)
        seen: Set[str] = set()

        for card in cards:
            item_id = str(card.get("id") or generate_id("item"))
            if item_id in seen:
                continue
            seen.add(item_id)

            existing = session.get_item(item_id)
            if existing is not None:
                self._assert_item_in_city(existing, city_plan_id)
                if existing.cluster_id == cluster_id:
                    continue
                session.move_item(item_id, cluster_id, order)
                if existing.cluster_id is not None:
                    emptied.add(existing.cluster_id)
            else:
                session.insert_item(PlanItem(
                    id=item_id,
                    city_plan_id=city_plan_id,
                    cluster_id=cluster_id,
                    card_data={**card, "id": item_id},
                    display_order=order,
                ))
            order += 1

        return emptied

    def create_cluster(
        self,
        route_id: str,
        city_id: str,
        name: str,
        center: Optional[Dict[str, Any]] = None,
        initial_items: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        User-driven creation, the selector is bypassed.
        Center: centroid of the members, else the supplied center, else {0,0}.
        """
        require(route_id, "routeId")
        require(city_id, "cityId")
        require(name, "name")
        cards = validate_cards(initial_items, "initialItems")
        if not cards:
            raise PlanningValidationError("initialItems must contain at least one item")
        requested = LatLng.from_dict(center if isinstance(center, dict) else None)

        with self.store.session() as session:
            plan, city_plan = self._require_city_plan(session, route_id, city_id)
            session.lock_city_plan(city_plan.id)

            cluster = Cluster(
                id=generate_id("cluster"),
                city_plan_id=city_plan.id,
                name=name.strip(),
                center=requested,
                display_order=session.next_cluster_order(city_plan.id),
            )
            session.insert_cluster(cluster)

            for previous in self._attach_cards(session, city_plan.id, cluster.id, cards):
                self._settle_cluster(session, previous)

            centroid = calculate_centroid(session.get_cluster(cluster.id).items)
            if not centroid.is_unknown:
                session.update_cluster_center(cluster.id, centroid)

            session.touch_trip_plan(plan.id)
            session.assert_invariants(city_plan.id)
            created = session.get_cluster(cluster.id)

        logger.info(f"🆕 Cluster created by user | {created.name} ({created.id}) | items={len(created.items)}")
        return cluster_summary(created, self.config)

    def update_cluster(
        self,
        route_id: str,
        cluster_id: str,
        name: Optional[str] = None,
        add_items: Optional[List[Dict[str, Any]]] = None,
        remove_item_ids: Optional[List[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Returns the updated cluster, or None when the edit emptied (and deleted) it."""
        require(route_id, "routeId")
        require(cluster_id, "clusterId")
        cards = validate_cards(add_items, "addItems")
        remove_item_ids = [str(i) for i in (remove_item_ids or [])]

        with self.store.session() as session:
            cluster = session.get_cluster(cluster_id)
            if cluster is None:
                raise PlanningNotFoundError(f"Cluster {cluster_id} not found")
            plan = self._require_owned_city_plan(session, route_id, cluster.city_plan_id)

            session.lock_city_plan(cluster.city_plan_id)
            if session.get_cluster(cluster_id) is None:
                raise PlanningNotFoundError(f"Cluster {cluster_id} not found")

            if name and name.strip():
                session.update_cluster_name(cluster_id, name.strip())

            touched = self._attach_cards(session, cluster.city_plan_id, cluster_id, cards)

            for item_id in remove_item_ids:
                item = session.get_item(item_id)
                if item is not None and item.cluster_id == cluster_id:
                    session.delete_item(item_id)

            for previous in touched:
                self._settle_cluster(session, previous)
            deleted = self._settle_cluster(session, cluster_id)

            session.touch_trip_plan(plan.id)
            session.assert_invariants(cluster.city_plan_id)
            updated = None if deleted else session.get_cluster(cluster_id)

        logger.info(f"✏️ Cluster updated | {cluster_id} | +{len(cards)} -{len(remove_item_ids)} | deleted={deleted}")
        return cluster_summary(updated, self.config) if updated else None

    def delete_cluster(self, route_id: str, cluster_id: str) -> Dict[str, Any]:
        """Members become unclustered; they are not deleted."""
        require(route_id, "routeId")
        require(cluster_id, "clusterId")

        with self.store.session() as session:
            cluster = session.get_cluster(cluster_id)
            if cluster is None:
                raise PlanningNotFoundError(f"Cluster {cluster_id} not found")
            plan = self._require_owned_city_plan(session, route_id, cluster.city_plan_id)
            session.lock_city_plan(cluster.city_plan_id)

            start = session.next_item_order(cluster.city_plan_id, None)
            moved = session.uncluster_items(cluster_id, start)
            session.delete_cluster(cluster_id)

            session.touch_trip_plan(plan.id)
            session.assert_invariants(cluster.city_plan_id)

        logger.info(f"🗑️ Cluster deleted | {cluster.name} ({cluster_id}) | {moved} items unclustered")
        return {"success": True, "unclusteredCount": moved}

    # ============================================================
    # 💾 Bulk save (UI snapshot)
    # ============================================================
    def save_plan(self, route_id: str, cities: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Replaces the clusters and items of each city in the payload.
        Empty clusters are dropped, centroids re-derived, duplicate
        item ids kept at their first occurrence only.
        """
        require(route_id, "routeId")
        if not isinstance(cities, list):
            raise PlanningValidationError("cities must be a list")
        for city in cities:
            if not isinstance(city, dict) or not city.get("cityId"):
                raise PlanningValidationError("every city needs a cityId")
            for cluster in city.get("clusters") or []:
                validate_cards(cluster.get("items"), "clusters[].items")
            validate_cards(city.get("unclustered"), "unclustered")

        with self.store.session() as session:
            plan = self._require_plan(session, route_id)
            existing_count = len(session.list_city_plans(plan.id))

            for city in cities:
                city_plan = session.find_city_plan(plan.id, city["cityId"])
                if city_plan is None:
                    city_plan = CityPlan(
                        id=generate_id("cityplan"),
                        trip_plan_id=plan.id,
                        city_id=city["cityId"],
                        city_data=city.get("city") or {"id": city["cityId"], "name": city["cityId"]},
                        display_order=existing_count,
                    )
                    session.insert_city_plan(city_plan)
                    existing_count += 1

                session.lock_city_plan(city_plan.id)
                self._replace_city_contents(session, city_plan.id, city)
                session.assert_invariants(city_plan.id)

            session.touch_trip_plan(plan.id)
            updated = session.get_trip_plan_by_route(route_id)

        logger.info(f"💾 Plan saved | route={route_id} | cities={len(cities)}")
        return {"success": True, "updatedAt": _iso(updated.updated_at) if updated else None}

    def _replace_city_contents(self, session: PlanSession, city_plan_id: str, city: Dict[str, Any]):
        session.clear_city_plan(city_plan_id)
        seen: Set[str] = set()

        def fresh(cards):
            out = []
            for card in cards or []:
                item_id = str(card.get("id") or generate_id("item"))
                if item_id in seen:
                    continue
                seen.add(item_id)
                out.append({**card, "id": item_id})
            return out

        order = 0
        for payload in city.get("clusters") or []:
            cards = fresh(payload.get("items"))
            if not cards:
                logger.debug(f"🧹 Dropping empty cluster from payload: {payload.get('name')}")
                continue

            items = [PlanItem(id=c["id"], city_plan_id=city_plan_id, card_data=c) for c in cards]
            cluster = Cluster(
                id=payload.get("id") or generate_id("cluster"),
                city_plan_id=city_plan_id,
                name=payload.get("name") or "New Area",
                center=calculate_centroid(items),
                display_order=order,
            )
            session.insert_cluster(cluster)
            for position, item in enumerate(items):
                item.cluster_id = cluster.id
                item.display_order = position
                session.insert_item(item)
            order += 1

        for position, card in enumerate(fresh(city.get("unclustered"))):
            session.insert_item(PlanItem(
                id=card["id"], city_plan_id=city_plan_id, card_data=card, display_order=position,
            ))

    # ============================================================
    # 📏 Distance / proximity
    # ============================================================
    def distance(self, origin: Tuple[float, float], destination: Tuple[float, float]) -> Dict[str, Optional[int]]:
        return travel_times(LatLng(*origin), LatLng(*destination), self.config)

    def rank_by_proximity(self, route_id: str, city_id: str, cards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        require(route_id, "routeId")
        require(city_id, "cityId")
        cards = validate_cards(cards, "cards")

        clusters: List[Cluster] = []
        city_center = LatLng()
        try:
            with self.store.session() as session:
                _, city_plan = self._require_city_plan(session, route_id, city_id)
                clusters = session.list_clusters(city_plan.id)
                coords = city_plan.city_data.get("coordinates") or {}
                city_center = LatLng.from_dict(coords)
        except PlanStoreError as e:
            # secondary read: rank without plan context
            logger.warning(f"⚠️ Cluster lookup unavailable, ranking without clusters: {e}")

        if not clusters and not city_center.is_unknown:
            clusters = [Cluster(id="city-center", city_plan_id="", name="City Center", center=city_center)]

        return rank_cards_by_proximity(cards, clusters, self.config)
