# src/trip_planning/infrastructure/database_reader.py

from collections import defaultdict
from typing import Any, Dict, List, Optional

from psycopg2.extras import RealDictCursor

from trip_planning.domain.entities import CityPlan, Cluster, LatLng, PlanItem, TripPlan


def _row_to_item(row: Dict[str, Any]) -> PlanItem:
    return PlanItem(
        id=row["id"],
        city_plan_id=row["city_plan_id"],
        cluster_id=row["cluster_id"],
        card_data=row["card_data"] or {},
        display_order=row["display_order"],
    )


def _row_to_cluster(row: Dict[str, Any], items: List[PlanItem]) -> Cluster:
    return Cluster(
        id=row["id"],
        city_plan_id=row["city_plan_id"],
        name=row["name"],
        center=LatLng(
            lat=float(row["center_lat"] or 0),
            lng=float(row["center_lng"] or 0),
        ),
        display_order=row["display_order"],
        items=items,
    )


def _row_to_city_plan(row: Dict[str, Any]) -> CityPlan:
    return CityPlan(
        id=row["id"],
        trip_plan_id=row["trip_plan_id"],
        city_id=row["city_id"],
        city_data=row["city_data"] or {},
        display_order=row["display_order"],
    )


class PlanningDatabaseReader:
    """
    Read side of the plan store.
    Runs on the connection of the enclosing session so reads see
    the session's own uncommitted writes.
    """

    def __init__(self, conn):
        self.conn = conn

    # =========================================================
    # 1️⃣ Trip plan
    # =========================================================
    def get_trip_plan_by_route(self, route_id: str) -> Optional[TripPlan]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute("""
                SELECT id, route_id, user_id, status, created_at, updated_at
                FROM trip_plans
                WHERE route_id = %s;
            """, (route_id,))
            row = cur.fetchone()
            if not row:
                return None
            return TripPlan(
                id=row["id"],
                route_id=row["route_id"],
                user_id=row["user_id"],
                status=row["status"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )

    # =========================================================
    # 2️⃣ City plans
    # =========================================================
    def list_city_plans(self, trip_plan_id: str) -> List[CityPlan]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute("""
                SELECT id, trip_plan_id, city_id, city_data, display_order
                FROM city_plans
                WHERE trip_plan_id = %s
                ORDER BY display_order, id;
            """, (trip_plan_id,))
            return [_row_to_city_plan(row) for row in cur.fetchall()]

    def find_city_plan(self, trip_plan_id: str, city_id: str) -> Optional[CityPlan]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute("""
                SELECT id, trip_plan_id, city_id, city_data, display_order
                FROM city_plans
                WHERE trip_plan_id = %s AND city_id = %s;
            """, (trip_plan_id, city_id))
            row = cur.fetchone()
            return _row_to_city_plan(row) if row else None

    # =========================================================
    # 3️⃣ Clusters (with items, no N+1)
    # =========================================================
    def list_clusters(self, city_plan_id: str) -> List[Cluster]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute("""
                SELECT id, city_plan_id, name, center_lat, center_lng, display_order
                FROM plan_clusters
                WHERE city_plan_id = %s
                ORDER BY display_order, id;
            """, (city_plan_id,))
            cluster_rows = cur.fetchall()

            cur.execute("""
                SELECT id, city_plan_id, cluster_id, card_data, display_order
                FROM plan_items
                WHERE city_plan_id = %s AND cluster_id IS NOT NULL
                ORDER BY display_order, id;
            """, (city_plan_id,))
            by_cluster = defaultdict(list)
            for row in cur.fetchall():
                by_cluster[row["cluster_id"]].append(_row_to_item(row))

        return [_row_to_cluster(row, by_cluster[row["id"]]) for row in cluster_rows]

    def get_cluster(self, cluster_id: str) -> Optional[Cluster]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute("""
                SELECT id, city_plan_id, name, center_lat, center_lng, display_order
                FROM plan_clusters
                WHERE id = %s;
            """, (cluster_id,))
            row = cur.fetchone()
            if not row:
                return None

            cur.execute("""
                SELECT id, city_plan_id, cluster_id, card_data, display_order
                FROM plan_items
                WHERE cluster_id = %s
                ORDER BY display_order, id;
            """, (cluster_id,))
            items = [_row_to_item(r) for r in cur.fetchall()]

        return _row_to_cluster(row, items)

    def find_empty_clusters(self, city_plan_id: str) -> List[str]:
        with self.conn.cursor() as cur:
            cur.execute("""
                SELECT c.id
                FROM plan_clusters c
                LEFT JOIN plan_items i ON i.cluster_id = c.id
                WHERE c.city_plan_id = %s
                GROUP BY c.id
                HAVING COUNT(i.id) = 0;
            """, (city_plan_id,))
            return [row[0] for row in cur.fetchall()]

    # =========================================================
    # 4️⃣ Items
    # =========================================================
    def list_unclustered(self, city_plan_id: str) -> List[PlanItem]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute("""
                SELECT id, city_plan_id, cluster_id, card_data, display_order
                FROM plan_items
                WHERE city_plan_id = %s AND cluster_id IS NULL
                ORDER BY display_order, id;
            """, (city_plan_id,))
            return [_row_to_item(row) for row in cur.fetchall()]

    def get_item(self, item_id: str) -> Optional[PlanItem]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute("""
                SELECT id, city_plan_id, cluster_id, card_data, display_order
                FROM plan_items
                WHERE id = %s;
            """, (item_id,))
            row = cur.fetchone()
            return _row_to_item(row) if row else None

    def next_cluster_order(self, city_plan_id: str) -> int:
        with self.conn.cursor() as cur:
            cur.execute("""
                SELECT COALESCE(MAX(display_order), -1) + 1
                FROM plan_clusters
                WHERE city_plan_id = %s;
            """, (city_plan_id,))
            return int(cur.fetchone()[0])

    def next_item_order(self, city_plan_id: str, cluster_id: Optional[str]) -> int:
        with self.conn.cursor() as cur:
            cur.execute("""
                SELECT COALESCE(MAX(display_order), -1) + 1
                FROM plan_items
                WHERE city_plan_id = %s
                  AND cluster_id IS NOT DISTINCT FROM %s;
            """, (city_plan_id, cluster_id))
            return int(cur.fetchone()[0])
