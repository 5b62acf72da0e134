# ============================================================
# 📦 src/trip_planning/infrastructure/database_writer.py
# ============================================================

from typing import Optional

from loguru import logger
from psycopg2.extras import Json

from trip_planning.domain.entities import CityPlan, Cluster, LatLng, PlanItem, TripPlan


# ============================================================
# 🧩 Schema
# ============================================================
SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS trip_plans (
        id TEXT PRIMARY KEY,
        route_id TEXT UNIQUE NOT NULL,
        user_id TEXT,
        status VARCHAR(32) NOT NULL DEFAULT 'planning',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS city_plans (
        id TEXT PRIMARY KEY,
        trip_plan_id TEXT NOT NULL REFERENCES trip_plans(id) ON DELETE CASCADE,
        city_id TEXT NOT NULL,
        city_data JSONB NOT NULL DEFAULT '{}'::jsonb,
        display_order INTEGER NOT NULL DEFAULT 0,
        UNIQUE (trip_plan_id, city_id)
    );

    CREATE TABLE IF NOT EXISTS plan_clusters (
        id TEXT PRIMARY KEY,
        city_plan_id TEXT NOT NULL REFERENCES city_plans(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        center_lat DOUBLE PRECISION,
        center_lng DOUBLE PRECISION,
        display_order INTEGER NOT NULL DEFAULT 0
    );

    -- RESTRICT: a cluster can only go away once its items are gone or unclustered
    CREATE TABLE IF NOT EXISTS plan_items (
        id TEXT PRIMARY KEY,
        city_plan_id TEXT NOT NULL REFERENCES city_plans(id) ON DELETE CASCADE,
        cluster_id TEXT REFERENCES plan_clusters(id) ON DELETE RESTRICT,
        card_data JSONB NOT NULL,
        display_order INTEGER NOT NULL DEFAULT 0
    );

    CREATE INDEX IF NOT EXISTS idx_plan_clusters_city_plan ON plan_clusters (city_plan_id);
    CREATE INDEX IF NOT EXISTS idx_plan_items_city_plan ON plan_items (city_plan_id);
    CREATE INDEX IF NOT EXISTS idx_plan_items_cluster ON plan_items (cluster_id);
"""


def create_tables(conn) -> None:
    with conn.cursor() as cur:
        cur.execute(SCHEMA_SQL)
    logger.info("🧱 Planning schema ready (trip_plans, city_plans, plan_clusters, plan_items)")


class PlanningDatabaseWriter:
    """Write side of the plan store. Never commits: the session does."""

    def __init__(self, conn):
        self.conn = conn

    # ============================================================
    # 🆕 Trip / city plans
    # ============================================================
    def insert_trip_plan(self, plan: TripPlan) -> None:
        with self.conn.cursor() as cur:
            cur.execute("""
                INSERT INTO trip_plans (id, route_id, user_id, status, created_at, updated_at)
                VALUES (%s, %s, %s, %s, NOW(), NOW());
            """, (plan.id, plan.route_id, plan.user_id, plan.status))
        logger.debug(f"🆕 trip_plan {plan.id} (route={plan.route_id})")

    def insert_city_plan(self, city_plan: CityPlan) -> None:
        with self.conn.cursor() as cur:
            cur.execute("""
                INSERT INTO city_plans (id, trip_plan_id, city_id, city_data, display_order)
                VALUES (%s, %s, %s, %s, %s);
            """, (
                city_plan.id,
                city_plan.trip_plan_id,
                city_plan.city_id,
                Json(city_plan.city_data),
                int(city_plan.display_order),
            ))
        logger.debug(f"🆕 city_plan {city_plan.id} ({city_plan.city_name})")

    def touch_trip_plan(self, trip_plan_id: str) -> None:
        with self.conn.cursor() as cur:
            cur.execute("UPDATE trip_plans SET updated_at = NOW() WHERE id = %s;", (trip_plan_id,))

    # ============================================================
    # 🗺️ Clusters
    # ============================================================
    def insert_cluster(self, cluster: Cluster) -> None:
        with self.conn.cursor() as cur:
            cur.execute("""
                INSERT INTO plan_clusters (id, city_plan_id, name, center_lat, center_lng, display_order)
                VALUES (%s, %s, %s, %s, %s, %s);
            """, (
                cluster.id,
                cluster.city_plan_id,
                cluster.name,
                float(cluster.center.lat),
                float(cluster.center.lng),
                int(cluster.display_order),
            ))

    def update_cluster_name(self, cluster_id: str, name: str) -> None:
        with self.conn.cursor() as cur:
            cur.execute("UPDATE plan_clusters SET name = %s WHERE id = %s;", (name, cluster_id))

    def update_cluster_center(self, cluster_id: str, center: LatLng) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                "UPDATE plan_clusters SET center_lat = %s, center_lng = %s WHERE id = %s;",
                (float(center.lat), float(center.lng), cluster_id),
            )

    def delete_cluster(self, cluster_id: str) -> None:
        with self.conn.cursor() as cur:
            cur.execute("DELETE FROM plan_clusters WHERE id = %s;", (cluster_id,))

    # ============================================================
    # 🃏 Items
    # ============================================================
    def insert_item(self, item: PlanItem) -> None:
        with self.conn.cursor() as cur:
            cur.execute("""
                INSERT INTO plan_items (id, city_plan_id, cluster_id, card_data, display_order)
                VALUES (%s, %s, %s, %s, %s);
            """, (
                item.id,
                item.city_plan_id,
                item.cluster_id,
                Json(item.card_data),
                int(item.display_order),
            ))

    def move_item(self, item_id: str, cluster_id: Optional[str], display_order: int) -> None:
        with self.conn.cursor() as cur:
            cur.execute(
                "UPDATE plan_items SET cluster_id = %s, display_order = %s WHERE id = %s;",
                (cluster_id, int(display_order), item_id),
            )

    def delete_item(self, item_id: str) -> None:
        with self.conn.cursor() as cur:
            cur.execute("DELETE FROM plan_items WHERE id = %s;", (item_id,))

    def uncluster_items(self, cluster_id: str, start_order: int) -> int:
        """Clears the cluster reference, appending the items after the unclustered ones."""
        with self.conn.cursor() as cur:
            cur.execute("""
                WITH ordered AS (
                    SELECT id, ROW_NUMBER() OVER (ORDER BY display_order, id) - 1 AS rn
                    FROM plan_items
                    WHERE cluster_id = %s
                )
                UPDATE plan_items p
                SET cluster_id = NULL,
                    display_order = %s + ordered.rn
                FROM ordered
                WHERE p.id = ordered.id;
            """, (cluster_id, int(start_order)))
            return cur.rowcount

    def clear_city_plan(self, city_plan_id: str) -> None:
        with self.conn.cursor() as cur:
            cur.execute("DELETE FROM plan_items WHERE city_plan_id = %s;", (city_plan_id,))
            cur.execute("DELETE FROM plan_clusters WHERE city_plan_id = %s;", (city_plan_id,))
