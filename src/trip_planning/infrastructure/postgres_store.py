# ============================================================
# 📦 src/trip_planning/infrastructure/postgres_store.py
# ============================================================

import re
from contextlib import contextmanager
from typing import Iterator

import psycopg2
from loguru import logger

from database.db_connection import get_connection_context
from trip_planning.domain.errors import PlanStoreError
from trip_planning.infrastructure.database_reader import PlanningDatabaseReader
from trip_planning.infrastructure.database_writer import PlanningDatabaseWriter, create_tables
from trip_planning.infrastructure.plan_store import PlanSession, PlanStore

_SAVEPOINT_NAME = re.compile(r"^[a-z_][a-z0-9_]*$")


class PostgresPlanSession(PlanningDatabaseReader, PlanningDatabaseWriter, PlanSession):
    """Reader + writer sharing one connection, i.e. one transaction."""

    def __init__(self, conn):
        PlanningDatabaseReader.__init__(self, conn)
        PlanningDatabaseWriter.__init__(self, conn)

    # =========================================================
    # 🔒 Per city plan serialization
    # =========================================================
    def lock_city_plan(self, city_plan_id: str) -> None:
        # transaction-scoped: released on commit / rollback
        with self.conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s));", (city_plan_id,))
        logger.debug(f"🔒 advisory lock acquired | city_plan={city_plan_id}")

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        if not _SAVEPOINT_NAME.match(name):
            raise ValueError(f"invalid savepoint name: {name}")

        with self.conn.cursor() as cur:
            cur.execute(f"SAVEPOINT {name};")
        try:
            yield
        except psycopg2.Error as e:
            with self.conn.cursor() as cur:
                cur.execute(f"ROLLBACK TO SAVEPOINT {name};")
            raise PlanStoreError(f"Write failed inside savepoint {name}: {e}") from e
        except Exception:
            with self.conn.cursor() as cur:
                cur.execute(f"ROLLBACK TO SAVEPOINT {name};")
            raise
        with self.conn.cursor() as cur:
            cur.execute(f"RELEASE SAVEPOINT {name};")


class PostgresPlanStore(PlanStore):

    def __init__(self, retries: int = 3):
        self.retries = retries

    @contextmanager
    def session(self) -> Iterator[PlanSession]:
        try:
            with get_connection_context(retries=self.retries) as conn:
                yield PostgresPlanSession(conn)
        except (psycopg2.Error, ConnectionError) as e:
            raise PlanStoreError(f"Plan store failure: {e}") from e

    def setup(self) -> None:
        with self.session() as session:
            create_tables(session.conn)
