#trip_planner/src/database/db_connection.py

import os
import time
import psycopg2
from psycopg2 import OperationalError, InterfaceError, DatabaseError
from contextlib import contextmanager
from loguru import logger


# =====================================================
# ⚙️ Plan store database
# =====================================================
DB_PARAMS = {
    "dbname": os.getenv("DB_NAME", os.getenv("POSTGRES_DB", "trip_planner_db")),
    "user": os.getenv("DB_USER", os.getenv("POSTGRES_USER", "postgres")),
    "password": os.getenv("DB_PASSWORD", os.getenv("POSTGRES_PASSWORD", "postgres")),
    "host": os.getenv("DB_HOST", os.getenv("POSTGRES_HOST", "localhost")),
    "port": os.getenv("DB_PORT", os.getenv("POSTGRES_PORT", "5432")),
    "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
    "application_name": os.getenv("DB_APP_NAME", "trip_planner"),
    # a session waiting on a busy city plan lock gives up instead of hanging the request
    "options": f"-c statement_timeout={int(os.getenv('DB_STATEMENT_TIMEOUT_MS', '5000'))}",
}


# =====================================================
# 🔄 Connect, backing off while the database starts
# =====================================================
def get_connection(retries: int = 5, delay: int = 2, backoff: float = 1.5):
    """
    Connection for one plan session. Autocommit is off: the advisory lock
    on a city plan and its savepoints live in this transaction.
    Only OperationalError (server down, refused, timeout) is retried.
    """
    for attempt in range(1, retries + 1):
        try:
            conn = psycopg2.connect(**DB_PARAMS)
            conn.autocommit = False
            logger.debug(f"✅ Plan store connected (attempt {attempt})")
            return conn
        except OperationalError as e:
            wait = delay * (backoff ** (attempt - 1))
            logger.warning(f"⚠️ Plan store unreachable (attempt {attempt}/{retries}): {e}, retrying in {wait:.1f}s")
            time.sleep(wait)

    raise ConnectionError("❌ Plan store unreachable after several attempts.")


# =====================================================
# 🧱 One transaction per plan session
# =====================================================
@contextmanager
def get_connection_context(retries: int = 3):
    """
    Wraps a whole plan session: every read, lock and write of one planning
    operation commits together, or none of it does.

    A planning error raised inside the block (bad card, unknown cluster,
    broken invariant) rolls back like a driver error and is re-raised as is.
    The connection is closed in every case, which also releases the
    transaction-scoped advisory locks.
    """
    conn = None
    try:
        conn = get_connection(retries=retries)
        yield conn
        conn.commit()
    except (OperationalError, InterfaceError) as e:
        if conn:
            conn.rollback()
        logger.error(f"💥 Plan store connection lost: {e}")
        raise
    except DatabaseError as e:
        if conn:
            conn.rollback()
        logger.error(f"❌ Plan store query failed: {e}")
        raise
    except Exception as e:
        if conn:
            conn.rollback()
        logger.warning(f"↩️ Plan session rolled back: {e}")
        raise
    finally:
        if conn:
            try:
                conn.close()
                logger.debug("🔌 Plan store connection closed.")
            except Exception as e:
                logger.warning(f"⚠️ Failed to close plan store connection: {e}")


# =====================================================
# 🔍 check-db
# =====================================================
def check_db_connection() -> bool:
    """Backs `run_planning check-db`: True when the plan store answers."""
    try:
        with get_connection_context() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT NOW();")
                result = cur.fetchone()
                logger.success(f"✅ Plan store reachable. Server time: {result[0]}")
        return True
    except Exception as e:
        logger.error(f"❌ Plan store check failed: {e}")
        return False
