# ============================================================
# 📦 src/trip_planning/domain/errors.py
# ============================================================


class PlanningError(Exception):
    """Base class for every planning failure."""


class PlanningValidationError(PlanningError):
    """Missing or malformed input, rejected before touching the store."""


class PlanningNotFoundError(PlanningError):
    """Trip plan, city plan, cluster or item does not exist."""


class PlanStoreError(PlanningError):
    """Write or read failure on the primary persistence path."""


class InvariantViolationError(PlanningError):
    """
    A write would leave an empty cluster persisted or an item pointing
    at a cluster that does not exist. Always a bug in the cascade logic.
    """
