# src/trip_planning/api/dependencies.py

from functools import lru_cache

from trip_planning.application.planning_use_case import PlanningUseCase


# =====================================================
# 🧩 Use case provider (one instance per process)
# =====================================================
@lru_cache(maxsize=1)
def get_use_case() -> PlanningUseCase:
    """
    Store chosen by PLAN_STORE. Tests swap this dependency through
    `app.dependency_overrides`.
    """
    return PlanningUseCase.from_env()
