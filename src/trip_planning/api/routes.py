# ==========================================================
# 📦 src/trip_planning/api/routes.py
# ==========================================================

from fastapi import APIRouter, Depends, Query
from loguru import logger

from trip_planning.application.planning_use_case import PlanningUseCase
from trip_planning.domain.validators import parse_point
from .dependencies import get_use_case
from .schemas import (
    AddItemResponse,
    AddItemSchema,
    CreateClusterSchema,
    CreatePlanSchema,
    DistanceResponse,
    RankCardsSchema,
    RemoveItemSchema,
    SavePlanSchema,
    StartPlanSchema,
    UpdateClusterSchema,
)

router = APIRouter()


# ==========================================================
# 🧠 Health check
# ==========================================================
@router.get("/health", tags=["Status"])
def health_check():
    return {"status": "ok", "message": "Trip planning API healthy 🧭"}


# ==========================================================
# 📏 Distance (declared before /{route_id} routes)
# ==========================================================
@router.get("/distance", response_model=DistanceResponse, tags=["Distance"])
def distance(
    from_: str = Query(None, alias="from"),
    to: str = Query(None),
    use_case: PlanningUseCase = Depends(get_use_case),
):
    origin = parse_point(from_, "from")
    destination = parse_point(to, "to")
    return use_case.distance(origin, destination)


# ==========================================================
# 🆕 Plan lifecycle
# ==========================================================
@router.post("/start", tags=["Plans"])
def start_plan(payload: StartPlanSchema, use_case: PlanningUseCase = Depends(get_use_case)):
    return use_case.start_plan(
        payload.origin,
        payload.destination,
        waypoints=payload.waypoints,
        user_id=payload.userId,
    )


@router.post("/{route_id}", tags=["Plans"])
def create_plan(route_id: str, payload: CreatePlanSchema, use_case: PlanningUseCase = Depends(get_use_case)):
    return use_case.create_plan_from_route(route_id, payload.waypoints, user_id=payload.userId)


@router.get("/{route_id}", tags=["Plans"])
def get_plan(route_id: str, use_case: PlanningUseCase = Depends(get_use_case)):
    return use_case.get_plan(route_id)


@router.post("/{route_id}/save", tags=["Plans"])
def save_plan(route_id: str, payload: SavePlanSchema, use_case: PlanningUseCase = Depends(get_use_case)):
    cities = [city.model_dump() for city in payload.cities]
    return use_case.save_plan(route_id, cities)


# ==========================================================
# 🃏 Items
# ==========================================================
@router.post("/{route_id}/add-item", response_model=AddItemResponse, tags=["Items"])
def add_item(route_id: str, payload: AddItemSchema, use_case: PlanningUseCase = Depends(get_use_case)):
    result = use_case.add_item(route_id, payload.cityId, payload.card)
    logger.info(f"📍 route={route_id} city={payload.cityId} → {result['clusterName'] or 'unclustered'}")
    return result


@router.delete("/{route_id}/remove-item", tags=["Items"])
def remove_item(route_id: str, payload: RemoveItemSchema, use_case: PlanningUseCase = Depends(get_use_case)):
    return use_case.remove_item(route_id, payload.itemId, cluster_id=payload.clusterId, city_id=payload.cityId)


@router.post("/{route_id}/rank", tags=["Items"])
def rank_cards(route_id: str, payload: RankCardsSchema, use_case: PlanningUseCase = Depends(get_use_case)):
    return {"cards": use_case.rank_by_proximity(route_id, payload.cityId, payload.cards)}


# ==========================================================
# 🗺️ Clusters
# ==========================================================
@router.post("/{route_id}/clusters", tags=["Clusters"])
def create_cluster(route_id: str, payload: CreateClusterSchema, use_case: PlanningUseCase = Depends(get_use_case)):
    cluster = use_case.create_cluster(
        route_id,
        payload.cityId,
        payload.name,
        center=payload.center,
        initial_items=payload.initialItems,
    )
    return {"success": True, "cluster": cluster}


@router.put("/{route_id}/clusters/{cluster_id}", tags=["Clusters"])
def update_cluster(
    route_id: str,
    cluster_id: str,
    payload: UpdateClusterSchema,
    use_case: PlanningUseCase = Depends(get_use_case),
):
    cluster = use_case.update_cluster(
        route_id,
        cluster_id,
        name=payload.name,
        add_items=payload.addItems,
        remove_item_ids=payload.removeItemIds,
    )
    return {"success": True, "cluster": cluster, "deleted": cluster is None}


@router.delete("/{route_id}/clusters/{cluster_id}", tags=["Clusters"])
def delete_cluster(route_id: str, cluster_id: str, use_case: PlanningUseCase = Depends(get_use_case)):
    return use_case.delete_cluster(route_id, cluster_id)
