# src/trip_planning/api/schemas.py

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

Card = Dict[str, Any]


class StartPlanSchema(BaseModel):
    origin: Any
    destination: Any
    waypoints: List[Any] = Field(default_factory=list)
    userId: Optional[str] = None


class CreatePlanSchema(BaseModel):
    waypoints: List[Any]
    userId: Optional[str] = None


class AddItemSchema(BaseModel):
    cityId: str
    card: Card


class RemoveItemSchema(BaseModel):
    itemId: str
    cityId: Optional[str] = None
    clusterId: Optional[str] = None


class CreateClusterSchema(BaseModel):
    cityId: str
    name: str
    center: Optional[Dict[str, float]] = None
    initialItems: List[Card] = Field(default_factory=list)


class UpdateClusterSchema(BaseModel):
    name: Optional[str] = None
    addItems: List[Card] = Field(default_factory=list)
    removeItemIds: List[str] = Field(default_factory=list)


class SaveCitySchema(BaseModel):
    cityId: str
    city: Optional[Dict[str, Any]] = None
    clusters: List[Dict[str, Any]] = Field(default_factory=list)
    unclustered: List[Card] = Field(default_factory=list)


class SavePlanSchema(BaseModel):
    cities: List[SaveCitySchema]


class RankCardsSchema(BaseModel):
    cityId: str
    cards: List[Card]


class AddItemResponse(BaseModel):
    success: bool = True
    itemId: str
    clusterId: Optional[str] = None
    clusterName: Optional[str] = None
    isNewCluster: bool = False


class DistanceResponse(BaseModel):
    walkingMinutes: Optional[int] = None
    transitMinutes: Optional[int] = None
    drivingMinutes: Optional[int] = None
