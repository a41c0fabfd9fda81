"""Routing request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DayRequest(_CamelModel):
    day: Optional[str] = Field(default=None, description="Weekday name or 'all' (default).")


class CleanupResponse(BaseModel):
    stopsCreated: int
    message: str
    skippedReasons: List[Dict[str, Any]]
    errors: List[Dict[str, Any]]


class ReorganizeRequest(_CamelModel):
    day: Optional[str] = None
    driver_id: Optional[str] = Field(default=None, alias="driverId")
    delivery_date: Optional[str] = Field(default=None, alias="deliveryDate")


class ReorganizeResponse(BaseModel):
    driversOptimized: int
    stopsReordered: int
    message: str


class ReverseRequest(_CamelModel):
    route_id: Optional[str] = Field(default=None, alias="routeId")


class DriverRequest(_CamelModel):
    driver_id: Optional[str] = Field(default=None, alias="driverId")
    day: Optional[str] = None


class GenerateRequest(_CamelModel):
    day: Optional[str] = None
    driver_count: Optional[int] = Field(default=None, alias="driverCount")


class GenerateResponse(BaseModel):
    runId: str
    driversCreated: int
    stopsAssigned: int


class ReorderRouteRequest(BaseModel):
    driver_id: Optional[str] = None
    client_id: Optional[str] = None
    new_position: Optional[int] = None


class AssignClientRequest(_CamelModel):
    client_id: Optional[str] = Field(default=None, alias="clientId")
    driver_id: Optional[str] = Field(default=None, alias="driverId")


class CompleteStopRequest(_CamelModel):
    stop_id: Optional[str] = Field(default=None, alias="stopId")
    completed: bool = True


class ApplyRunRequest(_CamelModel):
    run_id: Optional[str] = Field(default=None, alias="runId")


class ReassignRequest(_CamelModel):
    day: Optional[str] = None
    to_driver_id: Optional[str] = Field(default=None, alias="toDriverId")
    stop_id: Optional[str] = Field(default=None, alias="stopId")
    user_id: Optional[str] = Field(default=None, alias="userId")


class RenameDriverRequest(_CamelModel):
    driver_id: Optional[str] = Field(default=None, alias="driverId")
    new_number: Optional[int] = Field(default=None, alias="newNumber")


class DriverColorRequest(_CamelModel):
    driver_id: Optional[str] = Field(default=None, alias="driverId")
    color: Optional[str] = None


class ResetDriverRequest(_CamelModel):
    driver_id: Optional[str] = Field(default=None, alias="driverId")
    day: Optional[str] = None
    clear_proof: bool = Field(default=False, alias="clearProof")
