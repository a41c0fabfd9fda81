"""Driver mobile app endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from ...models.domain import ALL_DAYS
from ...persistence import stops as stop_store
from ...schemas.routing import CompleteStopRequest
from ...services.routing import hydration
from ...services.routing.calendar import normalize_day, parse_delivery_date
from ...services.routing.errors import StopNotFoundError
from .routes import required_field, raise_http

router = APIRouter(prefix="/mobile", tags=["mobile"])


@router.get("/routes", status_code=status.HTTP_200_OK)
def route_summaries(
    day: str = Query(default=ALL_DAYS),
    delivery_date: str | None = Query(default=None),
) -> list:
    """Progress per driver; drivers without stops are omitted."""
    try:
        normalized_day = normalize_day(day)
        normalized_date = parse_delivery_date(delivery_date)
    except ValueError as exc:
        raise_http("load route summaries", exc)
    return hydration.get_route_summaries(normalized_day, normalized_date).value


@router.get("/stops", status_code=status.HTTP_200_OK)
def stops(
    driverId: str | None = Query(default=None),
    day: str = Query(default=ALL_DAYS),
    delivery_date: str | None = Query(default=None),
) -> list:
    try:
        normalized_day = normalize_day(day)
        normalized_date = parse_delivery_date(delivery_date)
    except ValueError as exc:
        raise_http("load stops", exc)
    driver_id = driverId.strip() if driverId and driverId.strip() else None
    return hydration.get_stops(driver_id, normalized_day, normalized_date).value


@router.post("/stop/complete", status_code=status.HTTP_200_OK)
def complete_stop(payload: CompleteStopRequest) -> dict:
    try:
        stop_id = required_field(payload.stop_id, "stopId")
        if not stop_store.set_stop_completed(stop_id, payload.completed):
            raise StopNotFoundError(f"Stop {stop_id} not found")
        return {"ok": True, "stopId": stop_id, "completed": payload.completed}
    except Exception as exc:
        raise_http("update stop", exc)
