"""Route planning endpoints."""

from __future__ import annotations

import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, HTTPException, Query, status

from ...models.domain import ALL_DAYS
from ...schemas.routing import (
    ApplyRunRequest,
    AssignClientRequest,
    CleanupResponse,
    DayRequest,
    DriverColorRequest,
    DriverRequest,
    GenerateRequest,
    GenerateResponse,
    ReassignRequest,
    RenameDriverRequest,
    ReorderRouteRequest,
    ReorganizeRequest,
    ReorganizeResponse,
    ResetDriverRequest,
    ReverseRequest,
)
from ...services.routing import hydration, roster, runs
from ...services.routing.assignment import assign_client_to_driver
from ...services.routing.calendar import normalize_day, parse_delivery_date
from ...services.routing.optimizer import reorganize_routes
from ...services.routing.reconcile import reconcile_stops
from ...services.routing.route_order import RouteOrderSource, move_client, reverse_route

router = APIRouter(prefix="/route", tags=["routes"])


def raise_http(action: str, exc: Exception) -> NoReturn:
    """Translate a service error into the matching HTTP error."""
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    logging.exception(f"Error while trying to {action}: {exc}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    ) from exc


def required_field(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} is required")
    return str(value).strip()


@router.post("/cleanup", response_model=CleanupResponse, status_code=status.HTTP_200_OK)
def cleanup(payload: DayRequest) -> CleanupResponse:
    """Create the stops that eligible clients are missing for a day."""
    try:
        day = normalize_day(payload.day)
        result = reconcile_stops(day)
        return CleanupResponse(
            stopsCreated=result.stops_created,
            message=result.message,
            skippedReasons=result.skipped,
            errors=result.errors,
        )
    except Exception as exc:
        raise_http("create missing stops", exc)


@router.get("/routes", status_code=status.HTTP_200_OK)
def get_routes(
    day: str = Query(default=ALL_DAYS),
    delivery_date: str | None = Query(default=None),
    light: bool = Query(default=False, description="Skip stop reconciliation."),
) -> dict:
    try:
        normalized_day = normalize_day(day)
        normalized_date = parse_delivery_date(delivery_date)
    except ValueError as exc:
        raise_http("load routes", exc)
    return hydration.get_routes_for_day(normalized_day, normalized_date, light).value


@router.post("/reorganize", response_model=ReorganizeResponse, status_code=status.HTTP_200_OK)
def reorganize(payload: ReorganizeRequest) -> ReorganizeResponse:
    """Re-optimize stop order (nearest neighbour) for every driver of a day, or one driver."""
    try:
        day = normalize_day(payload.day)
        result = reorganize_routes(day, payload.driver_id, parse_delivery_date(payload.delivery_date))
        return ReorganizeResponse(
            driversOptimized=result.drivers_optimized,
            stopsReordered=result.stops_reordered,
            message=f"Optimized {result.drivers_optimized} route(s), {result.stops_reordered} stops reordered",
        )
    except Exception as exc:
        raise_http("reorganize routes", exc)


@router.post("/reverse", status_code=status.HTTP_200_OK)
def reverse(payload: ReverseRequest) -> dict:
    try:
        route_id = required_field(payload.route_id, "routeId")
        count, _ = reverse_route(route_id)
        if count == 0:
            return {"ok": True, "message": "No stops to reverse"}
        return {"ok": True, "message": f"Reversed {count} stops"}
    except Exception as exc:
        raise_http("reverse route", exc)


@router.post("/add-driver", status_code=status.HTTP_200_OK)
def add_driver(payload: DayRequest) -> dict:
    try:
        driver, run_id = roster.add_driver(normalize_day(payload.day))
        return {"driver": {"id": driver.id, "name": driver.name, "color": driver.color}, "runId": run_id}
    except Exception as exc:
        raise_http("add driver", exc)


@router.post("/remove-driver", status_code=status.HTTP_200_OK)
def remove_driver(payload: DriverRequest) -> dict:
    try:
        driver_id = required_field(payload.driver_id, "driverId")
        driver, unassigned = roster.remove_driver(driver_id, normalize_day(payload.day))
        return {
            "success": True,
            "message": f"Driver {driver.name} removed successfully",
            "stopsUnassigned": unassigned,
        }
    except Exception as exc:
        raise_http("remove driver", exc)


@router.post("/generate", response_model=GenerateResponse, status_code=status.HTTP_200_OK)
def generate(payload: GenerateRequest) -> GenerateResponse:
    try:
        result = roster.generate_drivers(normalize_day(payload.day), payload.driver_count)
        return GenerateResponse(
            runId=result.run_id,
            driversCreated=len(result.drivers),
            stopsAssigned=result.stops_assigned,
        )
    except Exception as exc:
        raise_http("generate drivers", exc)


@router.get("/runs", status_code=status.HTTP_200_OK)
def list_route_runs(day: str = Query(default=ALL_DAYS)) -> dict:
    try:
        normalized_day = normalize_day(day)
    except ValueError as exc:
        raise_http("list route runs", exc)
    try:
        return {"runs": runs.list_runs(normalized_day)}
    except Exception as exc:
        logging.warning(f"Listing route runs for day '{normalized_day}' failed: {exc}")
        return {"runs": []}


@router.post("/runs/save-current", status_code=status.HTTP_200_OK)
def save_current_run(payload: DayRequest) -> dict:
    try:
        run = runs.snapshot_day(normalize_day(payload.day))
        return {"id": run.id, "message": "Route run saved", "drivers": len(run.snapshot)}
    except Exception as exc:
        raise_http("save route run", exc)


@router.post("/reorder-route", status_code=status.HTTP_200_OK)
def reorder_route(payload: ReorderRouteRequest) -> dict:
    """Move one client to a new position within a driver's route."""
    try:
        driver_id = required_field(payload.driver_id, "driver_id")
        client_id = required_field(payload.client_id, "client_id")
        if payload.new_position is None:
            raise ValueError("new_position is required")
        order = move_client(RouteOrderSource(), driver_id, client_id, payload.new_position)
        return {"success": True, "position": order.index(client_id), "totalStops": len(order)}
    except Exception as exc:
        raise_http("reorder route", exc)


@router.post("/assign-client-driver", status_code=status.HTTP_200_OK)
def assign_client_driver(payload: AssignClientRequest) -> dict:
    try:
        client_id = required_field(payload.client_id, "clientId")
        driver_id = payload.driver_id.strip() if payload.driver_id and payload.driver_id.strip() else None
        result = assign_client_to_driver(client_id, driver_id)
        suffix = f" and {result.stops_updated} existing stop(s)" if result.stops_updated else ""
        return {
            "success": True,
            "stopsUpdated": result.stops_updated,
            "routesUpdated": result.routes_updated,
            "message": f"Updated client assignment{suffix}",
        }
    except Exception as exc:
        raise_http("assign client to driver", exc)


@router.post("/apply-run", status_code=status.HTTP_200_OK)
def apply_run(payload: ApplyRunRequest) -> dict:
    """Restore the driver assignment recorded by a route run."""
    try:
        run = runs.apply_run(required_field(payload.run_id, "runId"))
        return {"success": True, "message": "Route run applied successfully", "driversUpdated": len(run.snapshot)}
    except Exception as exc:
        raise_http("apply route run", exc)


@router.post("/reassign", status_code=status.HTTP_200_OK)
def reassign(payload: ReassignRequest) -> dict:
    try:
        to_driver_id = required_field(payload.to_driver_id, "toDriverId")
        if not (payload.stop_id or payload.user_id):
            raise ValueError("stopId or userId is required")
        stop = roster.reassign_stop(
            to_driver_id, normalize_day(payload.day), stop_id=payload.stop_id, client_id=payload.user_id
        )
        return {"ok": True, "stopId": stop.id}
    except Exception as exc:
        raise_http("reassign stop", exc)


@router.post("/rename-driver", status_code=status.HTTP_200_OK)
def rename_driver(payload: RenameDriverRequest) -> dict:
    try:
        driver_id = required_field(payload.driver_id, "driverId")
        if payload.new_number is None:
            raise ValueError("newNumber is required")
        old_name, new_name = roster.rename_driver(driver_id, payload.new_number)
        return {
            "success": True,
            "message": f"Driver renamed from {old_name} to {new_name}",
            "oldName": old_name,
            "newName": new_name,
        }
    except Exception as exc:
        raise_http("rename driver", exc)


@router.post("/driver-color", status_code=status.HTTP_200_OK)
def driver_color(payload: DriverColorRequest) -> dict:
    try:
        driver_id = required_field(payload.driver_id, "driverId")
        color = roster.set_driver_color(driver_id, payload.color or "")
        return {"success": True, "message": "Driver color updated", "driverId": driver_id, "color": color}
    except Exception as exc:
        raise_http("update driver color", exc)


@router.post("/reset", status_code=status.HTTP_200_OK)
def reset(payload: ResetDriverRequest) -> dict:
    """Clear a driver's stops, optionally dropping their proof of delivery."""
    try:
        driver_id = required_field(payload.driver_id, "driverId")
        cleared = roster.reset_driver(driver_id, normalize_day(payload.day), payload.clear_proof)
        return {"success": True, "message": f"Routes reset for driver {driver_id}", "stopsCleared": cleared}
    except Exception as exc:
        raise_http("reset driver", exc)
