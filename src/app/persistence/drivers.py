"""Persistence for drivers, legacy routes, route order rows and route runs."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from ..config import settings
from ..db.supabase import require_client
from ..models.domain import ALL_DAYS, Driver, DriverSnapshot, RouteRun
from .common import chunked, parse_id_list, rows, unique_ids

_DRIVER_NUMBER = re.compile(r"driver\s+(\d+)", re.IGNORECASE)


def driver_number_from_name(name: Any) -> Optional[int]:
    """Parse N from a "Driver N" name; None when the name has no number."""
    match = _DRIVER_NUMBER.search(str(name or ""))
    return int(match.group(1)) if match else None


def _driver_from_row(row: dict[str, Any], *, legacy: bool = False) -> Driver:
    sequence = row.get("sequence")
    if sequence is None:
        sequence = driver_number_from_name(row.get("name"))
    return Driver(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        day=ALL_DAYS if legacy else str(row.get("day") or ALL_DAYS).lower(),
        color=row.get("color"),
        sequence=int(sequence) if sequence is not None else None,
        stop_ids=parse_id_list(row.get("stop_ids")),
        legacy=legacy,
    )


def fetch_drivers(day: str, *, include_all_day: bool = True) -> list[Driver]:
    """Drivers scoped to ``day``; with ``include_all_day`` also those scoped to "all"."""
    supabase = require_client()
    days = [day]
    if include_all_day and day != ALL_DAYS:
        days.append(ALL_DAYS)
    response = supabase.table("drivers").select("*").in_("day", days).order("id").execute()
    return [_driver_from_row(row) for row in rows(response)]


def fetch_legacy_routes() -> list[Driver]:
    """Rows of the legacy ``routes`` table, which has no day and applies to every day."""
    supabase = require_client()
    response = supabase.table("routes").select("*").order("id").execute()
    return [_driver_from_row(row, legacy=True) for row in rows(response)]


def fetch_driver(driver_id: str, day: Optional[str] = None) -> Optional[Driver]:
    supabase = require_client()
    query = supabase.table("drivers").select("*").eq("id", driver_id)
    if day is not None:
        query = query.eq("day", day)
    found = rows(query.limit(1).execute())
    return _driver_from_row(found[0]) if found else None


def fetch_legacy_route(route_id: str) -> Optional[Driver]:
    supabase = require_client()
    found = rows(supabase.table("routes").select("*").eq("id", route_id).limit(1).execute())
    return _driver_from_row(found[0], legacy=True) if found else None


def insert_driver(driver: Driver) -> None:
    supabase = require_client()
    supabase.table("drivers").insert(
        {
            "id": driver.id,
            "day": driver.day,
            "name": driver.name,
            "color": driver.color,
            "sequence": driver.sequence,
            "stop_ids": list(driver.stop_ids),
        }
    ).execute()


def update_driver(driver_id: str, values: dict[str, Any]) -> None:
    supabase = require_client()
    supabase.table("drivers").update(values).eq("id", driver_id).execute()


def delete_driver(driver_id: str) -> None:
    supabase = require_client()
    supabase.table("drivers").delete().eq("id", driver_id).execute()


def set_stop_ids(driver: Driver, stop_ids: list[str]) -> None:
    """Write the legacy ``stop_ids`` array on whichever table the driver lives in."""
    supabase = require_client()
    table = "routes" if driver.legacy else "drivers"
    supabase.table(table).update({"stop_ids": list(stop_ids)}).eq("id", driver.id).execute()


def fetch_route_order(driver_ids: list[str]) -> dict[str, list[str]]:
    """``driver_route_order`` client ids per driver, by position then client id."""
    supabase = require_client()
    collected: list[dict[str, Any]] = []
    for batch in chunked(unique_ids(driver_ids)):
        response = (
            supabase.table("driver_route_order")
            .select("driver_id, client_id, position")
            .in_("driver_id", list(batch))
            .execute()
        )
        collected.extend(rows(response))

    collected.sort(key=lambda row: (int(row.get("position") or 0), str(row.get("client_id"))))
    ordered: dict[str, list[str]] = {}
    for row in collected:
        ordered.setdefault(str(row["driver_id"]), []).append(str(row["client_id"]))
    return ordered


def replace_route_order(driver_id: str, client_ids: list[str]) -> int:
    """Delete the driver's rows and write dense positions 0..n-1."""
    supabase = require_client()
    ordered = unique_ids(client_ids)
    supabase.table("driver_route_order").delete().eq("driver_id", driver_id).execute()
    payload = [
        {"driver_id": driver_id, "client_id": client_id, "position": position}
        for position, client_id in enumerate(ordered)
    ]
    for batch in chunked(payload, settings.write_batch_size):
        supabase.table("driver_route_order").insert(list(batch)).execute()
    return len(payload)


def fetch_drivers_for_client(client_id: str) -> list[str]:
    supabase = require_client()
    response = supabase.table("driver_route_order").select("driver_id").eq("client_id", client_id).execute()
    return unique_ids(row.get("driver_id") for row in rows(response))


def insert_route_run(run: RouteRun) -> None:
    supabase = require_client()
    supabase.table("route_runs").insert(
        {
            "id": run.id,
            "day": run.day,
            "created_at": run.created_at,
            "snapshot": [entry.to_json() for entry in run.snapshot],
        }
    ).execute()
    logging.info(f"Recorded route run {run.id} for day '{run.day}' ({len(run.snapshot)} drivers)")


def _run_from_row(row: dict[str, Any]) -> RouteRun:
    snapshot = row.get("snapshot") or []
    if isinstance(snapshot, str):
        snapshot = json.loads(snapshot)
    entries = [
        DriverSnapshot(
            driver_id=str(entry.get("driverId") or ""),
            driver_name=str(entry.get("driverName") or ""),
            color=entry.get("color"),
            stop_ids=parse_id_list(entry.get("stopIds")),
        )
        for entry in snapshot
        if isinstance(entry, dict)
    ]
    return RouteRun(id=str(row["id"]), day=str(row.get("day") or ALL_DAYS), created_at=row.get("created_at"), snapshot=entries)


def fetch_route_runs(day: str, limit: Optional[int] = None) -> list[RouteRun]:
    supabase = require_client()
    response = (
        supabase.table("route_runs")
        .select("id, day, created_at, snapshot")
        .eq("day", day)
        .order("created_at", desc=True)
        .limit(limit or settings.route_runs_limit)
        .execute()
    )
    return [_run_from_row(row) for row in rows(response)]


def fetch_route_run(run_id: str) -> Optional[RouteRun]:
    supabase = require_client()
    found = rows(
        supabase.table("route_runs").select("id, day, created_at, snapshot").eq("id", run_id).limit(1).execute()
    )
    return _run_from_row(found[0]) if found else None
