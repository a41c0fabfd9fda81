"""Route Run snapshot log (append-only) and restoring a recorded run."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Sequence

from ...models.domain import Driver, DriverSnapshot, RouteRun, sort_drivers
from ...persistence import drivers as driver_store
from ...persistence import stops as stop_store
from .errors import RouteRunNotFoundError


def record_run(day: str, drivers: Sequence[Driver]) -> RouteRun:
    """Persist a snapshot of the drivers' current ``stop_ids`` and return it."""
    run = RouteRun(
        id=str(uuid.uuid4()),
        day=day,
        created_at=datetime.now(timezone.utc).isoformat(),
        snapshot=[
            DriverSnapshot(driver_id=d.id, driver_name=d.name, color=d.color, stop_ids=list(d.stop_ids))
            for d in sort_drivers(drivers)
        ],
    )
    driver_store.insert_route_run(run)
    return run


def snapshot_day(day: str) -> RouteRun:
    return record_run(day, driver_store.fetch_drivers(day, include_all_day=False))


def list_runs(day: str, limit: int | None = None) -> list[dict[str, str | None]]:
    return [{"id": run.id, "createdAt": run.created_at} for run in driver_store.fetch_route_runs(day, limit)]


def apply_run(run_id: str) -> RouteRun:
    """Restore the driver assignment recorded by a route run.

    Snapshot drivers get their name, color and ``stop_ids`` back (missing ones
    are recreated), their stops point at them again and their route order is
    rewritten from the snapshot. Other drivers of the day lose their stops.
    """
    run = driver_store.fetch_route_run(run_id)
    if run is None:
        raise RouteRunNotFoundError(f"Route run {run_id} not found")

    existing = {driver.id: driver for driver in driver_store.fetch_drivers(run.day, include_all_day=False)}
    entries = [entry for entry in run.snapshot if entry.driver_id]
    stops = stop_store.fetch_stops_by_ids([sid for entry in entries for sid in entry.stop_ids])
    for entry in entries:
        name = entry.driver_name or f"Driver {entry.driver_id}"
        sequence = driver_store.driver_number_from_name(name)
        if entry.driver_id in existing:
            driver_store.update_driver(
                entry.driver_id,
                {"name": name, "color": entry.color, "sequence": sequence, "stop_ids": list(entry.stop_ids)},
            )
        else:
            driver_store.insert_driver(
                Driver(
                    id=entry.driver_id,
                    name=name,
                    day=run.day,
                    color=entry.color,
                    sequence=sequence,
                    stop_ids=list(entry.stop_ids),
                )
            )
        stop_store.assign_stops_driver(entry.stop_ids, entry.driver_id)
        client_ids = [stops[sid].client_id for sid in entry.stop_ids if sid in stops and stops[sid].client_id]
        driver_store.replace_route_order(entry.driver_id, client_ids)

    restored = {entry.driver_id for entry in entries}
    for driver_id in existing:
        if driver_id not in restored:
            driver_store.update_driver(driver_id, {"stop_ids": []})
            driver_store.replace_route_order(driver_id, [])

    logging.info(f"Applied route run {run.id} for day '{run.day}' ({len(entries)} drivers)")
    return run
