"""Driver roster: numbering, colors, add/remove/generate, per-driver edits."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional

from ...config import settings
from ...models.domain import Driver, Stop, sort_drivers
from ...persistence import drivers as driver_store
from ...persistence import stops as stop_store
from .errors import DriverNotFoundError, ProtectedDriverError, StopNotFoundError
from .route_order import RouteOrderSource
from .runs import record_run

RESERVE_DRIVER = re.compile(r"driver\s+0", re.IGNORECASE)
HEX_COLOR = re.compile(r"^#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")
_GREY = {"#666", "gray", "grey"}


def is_reserve_driver(driver: Driver) -> bool:
    return driver.sequence == 0 or bool(RESERVE_DRIVER.search(driver.name or ""))


def palette_color(sequence: int) -> str:
    palette = settings.driver_palette
    return palette[sequence % len(palette)]


def display_color(driver: Driver, index: int) -> str:
    if driver.color and driver.color.strip().lower() not in _GREY:
        return driver.color
    return palette_color(index)


def driver_name(sequence: int) -> str:
    return f"Driver {sequence}"


@dataclass(slots=True)
class GenerateResult:
    run_id: str
    drivers: list[Driver]
    stops_assigned: int


def add_driver(day: str) -> tuple[Driver, str]:
    """Create the next driver for ``day``; "Driver 0" first when missing.

    Returns the new driver and the id of the route run recorded afterwards.
    """
    existing = driver_store.fetch_drivers(day, include_all_day=False)
    if not any(is_reserve_driver(driver) for driver in existing):
        sequence = 0
    else:
        sequence = max((d.sequence or 0 for d in existing), default=0) + 1

    driver = Driver(
        id=str(uuid.uuid4()),
        name=driver_name(sequence),
        day=day,
        color=palette_color(sequence),
        sequence=sequence,
        stop_ids=[],
    )
    driver_store.insert_driver(driver)
    logging.info(f"Added {driver.name} for day '{day}'")
    run = record_run(day, [*existing, driver])
    return driver, run.id


def remove_driver(driver_id: str, day: str) -> tuple[Driver, int]:
    """Delete a driver and unassign its stops. Returns the driver and stops unassigned."""
    driver = driver_store.fetch_driver(driver_id, day)
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found for day '{day}'")
    if is_reserve_driver(driver):
        raise ProtectedDriverError("Cannot remove Driver 0")

    unassigned = stop_store.clear_stop_driver(driver.id, driver.stop_ids)
    driver_store.delete_driver(driver.id)
    logging.info(f"Removed {driver.name} for day '{day}' ({len(unassigned)} stops unassigned)")
    return driver, len(unassigned)


def generate_drivers(day: str, driver_count: Optional[int] = None) -> GenerateResult:
    """Ensure drivers 0..N-1 exist for ``day`` and deal the day's stops out evenly.

    Existing drivers keep their ids; drivers beyond the new count stay but lose
    their stops. Duplicate "Driver 0" rows are deleted. Each driver's stops are
    written to ``stop_ids``, to the stops' ``assigned_driver_id`` and to
    ``driver_route_order`` so every representation agrees.
    """
    count = settings.default_driver_count if driver_count is None else driver_count
    if count <= 0:
        raise ValueError("driverCount must be a positive integer")

    stops = sorted(stop_store.fetch_stops(day), key=lambda stop: stop.id)
    existing = sort_drivers(driver_store.fetch_drivers(day, include_all_day=False))

    reserves = [d for d in existing if is_reserve_driver(d)]
    for duplicate in reserves[1:]:
        driver_store.delete_driver(duplicate.id)
    dropped = {d.id for d in reserves[1:]}
    existing = [d for d in existing if d.id not in dropped]

    by_sequence: dict[int, Driver] = {}
    for driver in existing:
        if driver.sequence is not None:
            by_sequence.setdefault(driver.sequence, driver)

    base, remainder = divmod(len(stops), count)
    drivers: list[Driver] = []
    cursor = 0
    for sequence in range(count):
        share = base + (1 if sequence < remainder else 0)
        assigned = stops[cursor:cursor + share]
        cursor += share
        stop_ids = [stop.id for stop in assigned]
        name, color = driver_name(sequence), palette_color(sequence)
        driver = by_sequence.get(sequence)
        if driver is not None:
            driver_store.update_driver(
                driver.id, {"name": name, "color": color, "sequence": sequence, "stop_ids": stop_ids}
            )
            driver.name, driver.color, driver.sequence, driver.stop_ids = name, color, sequence, stop_ids
        else:
            driver = Driver(id=str(uuid.uuid4()), name=name, day=day, color=color, sequence=sequence, stop_ids=stop_ids)
            driver_store.insert_driver(driver)
        stop_store.assign_stops_driver(stop_ids, driver.id)
        driver_store.replace_route_order(driver.id, [stop.client_id for stop in assigned if stop.client_id])
        drivers.append(driver)

    kept = {driver.id for driver in drivers}
    for surplus in existing:
        if surplus.id not in kept:
            driver_store.update_driver(surplus.id, {"stop_ids": []})
            driver_store.replace_route_order(surplus.id, [])

    run = record_run(day, drivers)
    logging.info(f"Generated {len(drivers)} drivers for day '{day}' with {len(stops)} stops")
    return GenerateResult(run_id=run.id, drivers=drivers, stops_assigned=len(stops))


def merge_legacy_routes(drivers: list[Driver], legacy_routes: list[Driver]) -> list[Driver]:
    """Drivers followed by the legacy routes that have no driver row of the same id."""
    seen = {driver.id for driver in drivers}
    return sort_drivers([*drivers, *(route for route in legacy_routes if route.id not in seen)])



def rename_driver(driver_id: str, new_number: int) -> tuple[str, str]:
    """Renumber a driver to "Driver N", keeping ``sequence`` in step. Returns (old, new) names."""
    if isinstance(new_number, bool) or not isinstance(new_number, int) or new_number < 0:
        raise ValueError("newNumber must be a non-negative integer")
    driver = driver_store.fetch_driver(driver_id)
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found")
    if is_reserve_driver(driver) and new_number != 0:
        raise ProtectedDriverError("Cannot rename Driver 0 to a different number")

    new_name = driver_name(new_number)
    for other in driver_store.fetch_drivers(driver.day, include_all_day=False):
        if other.id != driver.id and (other.sequence == new_number or other.name == new_name):
            raise ValueError(f"{new_name} already exists")

    driver_store.update_driver(driver.id, {"name": new_name, "sequence": new_number})
    logging.info(f"Renamed driver {driver.id} from {driver.name} to {new_name}")
    return driver.name, new_name


def set_driver_color(driver_id: str, color: str) -> str:
    """Store a ``#RGB`` / ``#RRGGBB`` color on a driver and return it."""
    color = (color or "").strip()
    if not color:
        raise ValueError("color is required")
    if not HEX_COLOR.match(color):
        raise ValueError("color must be a valid hex color (e.g. #1f77b4 or #f00)")
    if driver_store.fetch_driver(driver_id) is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found")
    driver_store.update_driver(driver_id, {"color": color})
    return color


def reset_driver(driver_id: str, day: str, clear_proof: bool = False) -> int:
    """Empty a driver's ``stop_ids`` and unassign those stops. Returns the number of stops cleared.

    With ``clear_proof`` the stops also lose their proof of delivery and
    completion flag.
    """
    driver = driver_store.fetch_driver(driver_id, day)
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found for day '{day}'")
    stop_ids = list(driver.stop_ids)
    driver_store.update_driver(driver.id, {"stop_ids": []})
    stop_store.assign_stops_driver(stop_ids, None)
    if clear_proof:
        stop_store.clear_stop_proof(stop_ids)
    logging.info(f"Reset {driver.name} for day '{day}' ({len(stop_ids)} stops cleared, proof cleared={clear_proof})")
    return len(stop_ids)


def reassign_stop(
    to_driver_id: str,
    day: str,
    stop_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> Stop:
    """Move one stop of ``day`` (by stop id, else by client id) onto another driver.

    The stop leaves every other driver's ``stop_ids`` and route order and is
    appended once to the target's.
    """
    stop = stop_store.fetch_day_stop(day, stop_id=stop_id, client_id=client_id)
    if stop is None:
        raise StopNotFoundError(f"Stop not found for day '{day}'")
    drivers = driver_store.fetch_drivers(day, include_all_day=False)
    target = next((driver for driver in drivers if driver.id == to_driver_id), None)
    if target is None:
        raise DriverNotFoundError(f"Target driver {to_driver_id} not found for day '{day}'")

    source = RouteOrderSource.preload([driver.id for driver in drivers])
    for driver in drivers:
        if driver.id == target.id:
            continue
        if stop.id in driver.stop_ids:
            source.set_legacy_stop_ids(driver, [sid for sid in driver.stop_ids if sid != stop.id])
        order = source.get_route_order(driver.id)
        if stop.client_id in order:
            source.set_route_order(driver.id, [cid for cid in order if cid != stop.client_id])

    if stop.id not in target.stop_ids:
        source.set_legacy_stop_ids(target, [*target.stop_ids, stop.id])
    order = source.get_route_order(target.id)
    if stop.client_id and stop.client_id not in order:
        source.set_route_order(target.id, [*order, stop.client_id])
    stop_store.assign_stops_driver([stop.id], target.id)
    logging.info(f"Reassigned stop {stop.id} to {target.name} for day '{day}'")
    return stop
