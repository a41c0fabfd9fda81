"""Moving a client between drivers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ...persistence import clients as client_store
from ...persistence import drivers as driver_store
from ...persistence import stops as stop_store
from .errors import ClientNotFoundError
from .route_order import RouteOrderSource


@dataclass(slots=True)
class AssignmentResult:
    client_id: str
    driver_id: Optional[str]
    stops_updated: int
    routes_updated: int


def assign_client_to_driver(client_id: str, driver_id: Optional[str]) -> AssignmentResult:
    """Point a client (and its stops) at ``driver_id``, or unassign it with ``None``.

    The client leaves every other driver's route order and is appended to the
    end of the new driver's route unless it is already on it.
    """
    if not client_store.update_client_driver(client_id, driver_id):
        raise ClientNotFoundError(f"Client {client_id} not found")
    stops_updated = stop_store.set_client_stops_driver(client_id, driver_id)

    source = RouteOrderSource()
    routes_updated = 0
    for previous in driver_store.fetch_drivers_for_client(client_id):
        if previous == driver_id:
            continue
        order = [cid for cid in source.get_route_order(previous) if cid != client_id]
        source.set_route_order(previous, order)
        routes_updated += 1

    if driver_id is not None:
        order = source.get_route_order(driver_id)
        if client_id not in order:
            source.set_route_order(driver_id, [*order, client_id])
            routes_updated += 1

    logging.info(
        f"Assigned client {client_id} to driver {driver_id or 'none'} "
        f"({stops_updated} stops, {routes_updated} route orders updated)"
    )
    return AssignmentResult(client_id, driver_id, stops_updated, routes_updated)
