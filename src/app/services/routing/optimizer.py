"""Nearest-neighbour route ordering and the reorganize flow that persists it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ...models.domain import ALL_DAYS
from ...persistence import clients as client_store
from ...persistence import drivers as driver_store
from ...persistence import stops as stop_store
from ..geospatial import has_coordinates, haversine_km
from .errors import DriverNotFoundError
from .route_order import RouteOrderSource


@dataclass(slots=True)
class RoutePoint:
    client_id: str
    lat: Optional[float]
    lng: Optional[float]


@dataclass(slots=True)
class ReorganizeResult:
    drivers_optimized: int
    stops_reordered: int


def optimize_route_order(points: Sequence[RoutePoint]) -> list[str]:
    """Order client ids with a greedy nearest-neighbour tour.

    The tour starts at the southernmost point (ties keep input order), then
    repeatedly visits the closest unvisited point; equal distances go to the
    point seen first. Points without usable coordinates keep their input order
    at the end, so the result is always a permutation of the input ids.
    """
    valid = [point for point in points if has_coordinates(point.lat, point.lng)]
    invalid = [point for point in points if not has_coordinates(point.lat, point.lng)]
    if len(valid) <= 1:
        return [point.client_id for point in valid] + [point.client_id for point in invalid]

    # sorted() is stable, so the first of several equally southern points wins
    current = sorted(valid, key=lambda point: float(point.lat))[0]
    ordered = [current]
    unvisited = [point for point in valid if point is not current]

    while unvisited:
        nearest_index: Optional[int] = None
        nearest_distance = float("inf")
        for index, candidate in enumerate(unvisited):
            distance = haversine_km(float(current.lat), float(current.lng), float(candidate.lat), float(candidate.lng))
            if distance < nearest_distance:
                nearest_distance = distance
                nearest_index = index
        if nearest_index is None:
            break
        current = unvisited.pop(nearest_index)
        ordered.append(current)

    return [point.client_id for point in ordered] + [point.client_id for point in invalid]


def _collect_coordinates(
    client_ids: list[str], delivery_date: Optional[str]
) -> dict[str, tuple[Optional[float], Optional[float]]]:
    coords = client_store.fetch_client_coordinates(client_ids)
    missing = [cid for cid in client_ids if not has_coordinates(*coords.get(cid, (None, None)))]
    if not missing:
        return coords

    recovered = stop_store.fetch_stop_coordinates(missing, delivery_date)
    for client_id in missing:
        if client_id not in recovered:
            continue
        lat, lng = coords.get(client_id, (None, None))
        stop_lat, stop_lng = recovered[client_id]
        coords[client_id] = (lat if lat is not None else stop_lat, lng if lng is not None else stop_lng)
    logging.info(f"Recovered coordinates from stops for {len(recovered)}/{len(missing)} clients")
    return coords


def reorganize_routes(
    day: str = ALL_DAYS,
    driver_id: Optional[str] = None,
    delivery_date: Optional[str] = None,
) -> ReorganizeResult:
    """Re-optimize the stop order of every driver for ``day`` (or one driver)."""
    drivers = driver_store.fetch_drivers(day) + driver_store.fetch_legacy_routes()
    driver_ids = list(dict.fromkeys(driver.id for driver in drivers))
    if driver_id is not None:
        if driver_id not in driver_ids:
            raise DriverNotFoundError(f"Driver {driver_id} not found")
        driver_ids = [driver_id]
    if not driver_ids:
        return ReorganizeResult(drivers_optimized=0, stops_reordered=0)

    source = RouteOrderSource.preload(driver_ids)
    routes = {did: source.get_route_order(did) for did in driver_ids}
    routes = {did: order for did, order in routes.items() if order}
    if not routes:
        logging.info(f"No route orders to reorganize for day '{day}'")
        return ReorganizeResult(drivers_optimized=0, stops_reordered=0)

    all_client_ids = list(dict.fromkeys(cid for order in routes.values() for cid in order))
    coords = _collect_coordinates(all_client_ids, delivery_date)

    reordered = 0
    for did, order in routes.items():
        points = [RoutePoint(cid, *coords.get(cid, (None, None))) for cid in order]
        reordered += source.set_route_order(did, optimize_route_order(points))

    logging.info(f"Reorganized {len(routes)} route(s) for day '{day}' ({reordered} stops)")
    return ReorganizeResult(drivers_optimized=len(routes), stops_reordered=reordered)
