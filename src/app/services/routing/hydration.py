"""Route Query/Hydration Service.

Builds the driver -> stops views served to the admin and mobile screens. Stops
carry a snapshot of client fields taken at creation; live client values win
over that snapshot (:func:`merge_stop_with_client`). Ownership of a stop is the
client's assigned driver, falling back to the stop's own assignment, and is
authoritative over every stored route order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

from ...config import settings
from ...models.domain import ALL_DAYS, Client, Driver, Order, Stop
from ...persistence import clients as client_store
from ...persistence import drivers as driver_store
from ...persistence import stops as stop_store
from .calendar import normalize_delivery_date
from .reconcile import UNNAMED, ReconcileResult, reconcile_stops
from .results import ReadResult
from .roster import display_color, merge_legacy_routes
from .route_order import RouteOrderSource

CREATING_STOP_NOW = "creating stop now"


def _prefer(live: Any, snapshot: Any) -> Any:
    if live is None or (isinstance(live, str) and not live.strip()):
        return snapshot
    return live


def merge_stop_with_client(stop: Stop, client: Optional[Client]) -> dict[str, Any]:
    """Stop fields with live client values laid over the stop's snapshot."""
    if client is None:
        name = stop.name
        merged = {
            "address": stop.address,
            "apt": stop.apt,
            "city": stop.city,
            "state": stop.state,
            "zip": stop.zip,
            "phone": stop.phone,
            "lat": stop.lat,
            "lng": stop.lng,
            "dislikes": stop.dislikes,
        }
    else:
        name = _prefer(client.display_name or client.full_name, stop.name)
        merged = {
            "address": _prefer(client.address, stop.address),
            "apt": _prefer(client.apt, stop.apt),
            "city": _prefer(client.city, stop.city),
            "state": _prefer(client.state, stop.state),
            "zip": _prefer(client.zip, stop.zip),
            "phone": _prefer(client.phone, stop.phone),
            "lat": _prefer(client.lat, stop.lat),
            "lng": _prefer(client.lng, stop.lng),
            "dislikes": _prefer(client.dislikes, stop.dislikes),
        }
    name = (name or "").strip() or UNNAMED
    dislikes = merged["dislikes"]
    merged["dislikes"] = dislikes.strip() if isinstance(dislikes, str) else ""
    return {"name": name, **merged}


def stop_owner(stop: Stop, client: Optional[Client]) -> Optional[str]:
    if client is not None and client.assigned_driver_id:
        return client.assigned_driver_id
    return stop.assigned_driver_id


def is_visible(client: Optional[Client]) -> bool:
    """Stops of paused or delivery-off clients are hidden from every route view."""
    if client is None:
        return True
    return not client.paused and client.delivery_enabled


def resolve_orders(stops: list[Stop]) -> dict[str, Order]:
    """Order per stop id.

    The stop's ``order_id`` comes first. Without it, the client's order
    scheduled for the stop's delivery date is used, then the client's latest
    order. A direct match that has no order number gives way to a same-date
    order that has one.
    """
    direct = client_store.fetch_orders_by_ids([stop.order_id for stop in stops if stop.order_id])
    resolved: dict[str, Order] = {}
    pending: list[Stop] = []
    for stop in stops:
        order = direct.get(stop.order_id) if stop.order_id else None
        if stop.client_id and (order is None or order.order_number is None):
            pending.append(stop)
        elif order is not None:
            resolved[stop.id] = order
    if not pending:
        return resolved

    latest: dict[str, Order] = {}
    by_date: dict[tuple[str, str], Order] = {}
    for order in client_store.fetch_recent_orders_for_clients([stop.client_id for stop in pending]):
        latest.setdefault(order.client_id, order)
        scheduled = normalize_delivery_date(order.scheduled_delivery_date)
        if scheduled:
            by_date.setdefault((order.client_id, scheduled), order)

    for stop in pending:
        stop_date = normalize_delivery_date(stop.delivery_date)
        dated = by_date.get((stop.client_id, stop_date)) if stop_date else None
        order = direct.get(stop.order_id) if stop.order_id else None
        if order is None:
            order = dated or latest.get(stop.client_id)
        elif dated is not None and dated.order_number is not None:
            order = dated
        if order is not None:
            resolved[stop.id] = order
    return resolved


def hydrate_stop(stop: Stop, client: Optional[Client], order: Optional[Order]) -> dict[str, Any]:
    merged = merge_stop_with_client(stop, client)
    proof = stop.proof_url or (order.proof_of_delivery_url if order else None)
    delivery_date = normalize_delivery_date(stop.delivery_date)
    return {
        "id": stop.id,
        "userId": stop.client_id,
        "client_id": stop.client_id,
        **merged,
        "day": stop.day,
        "completed": stop.completed,
        "delivery_date": delivery_date,
        "proofUrl": proof or None,
        "assigned_driver_id": stop_owner(stop, client),
        "order_id": stop.order_id,
        "orderId": order.id if order else stop.order_id,
        "orderNumber": order.order_number if order else None,
        "orderDate": order.created_at if order else None,
        "deliveryDate": delivery_date
        or (normalize_delivery_date(order.actual_delivery_date or order.scheduled_delivery_date) if order else None),
        "orderStatus": order.status if order else None,
    }


@dataclass(slots=True)
class DriverRoute:
    driver: Driver
    color: str
    stop_ids: list[str]
    source: Optional[str]


@dataclass(slots=True)
class DayView:
    """Everything the route views need for one day (and optional delivery date)."""

    drivers: list[Driver] = field(default_factory=list)
    stops: dict[str, Stop] = field(default_factory=dict)
    clients: dict[str, Client] = field(default_factory=dict)
    routes: list[DriverRoute] = field(default_factory=list)
    unrouted: list[str] = field(default_factory=list)


def load_day_view(day: str, delivery_date: Optional[str] = None) -> DayView:
    """Load drivers, visible stops and their owners, and resolve each driver's route.

    A stop appears on at most one route: the first driver (in sequence order)
    to claim it keeps it.
    """
    with ThreadPoolExecutor(max_workers=settings.max_parallel_queries) as executor:
        drivers_future = executor.submit(driver_store.fetch_drivers, day)
        legacy_future = executor.submit(driver_store.fetch_legacy_routes)
        stops_future = executor.submit(stop_store.fetch_stops, day, delivery_date)
        legacy_routes = legacy_future.result()
        drivers = merge_legacy_routes(drivers_future.result(), legacy_routes)
        stops = stops_future.result()

    client_ids = [stop.client_id for stop in stops if stop.client_id]
    with ThreadPoolExecutor(max_workers=settings.max_parallel_queries) as executor:
        clients_future = executor.submit(client_store.fetch_clients, client_ids)
        source_future = executor.submit(
            RouteOrderSource.preload,
            [driver.id for driver in drivers],
            legacy_routes,
        )
        clients = {client.id: client for client in clients_future.result()} if client_ids else {}
        source = source_future.result()

    visible = {
        stop.id: stop
        for stop in stops
        if is_visible(clients.get(stop.client_id) if stop.client_id else None)
    }
    owner_by_stop = {
        stop_id: stop_owner(stop, clients.get(stop.client_id) if stop.client_id else None)
        for stop_id, stop in visible.items()
    }

    view = DayView(drivers=drivers, stops=visible, clients=clients)
    claimed: set[str] = set()
    for index, driver in enumerate(drivers):
        resolved = source.resolve(driver, visible, owner_by_stop)
        stop_ids = [stop_id for stop_id in resolved.stop_ids if stop_id not in claimed]
        claimed.update(stop_ids)
        view.routes.append(
            DriverRoute(driver=driver, color=display_color(driver, index), stop_ids=stop_ids, source=resolved.source)
        )
    view.unrouted = [stop_id for stop_id in visible if stop_id not in claimed]

    hidden = len(stops) - len(visible)
    logging.info(
        f"Loaded day '{day}' (delivery_date={delivery_date or 'none'}): {len(drivers)} drivers, "
        f"{len(visible)} visible stops ({hidden} hidden), {len(view.unrouted)} unrouted"
    )
    return view


def users_without_stops(result: ReconcileResult) -> list[dict[str, Any]]:
    report = [dict(entry) for entry in result.skipped]
    report.extend({**entry, "reason": CREATING_STOP_NOW} for entry in result.created)
    return report


def empty_routes_payload() -> dict[str, Any]:
    return {"routes": [], "unrouted": [], "usersWithoutStops": []}


def get_routes_for_day(
    day: str = ALL_DAYS,
    delivery_date: Optional[str] = None,
    light: bool = False,
) -> ReadResult[dict[str, Any]]:
    """Full route view for the admin screen.

    Unless ``light`` is set or a delivery date is given, missing stops are
    reconciled first so that newly eligible clients show up right away.
    """
    try:
        without_stops: list[dict[str, Any]] = []
        if not light and not delivery_date:
            without_stops = users_without_stops(reconcile_stops(day))

        view = load_day_view(day, delivery_date)
        orders = resolve_orders(list(view.stops.values()))

        def hydrated(stop_id: str) -> dict[str, Any]:
            stop = view.stops[stop_id]
            client = view.clients.get(stop.client_id) if stop.client_id else None
            return hydrate_stop(stop, client, orders.get(stop_id))

        routes = []
        for route in view.routes:
            stops = [hydrated(stop_id) for stop_id in route.stop_ids]
            routes.append(
                {
                    "driverId": route.driver.id,
                    "driverName": route.driver.name,
                    "color": route.color,
                    "stops": stops,
                    "stopIds": list(route.stop_ids),
                    "totalStops": len(stops),
                    "completedStops": sum(1 for stop in stops if stop["completed"]),
                }
            )
        payload = {
            "routes": routes,
            "unrouted": [hydrated(stop_id) for stop_id in view.unrouted],
            "usersWithoutStops": without_stops,
        }
        logging.info(
            f"Built {len(routes)} routes with {sum(r['totalStops'] for r in routes)} stops for day '{day}'"
        )
        return ReadResult.ok(payload)
    except Exception as e:
        logging.warning(f"Route view for day '{day}' degraded: {e}")
        return ReadResult.failed(empty_routes_payload(), e)


def get_route_summaries(day: str = ALL_DAYS, delivery_date: Optional[str] = None) -> ReadResult[list[dict[str, Any]]]:
    """Lightweight per-driver progress for the mobile app; drivers with no stops are left out."""
    try:
        view = load_day_view(day, delivery_date)
    except Exception as e:
        logging.warning(f"Route summaries for day '{day}' degraded: {e}")
        return ReadResult.failed([], e)

    summaries = []
    for route in view.routes:
        if not route.stop_ids:
            continue
        summaries.append(
            {
                "id": route.driver.id,
                "name": route.driver.name,
                "color": route.color,
                "stopIds": list(route.stop_ids),
                "totalStops": len(route.stop_ids),
                "completedStops": sum(1 for stop_id in route.stop_ids if view.stops[stop_id].completed),
            }
        )
    return ReadResult.ok(summaries)


def get_stops(
    driver_id: Optional[str] = None,
    day: str = ALL_DAYS,
    delivery_date: Optional[str] = None,
) -> ReadResult[list[dict[str, Any]]]:
    """Flat stop list: one driver's stops in route order, or every visible stop of the day."""
    try:
        view = load_day_view(day, delivery_date)
        if driver_id is not None:
            route = next((r for r in view.routes if r.driver.id == driver_id), None)
            stop_ids = list(route.stop_ids) if route else []
        else:
            stop_ids = [stop_id for route in view.routes for stop_id in route.stop_ids] + view.unrouted

        selected = [view.stops[stop_id] for stop_id in stop_ids]
        orders = resolve_orders(selected)
        return ReadResult.ok(
            [
                hydrate_stop(stop, view.clients.get(stop.client_id) if stop.client_id else None, orders.get(stop.id))
                for stop in selected
            ]
        )
    except Exception as e:
        logging.warning(f"Stop list for driver {driver_id or 'all'} on day '{day}' degraded: {e}")
        return ReadResult.failed([], e)
