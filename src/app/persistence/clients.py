"""Read access to clients, schedules and orders (owned by the CRM side)."""

from __future__ import annotations

import logging
from typing import Optional

from ..db.supabase import require_client
from ..models.domain import ACTIVE_ORDER_STATUSES, Client, Order, WeeklySchedule
from .common import chunked, rows, unique_ids

CLIENT_COLUMNS = (
    "id, first_name, last_name, full_name, address, apt, city, state, zip, phone_number, "
    "lat, lng, dislikes, paused, delivery, assigned_driver_id"
)
ORDER_COLUMNS = (
    "id, client_id, status, scheduled_delivery_date, delivery_day, actual_delivery_date, "
    "created_at, order_number, proof_of_delivery_url"
)
UPCOMING_ORDER_COLUMNS = (
    "id, client_id, status, scheduled_delivery_date, delivery_day, actual_delivery_date, "
    "created_at, order_number"
)


def fetch_clients(client_ids: Optional[list[str]] = None) -> list[Client]:
    """Load all clients, or only the given ids (batched)."""
    supabase = require_client()
    if client_ids is None:
        response = supabase.table("clients").select(CLIENT_COLUMNS).order("id").execute()
        return [Client.from_row(row) for row in rows(response)]

    clients: list[Client] = []
    for batch in chunked(unique_ids(client_ids)):
        response = supabase.table("clients").select(CLIENT_COLUMNS).in_("id", list(batch)).execute()
        clients.extend(Client.from_row(row) for row in rows(response))
    return clients


def fetch_schedules() -> list[WeeklySchedule]:
    supabase = require_client()
    response = supabase.table("schedules").select(
        "client_id, monday, tuesday, wednesday, thursday, friday, saturday, sunday"
    ).execute()
    return [WeeklySchedule.from_row(row) for row in rows(response) if row.get("client_id") is not None]


def fetch_active_orders() -> list[Order]:
    """Orders and upcoming orders that can make a client eligible for a stop."""
    supabase = require_client()
    orders_response = (
        supabase.table("orders")
        .select(ORDER_COLUMNS)
        .in_("status", sorted(ACTIVE_ORDER_STATUSES))
        .execute()
    )
    upcoming_response = (
        supabase.table("upcoming_orders")
        .select(UPCOMING_ORDER_COLUMNS)
        .eq("status", "scheduled")
        .execute()
    )
    orders = [Order.from_row(row) for row in rows(orders_response)]
    orders.extend(Order.from_row(row, upcoming=True) for row in rows(upcoming_response))
    return [order for order in orders if order.scheduled_delivery_date or order.delivery_day]


def fetch_orders_by_ids(order_ids: list[str]) -> dict[str, Order]:
    """Resolve order ids, checking ``upcoming_orders`` before ``orders``."""
    supabase = require_client()
    ids = unique_ids(order_ids)
    found: dict[str, Order] = {}
    for batch in chunked(ids):
        response = supabase.table("upcoming_orders").select(UPCOMING_ORDER_COLUMNS).in_("id", list(batch)).execute()
        for row in rows(response):
            found[str(row["id"])] = Order.from_row(row, upcoming=True)

    missing = [order_id for order_id in ids if order_id not in found]
    for batch in chunked(missing):
        response = supabase.table("orders").select(ORDER_COLUMNS).in_("id", list(batch)).execute()
        for row in rows(response):
            found.setdefault(str(row["id"]), Order.from_row(row))
    logging.info(f"Resolved {len(found)}/{len(ids)} order ids from stops")
    return found


def fetch_recent_orders_for_clients(client_ids: list[str]) -> list[Order]:
    """Non-cancelled orders of the given clients, newest first; ``orders`` rows before ``upcoming_orders``."""
    supabase = require_client()
    found: list[Order] = []
    for table, columns, upcoming in (
        ("orders", ORDER_COLUMNS, False),
        ("upcoming_orders", UPCOMING_ORDER_COLUMNS, True),
    ):
        for batch in chunked(unique_ids(client_ids)):
            response = (
                supabase.table(table)
                .select(columns)
                .in_("client_id", list(batch))
                .neq("status", "cancelled")
                .order("created_at", desc=True)
                .execute()
            )
            found.extend(Order.from_row(row, upcoming=upcoming) for row in rows(response))
    return found


def fetch_client_coordinates(client_ids: list[str]) -> dict[str, tuple[Optional[float], Optional[float]]]:
    supabase = require_client()
    coords: dict[str, tuple[Optional[float], Optional[float]]] = {}
    for batch in chunked(unique_ids(client_ids)):
        response = supabase.table("clients").select("id, lat, lng").in_("id", list(batch)).execute()
        for row in rows(response):
            client = Client.from_row(row)
            coords[client.id] = (client.lat, client.lng)
    return coords


def update_client_driver(client_id: str, driver_id: Optional[str]) -> bool:
    """Write ``clients.assigned_driver_id``. Returns False when the client does not exist."""
    supabase = require_client()
    response = (
        supabase.table("clients")
        .update({"assigned_driver_id": driver_id})
        .eq("id", client_id)
        .execute()
    )
    return bool(rows(response))
