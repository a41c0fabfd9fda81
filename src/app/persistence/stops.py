"""Stop table persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..config import settings
from ..db.supabase import require_client
from ..models.domain import ALL_DAYS, Stop, next_date_after, to_float
from .common import chunked, is_duplicate_key, rows, unique_ids

STOP_COLUMNS = (
    "id, day, delivery_date, client_id, order_id, name, address, apt, city, state, zip, phone, "
    "lat, lng, dislikes, completed, proof_url, assigned_driver_id"
)


@dataclass(slots=True)
class InsertOutcome:
    """Result of a batched stop insert."""

    created: list[Stop] = field(default_factory=list)
    existing: list[Stop] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


def _fetch_pages(build_query: Callable[[], Any]) -> list[dict[str, Any]]:
    """Run ``build_query()`` page by page until a short page comes back."""
    page_size = settings.stop_page_size
    collected: list[dict[str, Any]] = []
    start = 0
    while True:
        page = rows(build_query().range(start, start + page_size - 1).execute())
        collected.extend(page)
        if len(page) < page_size:
            return collected
        start += page_size


def fetch_stops(day: str, delivery_date: Optional[str] = None) -> list[Stop]:
    """Stops for a day and/or delivery date.

    With a delivery date and a specific day, undated stops of that day are
    included as well (legacy rows created before delivery dates existed).
    Every query is paged, so no stop is missed on large tables.
    """
    supabase = require_client()
    if delivery_date:
        dated = _fetch_pages(
            lambda: supabase.table("stops")
            .select(STOP_COLUMNS)
            .gte("delivery_date", delivery_date)
            .lt("delivery_date", next_date_after(delivery_date))
            .order("id")
        )
        stops = [Stop.from_row(row) for row in dated]
        if day != ALL_DAYS:
            undated = _fetch_pages(
                lambda: supabase.table("stops")
                .select(STOP_COLUMNS)
                .is_("delivery_date", "null")
                .eq("day", day)
                .order("id")
            )
            seen = {stop.id for stop in stops}
            stops.extend(Stop.from_row(row) for row in undated if str(row["id"]) not in seen)
        return stops

    def day_query() -> Any:
        query = supabase.table("stops").select(STOP_COLUMNS)
        if day != ALL_DAYS:
            query = query.eq("day", day)
        return query.order("id")

    return [Stop.from_row(row) for row in _fetch_pages(day_query)]


def fetch_stop_client_ids(day: str) -> set[str]:
    """Ids of the clients that already have a stop for ``day`` (any day for "all")."""
    supabase = require_client()

    def client_query() -> Any:
        query = supabase.table("stops").select("id, client_id")
        if day != ALL_DAYS:
            query = query.eq("day", day)
        return query.order("id")

    return {str(row["client_id"]) for row in _fetch_pages(client_query) if row.get("client_id") is not None}


def fetch_stops_by_ids(stop_ids: list[str]) -> dict[str, Stop]:
    supabase = require_client()
    found: dict[str, Stop] = {}
    for batch in chunked(unique_ids(stop_ids)):
        response = supabase.table("stops").select(STOP_COLUMNS).in_("id", list(batch)).execute()
        for row in rows(response):
            stop = Stop.from_row(row)
            found[stop.id] = stop
    return found


def fetch_stop_coordinates(
    client_ids: list[str], delivery_date: Optional[str] = None
) -> dict[str, tuple[Optional[float], Optional[float]]]:
    """Coordinates recorded on stops, used when the client row has none."""
    supabase = require_client()
    coords: dict[str, tuple[Optional[float], Optional[float]]] = {}
    for batch in chunked(unique_ids(client_ids)):
        response = (
            supabase.table("stops")
            .select("client_id, delivery_date, lat, lng")
            .in_("client_id", list(batch))
            .execute()
        )
        for row in rows(response):
            if delivery_date:
                row_date = row.get("delivery_date")
                if row_date is not None and not str(row_date).startswith(delivery_date):
                    continue
            lat, lng = to_float(row.get("lat")), to_float(row.get("lng"))
            if lat is None and lng is None:
                continue
            coords.setdefault(str(row["client_id"]), (lat, lng))
    return coords


def _conflict_query(supabase: Any, stop: Stop) -> Any:
    query = supabase.table("stops").update({"name": stop.name}).eq("client_id", stop.client_id)
    if stop.delivery_date:
        return query.eq("delivery_date", stop.delivery_date)
    return query.eq("day", stop.day).is_("delivery_date", "null")


def _insert_one(supabase: Any, stop: Stop, outcome: InsertOutcome) -> None:
    try:
        supabase.table("stops").insert(stop.to_row()).execute()
        outcome.created.append(stop)
    except Exception as exc:
        if is_duplicate_key(exc):
            # another request created this client's stop first
            try:
                _conflict_query(supabase, stop).execute()
            except Exception as update_exc:
                logging.warning(f"Failed to refresh existing stop for client {stop.client_id}: {update_exc}")
            outcome.existing.append(stop)
            return
        logging.warning(f"Failed to create stop for client {stop.client_id}: {exc}")
        outcome.errors.append({"clientId": stop.client_id, "error": str(exc)})


def insert_stops(stops: list[Stop]) -> InsertOutcome:
    """Insert stops in batches; duplicate-key conflicts count as already existing."""
    supabase = require_client()
    outcome = InsertOutcome()
    for batch in chunked(stops, settings.write_batch_size):
        try:
            supabase.table("stops").insert([stop.to_row() for stop in batch]).execute()
            outcome.created.extend(batch)
        except Exception as e:
            if not is_duplicate_key(e):
                logging.warning(f"Batch stop insert failed, trying individual inserts: {e}")
            for stop in batch:
                _insert_one(supabase, stop, outcome)
    logging.info(
        f"Stop insert: {len(outcome.created)} created, {len(outcome.existing)} already existed, "
        f"{len(outcome.errors)} failed"
    )
    return outcome


def set_stop_completed(stop_id: str, completed: bool) -> bool:
    supabase = require_client()
    response = supabase.table("stops").update({"completed": completed}).eq("id", stop_id).execute()
    return bool(rows(response))


def clear_stop_driver(driver_id: str, stop_ids: Optional[list[str]] = None) -> set[str]:
    """Null ``assigned_driver_id`` on the driver's stops (by assignment and by legacy ids).

    Returns the ids of the stops that were touched.
    """
    supabase = require_client()
    touched: set[str] = set()
    response = (
        supabase.table("stops")
        .update({"assigned_driver_id": None})
        .eq("assigned_driver_id", driver_id)
        .execute()
    )
    touched.update(str(row["id"]) for row in rows(response))
    for batch in chunked(unique_ids(stop_ids or [])):
        response = supabase.table("stops").update({"assigned_driver_id": None}).in_("id", list(batch)).execute()
        touched.update(str(row["id"]) for row in rows(response))
    return touched


def assign_stops_driver(stop_ids: list[str], driver_id: Optional[str]) -> int:
    supabase = require_client()
    touched = 0
    for batch in chunked(unique_ids(stop_ids)):
        response = supabase.table("stops").update({"assigned_driver_id": driver_id}).in_("id", list(batch)).execute()
        touched += len(rows(response))
    return touched


def set_client_stops_driver(client_id: str, driver_id: Optional[str]) -> int:
    supabase = require_client()
    response = (
        supabase.table("stops")
        .update({"assigned_driver_id": driver_id})
        .eq("client_id", client_id)
        .execute()
    )
    return len(rows(response))


def fetch_day_stop(day: str, stop_id: Optional[str] = None, client_id: Optional[str] = None) -> Optional[Stop]:
    """One stop of ``day``, by stop id or else by client id."""
    supabase = require_client()
    query = supabase.table("stops").select(STOP_COLUMNS).eq("day", day)
    if stop_id:
        query = query.eq("id", stop_id)
    elif client_id:
        query = query.eq("client_id", client_id)
    else:
        return None
    found = rows(query.order("id").limit(1).execute())
    return Stop.from_row(found[0]) if found else None


def clear_stop_proof(stop_ids: list[str]) -> int:
    """Drop proof of delivery and mark the stops pending again."""
    supabase = require_client()
    touched = 0
    for batch in chunked(unique_ids(stop_ids)):
        response = (
            supabase.table("stops")
            .update({"proof_url": None, "completed": False})
            .in_("id", list(batch))
            .execute()
        )
        touched += len(rows(response))
    return touched
