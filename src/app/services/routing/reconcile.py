"""Stop reconciliation: make sure every eligible client has a stop for a day."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

from ...config import settings
from ...models.domain import ALL_DAYS, Client, Stop
from ...persistence import clients as client_store
from ...persistence import stops as stop_store
from .eligibility import EligibilityContext, EligibilityMode, ineligibility_reason

UNNAMED = "(Unnamed)"


@dataclass(slots=True)
class ReconcileResult:
    day: str
    stops_created: int = 0
    already_existing: int = 0
    skipped: list[dict[str, Any]] = field(default_factory=list)
    created: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f'Created {self.stops_created} missing stops for day "{self.day}"'


def build_stop(client: Client, day: str) -> Stop:
    """New stop carrying a snapshot of the client's current fields."""
    return Stop(
        id=str(uuid.uuid4()),
        day=day,
        client_id=client.id,
        name=client.display_name or UNNAMED,
        address=client.address,
        apt=client.apt or None,
        city=client.city,
        state=client.state,
        zip=client.zip,
        phone=client.phone or None,
        lat=client.lat,
        lng=client.lng,
        dislikes=client.dislikes,
        assigned_driver_id=client.assigned_driver_id,
    )


def reconcile_stops(day: str, mode: Optional[EligibilityMode] = None) -> ReconcileResult:
    """Create the stops that eligible clients are missing for ``day``.

    Existing stops are never modified beyond a name refresh on duplicate-key
    races, and never deleted. Individual insert failures are reported in
    ``errors``; failures to load the inputs propagate.
    """
    with ThreadPoolExecutor(max_workers=settings.max_parallel_queries) as executor:
        clients_future = executor.submit(client_store.fetch_clients)
        represented_future = executor.submit(stop_store.fetch_stop_client_ids, day)
        schedules_future = executor.submit(client_store.fetch_schedules)
        orders_future = executor.submit(client_store.fetch_active_orders)
        clients = clients_future.result()
        represented = represented_future.result()
        context = EligibilityContext.build(schedules_future.result(), orders_future.result(), mode)

    result = ReconcileResult(day=day)
    to_create: list[Stop] = []
    for client in clients:
        if client.id in represented:
            continue
        reason = ineligibility_reason(client, day, context)
        if reason is not None:
            result.skipped.append({"clientId": client.id, "name": client.display_name or UNNAMED, "reason": reason})
            continue
        to_create.append(build_stop(client, day))
        represented.add(client.id)

    if to_create:
        outcome = stop_store.insert_stops(to_create)
        result.stops_created = len(outcome.created)
        result.already_existing = len(outcome.existing)
        result.errors = outcome.errors
        result.created = [{"clientId": stop.client_id, "name": stop.name} for stop in outcome.created]

    logging.info(
        f"Reconciled stops for day '{day}': {result.stops_created} created, "
        f"{result.already_existing} already existed, {len(result.skipped)} skipped"
    )
    return result
