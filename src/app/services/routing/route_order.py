"""Route Assignment Store.

Route order lives in three places: ``driver_route_order`` rows (canonical),
the legacy ``drivers.stop_ids`` array and the legacy ``routes`` table.
:class:`RouteOrderSource` hides that behind one read strategy and one write
target; the legacy reads exist only for data that was never migrated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ...models.domain import Driver, Stop
from ...persistence import drivers as driver_store
from .errors import DriverNotFoundError, RouteEntryNotFoundError

SOURCE_ROUTE_ORDER = "driver_route_order"
SOURCE_STOP_IDS = "stop_ids"
SOURCE_LEGACY_ROUTES = "routes"
SOURCE_ASSIGNED = "assigned_driver_id"


@dataclass(slots=True)
class ResolvedRoute:
    stop_ids: list[str]
    source: Optional[str]


class RouteOrderSource:
    """Read/write access to a driver's ordered stops."""

    def __init__(
        self,
        route_order: Optional[Mapping[str, Sequence[str]]] = None,
        legacy_routes: Optional[Sequence[Driver]] = None,
    ) -> None:
        # preloaded rows keyed by driver id; missing drivers are fetched lazily
        self._route_order: dict[str, list[str]] = {k: list(v) for k, v in (route_order or {}).items()}
        self._legacy_routes: Optional[dict[str, Driver]] = (
            {route.id: route for route in legacy_routes} if legacy_routes is not None else None
        )

    @classmethod
    def preload(cls, driver_ids: Sequence[str], legacy_routes: Optional[Sequence[Driver]] = None) -> "RouteOrderSource":
        loaded = driver_store.fetch_route_order(list(driver_ids))
        return cls({driver_id: loaded.get(driver_id, []) for driver_id in driver_ids}, legacy_routes)

    def get_route_order(self, driver_id: str) -> list[str]:
        if driver_id not in self._route_order:
            self._route_order.update({driver_id: []})
            self._route_order.update(driver_store.fetch_route_order([driver_id]))
        return list(self._route_order[driver_id])

    def set_route_order(self, driver_id: str, client_ids: Sequence[str]) -> int:
        written = driver_store.replace_route_order(driver_id, list(client_ids))
        self._route_order[driver_id] = list(dict.fromkeys(str(cid) for cid in client_ids))
        return written

    def get_legacy_stop_ids(self, driver: Driver) -> list[str]:
        """The driver's ``stop_ids``, else the ``routes`` row of the same id."""
        if driver.stop_ids:
            return list(driver.stop_ids)
        if driver.legacy:
            return []
        if self._legacy_routes is not None:
            legacy = self._legacy_routes.get(driver.id)
        else:
            legacy = driver_store.fetch_legacy_route(driver.id)
        return list(legacy.stop_ids) if legacy else []

    def set_legacy_stop_ids(self, driver: Driver, stop_ids: Sequence[str]) -> None:
        driver_store.set_stop_ids(driver, list(stop_ids))
        driver.stop_ids = list(stop_ids)

    def resolve(
        self,
        driver: Driver,
        stops_by_id: Mapping[str, Stop],
        owner_by_stop: Mapping[str, Optional[str]],
    ) -> ResolvedRoute:
        """Merged read of a driver's stop ids.

        ``owner_by_stop`` maps each stop id to the driver it is assigned to
        (``None`` when unassigned) and is authoritative: a stop owned by another
        driver never appears here, whatever the route order rows or legacy
        arrays say.

        The driver's members are its owned stops plus the unowned stops listed
        in its legacy array (``stop_ids``, else the ``routes`` row of the same
        id). ``driver_route_order`` orders the members when it matches at least
        one of them; otherwise the legacy array order is used, and finally the
        stops assigned to the driver. Unmatched members follow in every case.
        """
        owned = [stop_id for stop_id in stops_by_id if owner_by_stop.get(stop_id) == driver.id]
        legacy_ids = self.get_legacy_stop_ids(driver)
        if driver.stop_ids:
            legacy_source = SOURCE_LEGACY_ROUTES if driver.legacy else SOURCE_STOP_IDS
        else:
            legacy_source = SOURCE_LEGACY_ROUTES
        listed = [
            stop_id
            for stop_id in dict.fromkeys(legacy_ids)
            if stop_id in stops_by_id and owner_by_stop.get(stop_id) in (None, driver.id)
        ]
        members = listed + [stop_id for stop_id in owned if stop_id not in listed]

        member_by_client: dict[str, str] = {}
        for stop_id in members:
            client_id = stops_by_id[stop_id].client_id
            if client_id is not None:
                member_by_client.setdefault(client_id, stop_id)

        ordered: list[str] = []
        for client_id in self.get_route_order(driver.id):
            stop_id = member_by_client.get(client_id)
            if stop_id is not None and stop_id not in ordered:
                ordered.append(stop_id)
        if ordered:
            ordered.extend(stop_id for stop_id in members if stop_id not in ordered)
            return ResolvedRoute(stop_ids=ordered, source=SOURCE_ROUTE_ORDER)
        if listed:
            return ResolvedRoute(stop_ids=members, source=legacy_source)
        return ResolvedRoute(stop_ids=owned, source=SOURCE_ASSIGNED if owned else None)


def move_client(source: RouteOrderSource, driver_id: str, client_id: str, new_position: int) -> list[str]:
    """Move one client within a driver's route and rewrite dense positions."""
    if new_position < 0:
        raise ValueError("new_position must be a non-negative integer")
    order = source.get_route_order(driver_id)
    if client_id not in order:
        raise RouteEntryNotFoundError(f"Client {client_id} is not on route {driver_id}")
    order.remove(client_id)
    order.insert(min(new_position, len(order)), client_id)
    source.set_route_order(driver_id, order)
    return order


def reverse_route(driver_id: str) -> tuple[int, str]:
    """Reverse a driver's route in whichever representation holds it.

    Returns ``(stop_count, source)``.
    """
    source = RouteOrderSource()
    order = source.get_route_order(driver_id)
    if order:
        source.set_route_order(driver_id, list(reversed(order)))
        logging.info(f"Reversed {len(order)} stops for driver {driver_id} (driver_route_order)")
        return len(order), SOURCE_ROUTE_ORDER

    driver = driver_store.fetch_driver(driver_id) or driver_store.fetch_legacy_route(driver_id)
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found")
    if not driver.stop_ids:
        return 0, SOURCE_LEGACY_ROUTES if driver.legacy else SOURCE_STOP_IDS
    source.set_legacy_stop_ids(driver, list(reversed(driver.stop_ids)))
    return len(driver.stop_ids), SOURCE_LEGACY_ROUTES if driver.legacy else SOURCE_STOP_IDS
