"""Domain models for clients, stops, drivers and route history."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Optional

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
ALL_DAYS = "all"

ACTIVE_ORDER_STATUSES: frozenset[str] = frozenset({"pending", "scheduled", "confirmed"})


def to_float(value: Any) -> Optional[float]:
    """Coerce number | numeric string | None to a finite float or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def next_date_after(delivery_date: str) -> str:
    """The ISO date following ``delivery_date`` (exclusive upper bound for date filters)."""
    return (date.fromisoformat(delivery_date) + timedelta(days=1)).isoformat()


def to_text(value: Any) -> str:
    return "" if value is None else str(value)


def to_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True)
class WeeklySchedule:
    """Per-weekday availability for a client."""

    client_id: str
    days: dict[str, bool]

    def allows(self, day: str) -> bool:
        return bool(self.days.get(day, False))

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "WeeklySchedule":
        return cls(
            client_id=str(row["client_id"]),
            days={day: bool(row.get(day)) for day in WEEKDAYS},
        )


@dataclass(slots=True)
class Client:
    """A delivery recipient as read from the CRM tables."""

    id: str
    first_name: str = ""
    last_name: str = ""
    full_name: Optional[str] = None
    address: str = ""
    apt: Optional[str] = None
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    dislikes: Optional[str] = None
    paused: bool = False
    delivery: Optional[bool] = True
    assigned_driver_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def delivery_enabled(self) -> bool:
        # absent/null means deliveries are on
        return True if self.delivery is None else bool(self.delivery)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Client":
        return cls(
            id=str(row["id"]),
            first_name=to_text(row.get("first_name")),
            last_name=to_text(row.get("last_name")),
            full_name=row.get("full_name"),
            address=to_text(row.get("address")),
            apt=row.get("apt") or None,
            city=to_text(row.get("city")),
            state=to_text(row.get("state")),
            zip=to_text(row.get("zip")),
            phone=row.get("phone_number") or row.get("phone") or None,
            lat=to_float(row.get("lat")),
            lng=to_float(row.get("lng")),
            dislikes=row.get("dislikes"),
            paused=bool(row.get("paused") or False),
            delivery=row.get("delivery"),
            assigned_driver_id=to_id(row.get("assigned_driver_id")),
        )


@dataclass(slots=True)
class Order:
    """A scheduled delivery obligation; only its dates and status matter here."""

    id: str
    client_id: str
    status: Optional[str] = None
    scheduled_delivery_date: Optional[str] = None
    delivery_day: Optional[str] = None
    actual_delivery_date: Optional[str] = None
    created_at: Optional[str] = None
    order_number: Optional[int] = None
    proof_of_delivery_url: Optional[str] = None
    upcoming: bool = False

    @property
    def is_active(self) -> bool:
        status = (self.status or "").strip().lower()
        if self.upcoming:
            return status == "scheduled"
        return status in ACTIVE_ORDER_STATUSES

    @classmethod
    def from_row(cls, row: dict[str, Any], *, upcoming: bool = False) -> "Order":
        number = to_float(row.get("order_number"))
        return cls(
            id=str(row["id"]),
            client_id=str(row.get("client_id")),
            status=row.get("status"),
            scheduled_delivery_date=row.get("scheduled_delivery_date"),
            delivery_day=row.get("delivery_day"),
            actual_delivery_date=row.get("actual_delivery_date"),
            created_at=row.get("created_at"),
            order_number=int(number) if number is not None else None,
            proof_of_delivery_url=row.get("proof_of_delivery_url"),
            upcoming=upcoming,
        )


@dataclass(slots=True)
class Stop:
    """One delivery visit for one client on a day or a specific delivery date."""

    id: str
    day: str
    client_id: Optional[str] = None
    delivery_date: Optional[str] = None
    order_id: Optional[str] = None
    name: str = ""
    address: str = ""
    apt: Optional[str] = None
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    dislikes: Optional[str] = None
    completed: bool = False
    proof_url: Optional[str] = None
    assigned_driver_id: Optional[str] = None

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "day": self.day,
            "delivery_date": self.delivery_date,
            "client_id": self.client_id,
            "order_id": self.order_id,
            "name": self.name,
            "address": self.address,
            "apt": self.apt,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "phone": self.phone,
            "lat": self.lat,
            "lng": self.lng,
            "dislikes": self.dislikes,
            "completed": self.completed,
            "proof_url": self.proof_url,
            "assigned_driver_id": self.assigned_driver_id,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Stop":
        return cls(
            id=str(row["id"]),
            day=to_text(row.get("day")).lower() or ALL_DAYS,
            client_id=to_id(row.get("client_id")),
            delivery_date=row.get("delivery_date"),
            order_id=to_id(row.get("order_id")),
            name=to_text(row.get("name")),
            address=to_text(row.get("address")),
            apt=row.get("apt") or None,
            city=to_text(row.get("city")),
            state=to_text(row.get("state")),
            zip=to_text(row.get("zip")),
            phone=row.get("phone") or None,
            lat=to_float(row.get("lat")),
            lng=to_float(row.get("lng")),
            dislikes=row.get("dislikes"),
            completed=bool(row.get("completed") or False),
            proof_url=row.get("proof_url") or None,
            assigned_driver_id=to_id(row.get("assigned_driver_id")),
        )


@dataclass(slots=True)
class Driver:
    """A named, day-scoped route container.

    ``sequence`` is the explicit ordering number ("Driver 0" is 0). Rows from the
    legacy ``routes`` table carry ``legacy=True`` and are treated as day "all".
    """

    id: str
    name: str
    day: str = ALL_DAYS
    color: Optional[str] = None
    sequence: Optional[int] = None
    stop_ids: list[str] = field(default_factory=list)
    legacy: bool = False


@dataclass(slots=True)
class RouteOrderRow:
    driver_id: str
    client_id: str
    position: int


@dataclass(slots=True)
class DriverSnapshot:
    driver_id: str
    driver_name: str
    color: Optional[str]
    stop_ids: list[str]

    def to_json(self) -> dict[str, Any]:
        return {
            "driverId": self.driver_id,
            "driverName": self.driver_name,
            "color": self.color,
            "stopIds": list(self.stop_ids),
        }


@dataclass(slots=True)
class RouteRun:
    """Immutable snapshot of every driver's stop assignment for a day."""

    id: str
    day: str
    created_at: Optional[str]
    snapshot: list[DriverSnapshot]


def sort_drivers(drivers: Iterable[Driver]) -> list[Driver]:
    """Canonical driver order: by sequence number, unnumbered drivers last (stable)."""
    return sorted(drivers, key=lambda driver: (driver.sequence is None, driver.sequence or 0))
