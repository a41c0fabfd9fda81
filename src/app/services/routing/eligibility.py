"""Stop eligibility: should a client have a delivery stop on a given day?"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Literal, Mapping, Optional, Sequence

from ...config import settings
from ...models.domain import ALL_DAYS, Client, Order, WeeklySchedule
from .calendar import weekday_for_date

REASON_PAUSED = "paused"
REASON_DELIVERY_OFF = "delivery off"

EligibilityMode = Literal["orders", "schedule"]


def no_active_order_reason(day: str) -> str:
    return f"no active order for {day}"


def order_weekdays(order: Order) -> set[str]:
    """Weekdays an active order can be delivered on (empty for inactive orders)."""
    if not order.is_active:
        return set()
    days: set[str] = set()
    if order.delivery_day and str(order.delivery_day).strip():
        days.add(str(order.delivery_day).strip().lower())
    weekday = weekday_for_date(order.scheduled_delivery_date)
    if weekday:
        days.add(weekday)
    return days


@dataclass(slots=True)
class EligibilityContext:
    """Schedules and orders needed to judge eligibility for many clients at once."""

    schedules: Mapping[str, WeeklySchedule] = field(default_factory=dict)
    orders_by_client: Mapping[str, Sequence[Order]] = field(default_factory=dict)
    mode: EligibilityMode = "orders"

    @classmethod
    def build(
        cls,
        schedules: Iterable[WeeklySchedule],
        orders: Iterable[Order],
        mode: Optional[EligibilityMode] = None,
    ) -> "EligibilityContext":
        grouped: dict[str, list[Order]] = {}
        for order in orders:
            grouped.setdefault(order.client_id, []).append(order)
        return cls(
            schedules={schedule.client_id: schedule for schedule in schedules},
            orders_by_client=grouped,
            mode=mode or settings.eligibility_mode,
        )

    def order_days(self, client_id: str) -> set[str]:
        days: set[str] = set()
        for order in self.orders_by_client.get(client_id, ()):
            days |= order_weekdays(order)
        return days

    def schedule_allows(self, client_id: str, day: str) -> bool:
        schedule = self.schedules.get(client_id)
        if schedule is None:
            # no schedule row means every day
            return True
        return schedule.allows(day)


def ineligibility_reason(client: Client, day: str, context: EligibilityContext) -> Optional[str]:
    """Return why ``client`` gets no stop on ``day``, or ``None`` when eligible."""
    if client.paused:
        return REASON_PAUSED
    if not client.delivery_enabled:
        return REASON_DELIVERY_OFF

    order_days = context.order_days(client.id)
    if day == ALL_DAYS:
        if context.mode == "schedule" or order_days:
            return None
        return no_active_order_reason(day)

    if day in order_days:
        return None
    if context.mode == "schedule" and context.schedule_allows(client.id, day):
        return None
    return no_active_order_reason(day)


def is_eligible(client: Client, day: str, context: EligibilityContext) -> bool:
    return ineligibility_reason(client, day, context) is None
