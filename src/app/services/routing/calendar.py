"""Day-name and delivery-date helpers.

Every conversion from a delivery date to a weekday goes through
:func:`weekday_for_date` so that the server's own timezone never shifts a
delivery onto the neighbouring day.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Optional
from zoneinfo import ZoneInfo

from ...config import settings
from ...models.domain import ALL_DAYS, WEEKDAYS
from .errors import InvalidDayError

_DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def app_timezone() -> ZoneInfo:
    return _zone(settings.app_timezone)


def normalize_day(raw: Any, *, default: str = ALL_DAYS) -> str:
    """Lower-case and validate a day name. ``None``/empty yields ``default``."""
    if raw is None or str(raw).strip() == "":
        return default
    value = str(raw).strip().lower()
    if value != ALL_DAYS and value not in WEEKDAYS:
        raise InvalidDayError(f"Invalid day '{raw}'. Expected one of: {', '.join((*WEEKDAYS, ALL_DAYS))}")
    return value


def normalize_delivery_date(raw: Any) -> Optional[str]:
    """Reduce a date/timestamp value to ``YYYY-MM-DD``.

    Values that already start with a calendar date keep that date as-is (a
    ``2026-02-16T00:00:00Z`` column value is the 16th, not the 15th evening in
    Eastern time). Other datetimes are converted into the application timezone.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        moment = raw if raw.tzinfo else raw.replace(tzinfo=app_timezone())
        return moment.astimezone(app_timezone()).date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    text = str(raw).strip()
    if not text:
        return None
    match = _DATE_PREFIX.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3))).isoformat()
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return normalize_delivery_date(parsed)


def parse_delivery_date(raw: Any) -> Optional[str]:
    """Like :func:`normalize_delivery_date` but rejects unparseable input."""
    if raw is None or str(raw).strip() == "":
        return None
    normalized = normalize_delivery_date(raw)
    if normalized is None:
        raise InvalidDayError(f"Invalid delivery_date '{raw}'. Expected YYYY-MM-DD")
    return normalized


def weekday_for_date(raw: Any) -> Optional[str]:
    """Weekday name (``monday`` ...) of a delivery date in the application timezone."""
    normalized = normalize_delivery_date(raw)
    if normalized is None:
        return None
    return WEEKDAYS[date.fromisoformat(normalized).weekday()]
