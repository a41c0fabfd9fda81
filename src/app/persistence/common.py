"""Shared helpers for Supabase table access."""

from __future__ import annotations

import json
from typing import Any, Iterable, Iterator, Sequence, TypeVar

from postgrest.exceptions import APIError

from ..config import settings

T = TypeVar("T")

UNIQUE_VIOLATION = "23505"


def rows(response: Any) -> list[dict[str, Any]]:
    data = getattr(response, "data", None)
    return list(data or [])


def chunked(items: Sequence[T], size: int | None = None) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    step = size or settings.query_batch_size
    for start in range(0, len(items), step):
        yield items[start:start + step]


def unique_ids(values: Iterable[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


def is_duplicate_key(exc: Exception) -> bool:
    if isinstance(exc, APIError):
        if exc.code == UNIQUE_VIOLATION:
            return True
        return "duplicate" in (exc.message or "").lower()
    return "duplicate key" in str(exc).lower()


def parse_id_list(value: Any) -> list[str]:
    """Parse a legacy ``stop_ids`` column (JSON array or JSON-encoded string)."""
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value or "[]")
        except json.JSONDecodeError:
            return []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]
