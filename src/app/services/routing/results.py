"""Result wrapper for best-effort reads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class ReadResult(Generic[T]):
    """A read that may have degraded to an empty value.

    Endpoints serving best-effort reads answer 200 with ``value`` either way;
    ``degraded`` and ``error`` let callers and tests tell "nothing there" from
    "the lookup failed".
    """

    value: T
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "ReadResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, empty: T, exc: BaseException) -> "ReadResult[T]":
        return cls(value=empty, degraded=True, error=str(exc) or exc.__class__.__name__)
