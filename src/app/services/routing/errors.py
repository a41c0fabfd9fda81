"""Routing error types mapped to HTTP statuses by the API layer."""

from __future__ import annotations


class InvalidDayError(ValueError):
    """Unknown day name or malformed delivery date (400)."""


class ProtectedDriverError(ValueError):
    """Attempt to remove or renumber the reserve driver, "Driver 0" (400)."""


class DriverNotFoundError(LookupError):
    """Driver or legacy route id does not exist (404)."""


class RouteEntryNotFoundError(LookupError):
    """Client is not part of the given driver's route (404)."""


class ClientNotFoundError(LookupError):
    """Client id does not exist (404)."""


class StopNotFoundError(LookupError):
    """Stop id does not exist (404)."""


class RouteRunNotFoundError(LookupError):
    """Route run id does not exist (404)."""
