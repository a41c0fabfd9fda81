"""Route group exports."""

from . import health, mobile, routes

__all__ = ["routes", "mobile", "health"]
