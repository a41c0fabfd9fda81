"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...db import supabase as database

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database connection and the tables route planning depends on."""
    supabase = database.get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set ROUTES_SUPABASE_URL and ROUTES_SUPABASE_KEY environment variables.",
        }

    tables: dict[str, bool] = {}
    errors: dict[str, str] = {}
    for table, column in (
        ("clients", "id"),
        ("stops", "id"),
        ("drivers", "id"),
        ("driver_route_order", "driver_id"),
        ("route_runs", "id"),
    ):
        try:
            supabase.table(table).select(column).limit(1).execute()
            tables[table] = True
        except Exception as exc:
            tables[table] = False
            errors[table] = str(exc)

    connected = any(tables.values())
    if not connected:
        message = "Database connection error: " + next(iter(errors.values()), "unknown error")
    elif errors:
        message = "Database connected but some tables may not exist."
    else:
        message = "Database connected."
    return {"configured": True, "connected": connected, "tables": tables, "errors": errors, "message": message}
