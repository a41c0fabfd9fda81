"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTES_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Delivery Route Planning API"
    api_prefix: str = "/api"
    app_timezone: str = Field(
        default="America/New_York",
        description="Timezone used for every delivery-date to weekday conversion.",
    )
    eligibility_mode: Literal["orders", "schedule"] = Field(
        default="orders",
        description=(
            "How stop eligibility is derived. 'orders': only active orders count. "
            "'schedule': the weekly schedule also counts (no schedule row means every day)."
        ),
    )
    default_driver_count: int = Field(default=6, ge=1)
    driver_palette: tuple[str, ...] = Field(
        default=(
            "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
            "#8c564b", "#e377c2", "#17becf", "#bcbd22", "#393b79",
            "#ad494a", "#637939", "#ce6dbd", "#8c6d31", "#7f7f7f",
        ),
        description="Colors handed out to drivers by sequence number.",
    )
    query_batch_size: int = Field(default=80, ge=1, description="Max ids per IN (...) filter.")
    write_batch_size: int = Field(default=500, ge=1, description="Max rows per insert request.")
    max_parallel_queries: int = Field(default=6, ge=1)
    route_runs_limit: int = Field(default=10, ge=1)
    stop_page_size: int = Field(default=1000, ge=1, description="Rows per page when scanning the stops table.")
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("frontend_allowed_origins", "driver_palette", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            # Single value
            if value.strip():
                return (value.strip(),)
        # Return empty tuple if value is None or empty
        return tuple()


settings = Settings()
