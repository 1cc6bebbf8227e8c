"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SHIPTRACK_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Shipment Trajectory Tracker API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")

    amap_key: Optional[str] = Field(
        default=None,
        description="AMap web service key. Routing falls back to straight lines when unset.",
    )
    amap_base_url: str = Field(default="https://restapi.amap.com/v3")
    amap_timeout_seconds: float = Field(default=10.0, gt=0.0)

    route_request_interval_ms: int = Field(
        default=500,
        ge=0,
        description="Delay between consecutive routing provider calls.",
    )
    route_max_retries: int = Field(default=3, ge=0)
    route_retry_backoff_seconds: float = Field(default=0.0, ge=0.0)
    max_route_points: int = Field(default=200, ge=2)
    fallback_steps: int = Field(default=20, ge=2)
    fallback_speed_kmh: float = Field(default=60.0, gt=0.0)

    # Validity envelope (continental China) as (min_lng, min_lat, max_lng, max_lat)
    envelope_bounds: tuple[float, ...] = Field(default=(73.0, 18.0, 135.0, 54.0))

    cluster_radius_km: float = Field(default=100.0, gt=0.0)
    variance_factor_min: float = Field(default=0.85, gt=0.0)
    variance_factor_max: float = Field(default=1.2, gt=0.0)
    default_logistics: str = Field(default="SF Express")

    speed_factor: float = Field(
        default=900.0,
        gt=0.0,
        description="Simulated delivery seconds that elapse per wall-clock second.",
    )
    min_step_seconds: float = Field(default=0.1, gt=0.0)
    completion_retry_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Wall-clock delay before retrying a failed delivery write.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
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

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("envelope_bounds", mode="before")
    @classmethod
    def _parse_float_tuple_from_env(cls, value: Any) -> tuple[float, ...]:
        """Parse the envelope as four floats (comma-separated or JSON array)."""
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                parsed = [item.strip() for item in value.split(",") if item.strip()]
            value = parsed
        bounds = tuple(float(item) for item in value)
        if len(bounds) != 4:
            raise ValueError("envelope_bounds requires min_lng,min_lat,max_lng,max_lat")
        min_lng, min_lat, max_lng, max_lat = bounds
        if min_lng >= max_lng or min_lat >= max_lat:
            raise ValueError("envelope_bounds minimums must be below maximums")
        return bounds


settings = Settings()
