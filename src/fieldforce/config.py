"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FIELDFORCE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Field Force Tracker"
    log_level: str = Field(default="INFO", description="Root logging level.")
    backend: Literal["remote", "memory"] = Field(
        default="remote",
        description="'remote' uses Supabase (admin) and the REST API (field agent); 'memory' keeps everything in process.",
    )

    # Supabase configuration (admin console transport)
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase anon or service role key.",
    )
    realtime_enabled: bool = Field(
        default=True,
        description="Subscribe to the Supabase change feed; when off the admin console only polls.",
    )

    # REST configuration (field agent console transport)
    api_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the field agent REST API (e.g., http://localhost:8000).",
    )
    http_timeout_seconds: float = Field(default=10.0, gt=0.0)

    # Synchronization
    poll_interval_seconds: float = Field(default=5.0, gt=0.0)
    discard_stale_responses: bool = Field(
        default=True,
        description="Drop fetch results that were issued before the currently applied one.",
    )
    unknown_salesperson_label: str = Field(default="Unknown", min_length=1)

    # Map view
    map_default_center: tuple[float, float] = Field(default=(12.1364, -86.2514))
    map_default_zoom: int = Field(default=8, ge=0)
    map_fit_padding_px: int = Field(default=50, ge=0)
    map_max_zoom: int = Field(default=14, ge=0)
    map_width_px: int = Field(default=1024, ge=1)
    map_height_px: int = Field(default=768, ge=1)

    # Geolocation
    geolocation_high_accuracy: bool = True
    geolocation_timeout_seconds: float = Field(default=10.0, gt=0.0)
    geolocation_maximum_age_seconds: float = Field(default=0.0, ge=0.0)

    @field_validator("map_default_center", mode="before")
    @classmethod
    def _parse_float_pair_from_env(cls, value: Any) -> tuple[float, float]:
        """Parse a coordinate pair from environment variable (comma-separated or JSON array)."""
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                parsed = [item.strip() for item in value.split(",") if item.strip()]
            value = parsed
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        raise ValueError("map_default_center must be a 'latitude,longitude' pair")

    @field_validator("supabase_url", "supabase_key", "api_base_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def require_supabase(self) -> tuple[str, str]:
        """Return the Supabase URL and key, failing fast when either is missing."""
        if not self.supabase_url or not self.supabase_key:
            raise ConfigurationError(
                "Missing Supabase configuration. Set FIELDFORCE_SUPABASE_URL and FIELDFORCE_SUPABASE_KEY."
            )
        return self.supabase_url, self.supabase_key

    def require_api_base_url(self) -> str:
        if not self.api_base_url:
            raise ConfigurationError("Missing REST API configuration. Set FIELDFORCE_API_BASE_URL.")
        return self.api_base_url.rstrip("/")


settings = Settings()
