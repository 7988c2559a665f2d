"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_path: str = Field(default="./data/orders.duckdb", description="DuckDB file path")
    db_threads: int = Field(default=4, ge=1, description="DuckDB thread count")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
        validate_default=True,
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Dashboard engine
    timezone: str = Field(
        default="UTC", description="IANA timezone that defines the business day"
    )
    delay_threshold_minutes: int = Field(
        default=15, ge=0, description="Minutes before a pending/preparing order is delayed"
    )
    high_discount_threshold: float = Field(
        default=15.0, ge=0.0, le=100.0, description="Discount % that requires review"
    )
    activity_limit: int = Field(
        default=50, ge=1, le=1000, description="Orders included in the activity feed"
    )
    popular_items_limit: int = Field(
        default=5, ge=1, le=50, description="Popular items returned per snapshot"
    )
    popular_items_window_days: Optional[int] = Field(
        default=None, ge=1, description="Trailing window for popular items (unset = all time)"
    )
    completed_order_buckets: str = Field(
        default="ready",
        description="Canonical buckets counted as completed orders (comma-separated)",
    )
    fetch_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Deadline for a single repository fetch"
    )
    fetch_max_workers: int = Field(
        default=3, ge=1, le=16, description="Concurrent repository fetches per pass"
    )
    status_synonyms_path: Optional[str] = Field(
        default=None, description="JSON file with extra status synonyms per bucket"
    )

    # Feature Flags
    enable_realtime: bool = Field(default=True, description="Enable live dashboard updates")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    debug: bool = Field(default=False, description="Debug mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("completed_order_buckets")
    @classmethod
    def validate_completed_buckets(cls, v: str) -> str:
        """Ensure every configured bucket is a known canonical status."""
        from orderwatch.models.enums import CanonicalStatus

        known = {status.value for status in CanonicalStatus}
        names = [name.strip().lower() for name in v.split(",") if name.strip()]
        if not names:
            raise ValueError("At least one completed-order bucket is required")
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ValueError(f"Unknown canonical statuses: {', '.join(unknown)}")
        return ",".join(names)

    @property
    def completed_buckets(self) -> List[str]:
        """Completed-order buckets as a list of canonical status values."""
        return self.completed_order_buckets.split(",")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
