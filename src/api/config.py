"""
Configuration settings for FastAPI application.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator


DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:3001", "http://127.0.0.1:3000"]


class FastAPISettings(BaseSettings):
    """FastAPI application settings with environment variable loading."""

    # Application settings
    app_name: str = Field(default="Guesty Housekeeping Sync API", description="Application name")
    app_description: str = Field(
        default="Guesty reservation sync, housekeeping task scheduling and sync monitoring",
        description="Application description",
    )
    app_version: str = Field(default="1.0.0", description="Application version")

    # Server settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8001, description="Server port")
    environment: str = Field(default="development", description="Environment (development, staging, production)")

    # API settings
    api_version: str = Field(default="v1", description="API version")
    api_prefix: str = Field(default="/api", description="API prefix")

    cors_origins: Optional[list[str]] = Field(
        default=None,
        description="Allowed CORS origins",
        validation_alias="CORS_ORIGINS"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Storage
    dry_run: bool = Field(default=False, description="Use the in-memory store instead of Supabase")

    # Health monitor
    health_monitor_enabled: bool = Field(default=True, description="Run health probes in the background")
    health_store_interval_seconds: float = Field(default=60.0, gt=0, description="Data store probe interval")
    health_auth_interval_seconds: float = Field(default=300.0, gt=0, description="Guesty token probe interval")
    health_rate_limit_interval_seconds: float = Field(default=60.0, gt=0, description="Rate limit probe interval")

    model_config = {"extra": "ignore"}  # Allow extra fields from existing .env

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from environment variable or return default."""
        if v is None or v == "":
            return list(DEFAULT_CORS_ORIGINS)
        if isinstance(v, str):
            origins = [origin.strip() for origin in v.split(',') if origin.strip()]
            return origins if origins else list(DEFAULT_CORS_ORIGINS)
        return v


# Global settings instance
settings = FastAPISettings()
