"""
Application configuration using Pydantic settings.
"""
from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Store Configuration
    store_backend: Literal["supabase", "memory"] = Field(
        default="supabase",
        description="Persistence gateway implementation to use"
    )
    store_url: str = Field(
        default="https://project.supabase.co",
        description="Base URL of the Supabase project (PostgREST lives under /rest/v1)"
    )
    store_api_key: str = Field(
        default="",
        description="Supabase API key used for both apikey and bearer headers"
    )
    store_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single store request"
    )

    # Table Names
    phase_table: str = Field(
        default="PhaseData",
        description="Table holding Phase rows"
    )
    block_table: str = Field(
        default="BlockData",
        description="Table holding Block rows"
    )
    task_table: str = Field(
        default="TaskData",
        description="Table holding Task rows"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of attempts for a single store call"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Hierarchy Behaviour
    allow_natural_key_rename: bool = Field(
        default=True,
        description="Allow Phase/Block natural key renames (children are repointed)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Field Hierarchy Service",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
