"""
Quota service configuration.

All settings are configurable via environment variables with QUOTA_ prefix.
"""

import os
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from compliance_quota.constants import (
    DEFAULT_APPROACHING_LIMIT_PERCENTAGE,
    DEFAULT_TRIAL_FILE_SIZE_LIMIT_MB,
    DEFAULT_WORKER_TIMEOUT_SECONDS,
    TIER_CACHE_TTL_SECONDS,
)
from compliance_quota.utils.env_utils import parse_int_env, parse_float_env

VALID_STORAGE_BACKENDS = ("sql", "memory")


class QuotaConfig(BaseSettings):
    """Configuration for tier gating and usage metering."""

    # Persistence
    storage_backend: str = Field(
        default="sql",
        description="Usage store backend: 'sql' (PostgreSQL) or 'memory'",
    )

    # Gate behaviour
    trial_file_size_limit_mb: float = Field(
        default=DEFAULT_TRIAL_FILE_SIZE_LIMIT_MB,
        description="Maximum file size in MB for free-trial users",
    )
    approaching_limit_percentage: int = Field(
        default=DEFAULT_APPROACHING_LIMIT_PERCENTAGE,
        description="Usage percentage at which a warning is logged",
    )

    # Tier catalog
    tier_cache_ttl_seconds: int = Field(
        default=TIER_CACHE_TTL_SECONDS,
        description="Time-to-live for the cached tier catalog",
    )

    # Document-processing worker
    worker_url: Optional[str] = Field(
        default=None,
        description="Endpoint of the report-generation worker",
    )
    worker_timeout_seconds: int = Field(
        default=DEFAULT_WORKER_TIMEOUT_SECONDS,
        description="Timeout for a single report-generation call",
    )

    # Billing provider
    stripe_secret_key: Optional[str] = Field(
        default=None,
        description="Stripe secret API key for subscription sync",
    )
    stripe_api_version: str = Field(
        default="2023-10-16",
        description="Pinned Stripe API version",
    )

    class Config:
        env_prefix = "QUOTA_"
        case_sensitive = False

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_STORAGE_BACKENDS:
            raise ValueError(
                f"storage_backend must be one of: {', '.join(VALID_STORAGE_BACKENDS)}"
            )
        return v

    @classmethod
    def from_env(cls) -> "QuotaConfig":
        """Create config from environment variables."""
        return cls(
            storage_backend=os.getenv("QUOTA_STORAGE_BACKEND", "sql"),
            trial_file_size_limit_mb=parse_float_env(
                "QUOTA_TRIAL_FILE_SIZE_LIMIT_MB", DEFAULT_TRIAL_FILE_SIZE_LIMIT_MB
            ),
            approaching_limit_percentage=parse_int_env(
                "QUOTA_APPROACHING_LIMIT_PERCENTAGE", DEFAULT_APPROACHING_LIMIT_PERCENTAGE
            ),
            tier_cache_ttl_seconds=parse_int_env(
                "QUOTA_TIER_CACHE_TTL_SECONDS", TIER_CACHE_TTL_SECONDS
            ),
            worker_url=os.getenv("QUOTA_WORKER_URL"),
            worker_timeout_seconds=parse_int_env(
                "QUOTA_WORKER_TIMEOUT_SECONDS", DEFAULT_WORKER_TIMEOUT_SECONDS
            ),
            stripe_secret_key=os.getenv("QUOTA_STRIPE_SECRET_KEY"),
            stripe_api_version=os.getenv("QUOTA_STRIPE_API_VERSION", "2023-10-16"),
        )


# Singleton config instance
_config: Optional[QuotaConfig] = None


def get_quota_config() -> QuotaConfig:
    """Get the quota config singleton."""
    global _config
    if _config is None:
        _config = QuotaConfig.from_env()
    return _config


def reset_quota_config() -> None:
    """Reset the config singleton (for testing)."""
    global _config
    _config = None
