"""
PostgreSQL database package for the compliance quota service.

Provides:
- SQLAlchemy 2.0 models for tiers, subscribers, usage and profiles
- Async connection management
- Retry helpers for transient database errors
"""

from .connection import DatabaseManager, db
from .models import (
    Base,
    SubscriptionTierModel,
    SubscriberModel,
    UsageRecordModel,
    ProfileModel,
)
from .utils import with_db_retry

__all__ = [
    # Connection management
    "DatabaseManager",
    "db",
    # Models
    "Base",
    "SubscriptionTierModel",
    "SubscriberModel",
    "UsageRecordModel",
    "ProfileModel",
    # Utilities
    "with_db_retry",
]
