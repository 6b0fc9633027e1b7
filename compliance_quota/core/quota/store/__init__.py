"""Usage store backends and factory."""

import logging
from typing import Optional

from .base import UsageStore
from .memory import InMemoryUsageStore

logger = logging.getLogger(__name__)

# Global store instance (singleton)
_store: Optional[UsageStore] = None


def get_usage_store() -> UsageStore:
    """
    Get or create the usage store singleton.

    Falls back to the in-memory backend when the database is disabled.

    Returns:
        UsageStore: Configured store backend
    """
    global _store

    if _store is None:
        from compliance_quota.db.connection import db
        from ..config import get_quota_config

        backend = get_quota_config().storage_backend
        if backend == "sql" and not db.config.enabled:
            logger.warning(
                "DATABASE_ENABLED=false - falling back to in-memory usage store"
            )
            backend = "memory"

        if backend == "sql":
            from .sql import SqlUsageStore

            _store = SqlUsageStore()
        else:
            _store = InMemoryUsageStore()
        logger.info(f"Usage store initialized: backend={backend}")

    return _store


def reset_usage_store() -> None:
    """Reset the store singleton (for testing)."""
    global _store
    _store = None


__all__ = [
    "UsageStore",
    "InMemoryUsageStore",
    "get_usage_store",
    "reset_usage_store",
]
