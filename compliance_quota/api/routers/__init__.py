"""API routers package."""

from .health import router as health_router
from .tiers import router as tiers_router
from .quota import router as quota_router
from .subscription import router as subscription_router
from .documents import router as documents_router

__all__ = [
    "health_router",
    "tiers_router",
    "quota_router",
    "subscription_router",
    "documents_router",
]
