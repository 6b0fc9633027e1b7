"""
EntitlementResolver - the one place that turns subscription state into limits.

Single responsibility: tier name + billing interval -> effective entitlement.
"""

import logging
from typing import Optional

from compliance_quota.constants import YEARLY_UPLOAD_MULTIPLIER
from .schemas import BillingInterval, Entitlement, SubscriptionState, TierDefinition
from .store import UsageStore
from .tier_catalog import TierCatalogCache

logger = logging.getLogger(__name__)


def effective_upload_limit(tier: TierDefinition, interval: BillingInterval) -> int:
    """Monthly limit, or twelve months of it for yearly billing."""
    if interval == BillingInterval.yearly:
        return tier.monthly_upload_limit * YEARLY_UPLOAD_MULTIPLIER
    return tier.monthly_upload_limit


class EntitlementResolver:
    """
    Resolves a user's current entitlement.

    Returns None for users without an active subscription. A subscribed
    user whose tier is missing or unknown raises ``TierNotFoundError``;
    the resolver never substitutes a default tier.
    """

    def __init__(self, store: UsageStore, catalog_cache: TierCatalogCache):
        self._store = store
        self._catalog_cache = catalog_cache

    async def resolve(self, user_id: str) -> Optional[Entitlement]:
        """
        Resolve the entitlement from the last synchronized subscription.

        Args:
            user_id: User ID

        Returns:
            Entitlement, or None if the user is not subscribed

        Raises:
            TierNotFoundError: If the stored tier is not in the catalog
            UpstreamUnavailableError: If the store cannot be read
        """
        state = await self._store.get_subscription(user_id)
        return await self.resolve_state(state)

    async def resolve_state(self, state: Optional[SubscriptionState]) -> Optional[Entitlement]:
        """Resolve an already loaded subscription state."""
        if state is None or not state.subscribed:
            return None

        catalog = await self._catalog_cache.get()
        tier = catalog.lookup(state.tier_name)

        interval = state.billing_interval
        if interval is None:
            logger.debug(
                f"No billing interval recorded for user {state.user_id}, assuming monthly"
            )
            interval = BillingInterval.monthly

        return Entitlement(
            tier_name=tier.tier_name,
            display_name=tier.label,
            file_size_limit_mb=tier.file_size_limit_mb,
            monthly_upload_limit=tier.monthly_upload_limit,
            effective_upload_limit=effective_upload_limit(tier, interval),
            billing_interval=interval,
            period_end=state.period_end,
        )
