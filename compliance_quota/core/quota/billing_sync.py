"""
Billing sync - pulls subscription truth from the billing provider.

Single responsibility: store the provider's view of a user and reconcile
the usage ledger against it. This is the only writer of SubscriptionState.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import stripe

from compliance_quota.utils.async_utils import run_sync_in_executor
from .entitlement_resolver import EntitlementResolver
from .exceptions import ConfigurationError, TierNotFoundError, UpstreamUnavailableError
from .schemas import BillingInterval, BillingSnapshot, SubscriptionState, SyncResult
from .store import UsageStore
from .tier_catalog import TierCatalog, TierCatalogCache
from .usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

BILLING_SERVICE_NAME = "billing_provider"


class BillingProvider(ABC):
    """Source of truth for a user's paid subscription."""

    @abstractmethod
    async def fetch(self, user_id: str, email: Optional[str]) -> BillingSnapshot:
        """
        Fetch the current subscription snapshot.

        Raises:
            UpstreamUnavailableError: If the provider cannot be reached
        """
        pass


def _field(obj: Any, key: str) -> Any:
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


class StripeBillingProvider(BillingProvider):
    """
    Stripe-backed provider.

    Finds the customer by email, takes the first active subscription and
    maps its price id to a tier through the catalog. Price amounts are
    never used to guess a tier.
    """

    def __init__(
        self,
        catalog_cache: TierCatalogCache,
        api_key: Optional[str],
        api_version: Optional[str] = None,
    ):
        self._catalog_cache = catalog_cache
        self._api_key = api_key
        self._api_version = api_version

    async def fetch(self, user_id: str, email: Optional[str]) -> BillingSnapshot:
        if not self._api_key:
            raise ConfigurationError("Stripe secret key is not configured")
        if not email:
            logger.info(f"No email for user {user_id}, treating as unsubscribed")
            return BillingSnapshot(subscribed=False)

        catalog = await self._catalog_cache.get()
        try:
            return await run_sync_in_executor(self._fetch_sync, user_id, email, catalog)
        except stripe.StripeError as e:
            logger.error(f"Stripe lookup failed for user {user_id}: {e}")
            raise UpstreamUnavailableError(BILLING_SERVICE_NAME, str(e)) from e

    def _fetch_sync(self, user_id: str, email: str, catalog: TierCatalog) -> BillingSnapshot:
        request_options = {"api_key": self._api_key}
        if self._api_version:
            request_options["stripe_version"] = self._api_version

        customers = stripe.Customer.list(email=email, limit=1, **request_options)
        if not customers.data:
            logger.info(f"No Stripe customer for user {user_id}")
            return BillingSnapshot(subscribed=False)

        customer_id = customers.data[0].id
        subscriptions = stripe.Subscription.list(
            customer=customer_id, status="active", limit=1, **request_options
        )
        if not subscriptions.data:
            logger.info(f"No active subscription for user {user_id} ({customer_id})")
            return BillingSnapshot(subscribed=False, customer_id=customer_id)

        subscription = subscriptions.data[0]
        items = _field(_field(subscription, "items"), "data") or []
        if not items:
            logger.error(
                f"Stripe subscription {_field(subscription, 'id')} for user {user_id} has no items"
            )
            return BillingSnapshot(
                subscribed=True,
                tier_name=None,
                period_end=self._period_end(subscription, None),
                customer_id=customer_id,
            )

        item = items[0]
        price = item["price"]
        price_id = price["id"]
        period_end = self._period_end(subscription, item)

        try:
            tier, interval = catalog.tier_for_price(price_id)
        except TierNotFoundError:
            logger.error(
                f"Stripe price {price_id} for user {user_id} is not mapped to any tier"
            )
            return BillingSnapshot(
                subscribed=True,
                tier_name=None,
                billing_interval=self._interval_from_price(price),
                period_end=period_end,
                customer_id=customer_id,
            )

        recurring_interval = self._interval_from_price(price)
        if recurring_interval is not None and recurring_interval != interval:
            logger.warning(
                f"Stripe price {price_id} recurs {recurring_interval.value} "
                f"but is mapped as {interval.value}, using Stripe's interval"
            )
            interval = recurring_interval

        logger.info(
            f"Stripe subscription for user {user_id}: tier={tier.tier_name}, "
            f"interval={interval.value}"
        )
        return BillingSnapshot(
            subscribed=True,
            tier_name=tier.tier_name,
            billing_interval=interval,
            period_end=period_end,
            customer_id=customer_id,
        )

    @staticmethod
    def _period_end(subscription: Any, item: Any) -> Optional[datetime]:
        period_end_ts = _field(subscription, "current_period_end") or _field(
            item, "current_period_end"
        )
        if not period_end_ts:
            return None
        return datetime.fromtimestamp(period_end_ts, tz=timezone.utc)

    @staticmethod
    def _interval_from_price(price: Any) -> Optional[BillingInterval]:
        recurring = _field(price, "recurring")
        if not recurring:
            return None
        interval = _field(recurring, "interval")
        if interval == "year":
            return BillingInterval.yearly
        if interval == "month":
            return BillingInterval.monthly
        return None


class BillingSyncService:
    """Stores provider snapshots and reconciles usage against them."""

    def __init__(
        self,
        store: UsageStore,
        provider: BillingProvider,
        resolver: EntitlementResolver,
        ledger: UsageLedger,
    ):
        self._store = store
        self._provider = provider
        self._resolver = resolver
        self._ledger = ledger

    async def sync(self, user_id: str, email: Optional[str] = None) -> SyncResult:
        """
        Synchronize one user with the billing provider.

        The new state is stored before the entitlement is resolved, so an
        unmapped tier is persisted and every later gate check fails closed.

        Raises:
            ConfigurationError: If the synced tier is not in the catalog
            UpstreamUnavailableError: If the provider or store is unreachable
        """
        previous = await self._store.get_subscription(user_id)
        previous_tier = previous.tier_name if previous and previous.subscribed else None
        if email is None and previous is not None:
            email = previous.email

        snapshot = await self._provider.fetch(user_id, email)

        state = await self._store.save_subscription(
            SubscriptionState(
                user_id=user_id,
                email=email,
                customer_id=snapshot.customer_id,
                subscribed=snapshot.subscribed,
                tier_name=snapshot.tier_name if snapshot.subscribed else None,
                billing_interval=snapshot.billing_interval if snapshot.subscribed else None,
                period_end=snapshot.period_end,
            )
        )

        entitlement = await self._resolver.resolve_state(state)
        new_tier = entitlement.tier_name if entitlement else None
        usage = await self._ledger.reconcile_on_entitlement_change(
            user_id, new_tier, entitlement
        )

        tier_changed = previous_tier != new_tier
        logger.info(
            f"Synced subscription for user {user_id}: "
            f"{previous_tier or 'none'} -> {new_tier or 'none'}"
            f"{' (tier changed)' if tier_changed else ''}"
        )

        return SyncResult(
            state=state,
            usage=usage,
            previous_tier=previous_tier,
            tier_changed=tier_changed,
        )
