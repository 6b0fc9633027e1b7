"""
QuotaService - Facade for tier gating and usage metering.

This service wires the focused quota components together and is the one
object the HTTP layer talks to:
- TierCatalogCache: Tier definitions
- EntitlementResolver: Tier + interval -> limits
- UsageLedger: Upload counters
- QuotaGate / FreeTrialGate: Allow or deny billable actions
- BillingSyncService: Billing provider sync
- ReportService: Gated document processing
"""

import logging
from typing import Any, Dict, List, Optional

from compliance_quota.constants import DEFAULT_REPORT_TYPE
from .billing_sync import BillingProvider, BillingSyncService, StripeBillingProvider
from .config import QuotaConfig, get_quota_config
from .entitlement_resolver import EntitlementResolver
from .quota_gate import QuotaGate
from .report_service import HttpReportWorker, ReportService, ReportWorker
from .schemas import (
    EntitlementSummary,
    GateDecision,
    ProcessingResult,
    SyncResult,
    TierDefinition,
    TrialState,
)
from .store import UsageStore, get_usage_store
from .tier_catalog import TierCatalogCache
from .trial_gate import FreeTrialGate
from .usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class QuotaService:
    """Facade over the quota components for one store and config."""

    def __init__(
        self,
        store: UsageStore,
        config: Optional[QuotaConfig] = None,
        billing_provider: Optional[BillingProvider] = None,
        worker: Optional[ReportWorker] = None,
    ):
        self.config = config or get_quota_config()
        self.store = store

        self.catalog_cache = TierCatalogCache(store, self.config.tier_cache_ttl_seconds)
        self.resolver = EntitlementResolver(store, self.catalog_cache)
        self.ledger = UsageLedger(store, self.resolver)
        self.trial_gate = FreeTrialGate(store)
        self.gate = QuotaGate(
            resolver=self.resolver,
            ledger=self.ledger,
            trial_gate=self.trial_gate,
            catalog_cache=self.catalog_cache,
            trial_file_size_limit_mb=self.config.trial_file_size_limit_mb,
            approaching_limit_percentage=self.config.approaching_limit_percentage,
        )

        if billing_provider is None:
            billing_provider = StripeBillingProvider(
                catalog_cache=self.catalog_cache,
                api_key=self.config.stripe_secret_key,
                api_version=self.config.stripe_api_version,
            )
        self.billing_sync = BillingSyncService(
            store, billing_provider, self.resolver, self.ledger
        )

        if worker is None:
            worker = HttpReportWorker(
                url=self.config.worker_url,
                timeout_seconds=self.config.worker_timeout_seconds,
            )
        self.reports = ReportService(
            gate=self.gate,
            trial_gate=self.trial_gate,
            worker=worker,
            timeout_seconds=self.config.worker_timeout_seconds,
        )

    async def get_entitlement(self, user_id: str, email: Optional[str] = None) -> EntitlementSummary:
        """
        Current tier, remaining quota, size limit and trial availability.

        Reconciles a stale usage record on read, so a tier change shows up
        immediately.

        Raises:
            ConfigurationError: If the stored tier is not in the catalog
            UpstreamUnavailableError: If the store cannot be read
        """
        entitlement = await self.resolver.resolve(user_id)
        trial = await self.trial_gate.get_state(user_id, email)

        if entitlement is None:
            return EntitlementSummary(
                user_id=user_id,
                subscribed=False,
                file_size_limit_mb=self.config.trial_file_size_limit_mb,
                trial_available=not trial.trial_used,
            )

        record = await self.ledger.get_usage(user_id)
        if (
            record.baseline_tier != entitlement.tier_name
            or record.effective_upload_limit != entitlement.effective_upload_limit
        ):
            record = await self.ledger.reconcile_on_entitlement_change(
                user_id, entitlement.tier_name, entitlement
            )

        return EntitlementSummary(
            user_id=user_id,
            subscribed=True,
            tier_name=entitlement.tier_name,
            display_name=entitlement.display_name,
            billing_interval=entitlement.billing_interval,
            period_end=entitlement.period_end,
            file_size_limit_mb=entitlement.file_size_limit_mb,
            upload_limit=record.effective_upload_limit,
            uploads_used=record.uploads_used,
            remaining=record.remaining,
            percentage_used=record.percentage_used,
            trial_available=not trial.trial_used,
        )

    async def reserve_upload(self, user_id: str, file_size_mb: float) -> GateDecision:
        return await self.gate.check_and_reserve(user_id, file_size_mb)

    async def confirm_trial_use(self, user_id: str) -> TrialState:
        return await self.trial_gate.confirm_trial_use(user_id)

    async def sync_subscription(self, user_id: str, email: Optional[str] = None) -> SyncResult:
        return await self.billing_sync.sync(user_id, email)

    async def process_document(
        self,
        user_id: str,
        document: str,
        filename: str,
        report_type: str = DEFAULT_REPORT_TYPE,
        compliance_data: Optional[Dict[str, Any]] = None,
    ) -> ProcessingResult:
        return await self.reports.process_document(
            user_id=user_id,
            document=document,
            filename=filename,
            report_type=report_type,
            compliance_data=compliance_data,
        )

    async def list_tiers(self) -> List[TierDefinition]:
        catalog = await self.catalog_cache.get()
        return catalog.tiers()

    async def health_check(self) -> bool:
        return await self.store.health_check()


# Global service instance (singleton)
_service: Optional[QuotaService] = None


def get_quota_service() -> QuotaService:
    """Get or create the quota service singleton."""
    global _service
    if _service is None:
        _service = QuotaService(store=get_usage_store())
        logger.info("Quota service initialized")
    return _service


def reset_quota_service() -> None:
    """Reset the service singleton (for testing)."""
    global _service
    _service = None


__all__ = [
    "QuotaService",
    "get_quota_service",
    "reset_quota_service",
]
