"""
Quota gate: the decision point before any billable action.

Every entry point that consumes a report (direct upload reservation,
document processing) goes through ``QuotaGate.check_and_reserve``. Only a
successful commit mutates state; every deny path leaves usage untouched.
"""

import logging
from typing import Optional

from compliance_quota.constants import (
    DEFAULT_APPROACHING_LIMIT_PERCENTAGE,
    DEFAULT_TRIAL_FILE_SIZE_LIMIT_MB,
)
from .entitlement_resolver import EntitlementResolver
from .exceptions import (
    ConfigurationError,
    FileTooLargeError,
    QuotaExceededException,
    QuotaServiceError,
    TrialAlreadyUsedError,
    UpstreamUnavailableError,
)
from .schemas import DenyReason, Entitlement, GateDecision
from .tier_catalog import TierCatalogCache
from .trial_gate import FreeTrialGate
from .usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

TRIAL_LABEL = "Free Trial"


class QuotaGate:
    """
    Checks file size and upload quota, reserving one unit on success.

    Configuration and upstream failures deny the request (fail closed)
    instead of propagating.
    """

    def __init__(
        self,
        resolver: EntitlementResolver,
        ledger: UsageLedger,
        trial_gate: FreeTrialGate,
        catalog_cache: TierCatalogCache,
        trial_file_size_limit_mb: float = DEFAULT_TRIAL_FILE_SIZE_LIMIT_MB,
        approaching_limit_percentage: int = DEFAULT_APPROACHING_LIMIT_PERCENTAGE,
    ):
        self._resolver = resolver
        self._ledger = ledger
        self._trial_gate = trial_gate
        self._catalog_cache = catalog_cache
        self.trial_file_size_limit_mb = trial_file_size_limit_mb
        self.approaching_limit_percentage = approaching_limit_percentage

    async def check_and_reserve(self, user_id: str, file_size_mb: float) -> GateDecision:
        """
        Decide whether the user may submit a file of the given size.

        Subscribed users consume one upload unit when allowed. Unsubscribed
        users are routed to the free trial, which is only checked here and
        confirmed after processing succeeds.

        Args:
            user_id: User ID
            file_size_mb: Size of the submitted file in MB

        Returns:
            GateDecision; denies carry a reason and the HTTP status to use
        """
        try:
            entitlement = await self._resolver.resolve(user_id)
            if entitlement is None:
                return await self._check_trial(user_id, file_size_mb)
            return await self._reserve(user_id, file_size_mb, entitlement)
        except QuotaServiceError as e:
            return self._deny(user_id, e)

    async def _upgrade_tier(self, tier_name: Optional[str]) -> Optional[str]:
        catalog = await self._catalog_cache.get()
        upgrade = catalog.next_tier(tier_name)
        return upgrade.tier_name if upgrade else None

    async def _check_trial(self, user_id: str, file_size_mb: float) -> GateDecision:
        upgrade_tier = await self._upgrade_tier(None)

        try:
            await self._trial_gate.check(user_id)
        except TrialAlreadyUsedError as e:
            return self._deny(user_id, e, upgrade_tier=upgrade_tier)

        if file_size_mb > self.trial_file_size_limit_mb:
            raise FileTooLargeError(
                file_size_mb=file_size_mb,
                limit_mb=self.trial_file_size_limit_mb,
                tier_label=TRIAL_LABEL,
                upgrade_tier=upgrade_tier,
            )

        logger.info(f"Free trial available for user {user_id}")
        return GateDecision(
            allowed=True,
            trial=True,
            message="Free trial available. Your first report is on us.",
            file_size_limit_mb=self.trial_file_size_limit_mb,
        )

    async def _reserve(
        self, user_id: str, file_size_mb: float, entitlement: Entitlement
    ) -> GateDecision:
        upgrade_tier = await self._upgrade_tier(entitlement.tier_name)

        if file_size_mb > entitlement.file_size_limit_mb:
            raise FileTooLargeError(
                file_size_mb=file_size_mb,
                limit_mb=entitlement.file_size_limit_mb,
                tier_label=entitlement.display_name,
                upgrade_tier=upgrade_tier,
            )

        record = await self._ledger.get_usage(user_id)
        if (
            record.baseline_tier != entitlement.tier_name
            or record.effective_upload_limit != entitlement.effective_upload_limit
        ):
            await self._ledger.reconcile_on_entitlement_change(
                user_id, entitlement.tier_name, entitlement
            )

        try:
            record = await self._ledger.commit(user_id)
        except QuotaExceededException as e:
            raise QuotaExceededException(
                uploads_used=e.uploads_used,
                upload_limit=e.upload_limit,
                tier_label=entitlement.display_name,
                upgrade_tier=upgrade_tier,
            ) from e

        if record.percentage_used >= self.approaching_limit_percentage:
            logger.warning(
                f"User {user_id} approaching upload limit: "
                f"{record.percentage_used:.1f}% used "
                f"({record.uploads_used:,}/{record.effective_upload_limit:,})"
            )

        return GateDecision(
            allowed=True,
            tier_name=entitlement.tier_name,
            uploads_used=record.uploads_used,
            upload_limit=record.effective_upload_limit,
            remaining=record.remaining,
            file_size_limit_mb=entitlement.file_size_limit_mb,
        )

    def _deny(
        self,
        user_id: str,
        error: QuotaServiceError,
        upgrade_tier: Optional[str] = None,
    ) -> GateDecision:
        reason = error.reason
        if isinstance(error, TrialAlreadyUsedError):
            reason = DenyReason.NOT_SUBSCRIBED_AND_TRIAL_USED

        if isinstance(error, (ConfigurationError, UpstreamUnavailableError)):
            logger.error(f"Quota gate failed closed for user {user_id}: {error.message}")
        else:
            logger.info(f"Upload denied for user {user_id}: {reason.value}")

        uploads_used = getattr(error, "uploads_used", None)
        upload_limit = getattr(error, "upload_limit", None)
        remaining = None
        if uploads_used is not None and upload_limit is not None:
            remaining = max(0, upload_limit - uploads_used)

        return GateDecision(
            allowed=False,
            reason=reason,
            message=error.public_message,
            uploads_used=uploads_used,
            upload_limit=upload_limit,
            remaining=remaining,
            file_size_limit_mb=getattr(error, "limit_mb", None),
            upgrade_tier=upgrade_tier or getattr(error, "upgrade_tier", None),
            status_code=error.status_code,
        )
