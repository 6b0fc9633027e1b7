"""
UsageLedger - per-user upload counters.

Only this module writes ``uploads_used``. Counters reset when the resolved
tier differs from the tier recorded at the last reset; renewing the same
plan keeps the count.
"""

import logging
from typing import Optional

from .entitlement_resolver import EntitlementResolver
from .exceptions import QuotaExceededException
from .schemas import Entitlement, UsageRecord, normalize_tier_name
from .store import UsageStore

logger = logging.getLogger(__name__)


class UsageLedger:
    """Reads, reconciles and commits upload usage."""

    def __init__(self, store: UsageStore, resolver: EntitlementResolver):
        self._store = store
        self._resolver = resolver

    async def get_usage(self, user_id: str) -> UsageRecord:
        """Get the usage record, creating a zeroed one on first reference."""
        return await self._store.get_usage(user_id)

    async def reconcile_on_entitlement_change(
        self,
        user_id: str,
        new_tier_name: Optional[str],
        entitlement: Optional[Entitlement] = None,
    ) -> UsageRecord:
        """
        Bring the usage record in line with the user's current entitlement.

        Resets ``uploads_used`` when the tier differs from the recorded
        baseline. The effective limit is always recomputed. A ``None`` tier
        means the user is unsubscribed and the limit becomes 0.

        Concurrent callers are safe: the reset is a compare-and-set on the
        baseline read here, so only one of them zeroes the counter and a
        late one never erases units committed after the reset. Before a
        reset the entitlement is resolved again, after the record was read,
        so a request holding an entitlement from before a billing sync
        cannot move the baseline back to the old tier.

        Args:
            user_id: User ID
            new_tier_name: Tier the user is now on, or None
            entitlement: Already resolved entitlement, if the caller has it

        Returns:
            The reconciled usage record
        """
        new_tier = normalize_tier_name(new_tier_name)
        record = await self._store.get_usage(user_id)

        if record.baseline_tier != new_tier or (new_tier is not None and entitlement is None):
            entitlement = await self._resolver.resolve(user_id)
            current_tier = entitlement.tier_name if entitlement else None
            if current_tier != new_tier:
                logger.warning(
                    f"Entitlement for user {user_id} moved to {current_tier} "
                    f"while reconciling {new_tier}, using {current_tier}"
                )
                new_tier = current_tier

        limit = entitlement.effective_upload_limit if new_tier is not None else 0

        if record.baseline_tier != new_tier:
            observed = record.baseline_tier
            record = await self._store.reset_usage(
                user_id, new_tier, limit, expected_baseline=observed
            )
            if record.baseline_tier != new_tier:
                logger.warning(
                    f"Usage baseline for user {user_id} changed concurrently to "
                    f"{record.baseline_tier}, not resetting to {new_tier}"
                )
                return record
            logger.info(
                f"Tier changed for user {user_id}: {observed} -> {new_tier}, "
                f"usage now {record.uploads_used}/{record.effective_upload_limit}"
            )

        if record.effective_upload_limit != limit:
            logger.info(
                f"Upload limit changed for user {user_id} on {new_tier}: "
                f"{record.effective_upload_limit} -> {limit}"
            )
            return await self._store.set_effective_limit(user_id, new_tier, limit)

        return record

    async def commit(self, user_id: str) -> UsageRecord:
        """
        Consume one upload unit.

        Raises:
            QuotaExceededException: If no quota is left; nothing is written
        """
        record = await self._store.increment_usage(user_id)
        if record is None:
            current = await self._store.get_usage(user_id)
            raise QuotaExceededException(
                uploads_used=current.uploads_used,
                upload_limit=current.effective_upload_limit,
            )

        logger.debug(
            f"Committed upload for user {user_id}: "
            f"{record.uploads_used}/{record.effective_upload_limit}"
        )
        return record

