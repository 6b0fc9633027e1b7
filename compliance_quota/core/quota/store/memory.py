"""In-process usage store for local runs and tests."""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from compliance_quota.constants import DEFAULT_TIERS
from ..schemas import SubscriptionState, TierDefinition, TrialState, UsageRecord
from .base import UsageStore

logger = logging.getLogger(__name__)


class InMemoryUsageStore(UsageStore):
    """
    Dictionary-backed store guarded by a single asyncio lock.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, tiers: Optional[Iterable[TierDefinition]] = None):
        if tiers is None:
            tiers = [TierDefinition(**tier) for tier in DEFAULT_TIERS]
        self._tiers: Dict[str, TierDefinition] = {t.tier_name: t for t in tiers}
        self._subscriptions: Dict[str, SubscriptionState] = {}
        self._usage: Dict[str, UsageRecord] = {}
        self._trials: Dict[str, TrialState] = {}
        self._lock = asyncio.Lock()

    async def list_tiers(self) -> List[TierDefinition]:
        async with self._lock:
            tiers = sorted(self._tiers.values(), key=lambda t: t.sort_order)
            return [t.model_copy() for t in tiers]

    async def upsert_tier(self, tier: TierDefinition) -> TierDefinition:
        async with self._lock:
            self._tiers[tier.tier_name] = tier.model_copy()
            return tier.model_copy()

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionState]:
        async with self._lock:
            state = self._subscriptions.get(user_id)
            return state.model_copy() if state else None

    async def save_subscription(self, state: SubscriptionState) -> SubscriptionState:
        async with self._lock:
            stored = state.model_copy(update={"updated_at": datetime.utcnow()})
            self._subscriptions[state.user_id] = stored
            return stored.model_copy()

    def _usage_record(self, user_id: str) -> UsageRecord:
        record = self._usage.get(user_id)
        if record is None:
            record = UsageRecord(user_id=user_id, updated_at=datetime.utcnow())
            self._usage[user_id] = record
        return record

    async def get_usage(self, user_id: str) -> UsageRecord:
        async with self._lock:
            return self._usage_record(user_id).model_copy()

    async def reset_usage(
        self,
        user_id: str,
        baseline_tier: Optional[str],
        effective_upload_limit: int,
        expected_baseline: Optional[str] = None,
    ) -> UsageRecord:
        async with self._lock:
            record = self._usage_record(user_id)
            if record.baseline_tier != expected_baseline or record.baseline_tier == baseline_tier:
                return record.model_copy()
            record = UsageRecord(
                user_id=user_id,
                effective_upload_limit=effective_upload_limit,
                uploads_used=0,
                baseline_tier=baseline_tier,
                updated_at=datetime.utcnow(),
            )
            self._usage[user_id] = record
            return record.model_copy()

    async def set_effective_limit(
        self, user_id: str, baseline_tier: Optional[str], effective_upload_limit: int
    ) -> UsageRecord:
        async with self._lock:
            record = self._usage_record(user_id)
            if record.baseline_tier != baseline_tier:
                return record.model_copy()
            record.effective_upload_limit = effective_upload_limit
            record.updated_at = datetime.utcnow()
            return record.model_copy()

    async def increment_usage(self, user_id: str) -> Optional[UsageRecord]:
        async with self._lock:
            record = self._usage_record(user_id)
            if record.uploads_used >= record.effective_upload_limit:
                return None
            record.uploads_used += 1
            record.updated_at = datetime.utcnow()
            return record.model_copy()

    async def get_trial_state(
        self, user_id: str, email: Optional[str] = None
    ) -> TrialState:
        async with self._lock:
            state = self._trials.get(user_id)
            if state is None:
                state = TrialState(user_id=user_id, email=email, updated_at=datetime.utcnow())
                self._trials[user_id] = state
            elif email and not state.email:
                state.email = email
            return state.model_copy()

    async def mark_trial_used(self, user_id: str) -> bool:
        async with self._lock:
            state = self._trials.get(user_id)
            if state is None:
                state = TrialState(user_id=user_id)
                self._trials[user_id] = state
            if state.trial_used:
                return False
            state.trial_used = True
            state.updated_at = datetime.utcnow()
            return True
