"""Abstract base class for usage store backends."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..schemas import SubscriptionState, TierDefinition, TrialState, UsageRecord


class UsageStore(ABC):
    """
    Persistence interface for tiers, subscriptions, usage and trials.

    Implementations must make ``increment_usage`` and ``mark_trial_used``
    single conditional writes so concurrent callers cannot overshoot.
    Any backend failure is raised as ``UpstreamUnavailableError``.
    """

    @abstractmethod
    async def list_tiers(self) -> List[TierDefinition]:
        """
        List active tier definitions.

        Returns:
            Tier definitions in catalog order
        """
        pass

    @abstractmethod
    async def upsert_tier(self, tier: TierDefinition) -> TierDefinition:
        """Insert or replace a tier definition by name."""
        pass

    @abstractmethod
    async def get_subscription(self, user_id: str) -> Optional[SubscriptionState]:
        """
        Get the last synchronized subscription state.

        Returns:
            SubscriptionState, or None if the user was never synced
        """
        pass

    @abstractmethod
    async def save_subscription(self, state: SubscriptionState) -> SubscriptionState:
        """Insert or replace a user's subscription state."""
        pass

    @abstractmethod
    async def get_usage(self, user_id: str) -> UsageRecord:
        """
        Get the usage record, creating a zeroed one on first reference.
        """
        pass

    @abstractmethod
    async def reset_usage(
        self,
        user_id: str,
        baseline_tier: Optional[str],
        effective_upload_limit: int,
        expected_baseline: Optional[str] = None,
    ) -> UsageRecord:
        """
        Zero the counter and record a new baseline tier and limit.

        Atomic compare-and-set: applies only while the stored baseline is
        still ``expected_baseline`` and differs from ``baseline_tier``.
        Otherwise nothing is written and the current record is returned,
        so a reset decided on a stale read never erases newer usage.
        """
        pass

    @abstractmethod
    async def set_effective_limit(
        self, user_id: str, baseline_tier: Optional[str], effective_upload_limit: int
    ) -> UsageRecord:
        """
        Update the limit without touching the counter.

        Applies only while the stored baseline is ``baseline_tier``;
        otherwise the current record is returned unchanged.
        """
        pass

    @abstractmethod
    async def increment_usage(self, user_id: str) -> Optional[UsageRecord]:
        """
        Atomically increment ``uploads_used`` if it is below the limit.

        Returns:
            The updated record, or None if no quota was left
        """
        pass

    @abstractmethod
    async def get_trial_state(
        self, user_id: str, email: Optional[str] = None
    ) -> TrialState:
        """Get the trial flag, creating the profile on first reference."""
        pass

    @abstractmethod
    async def mark_trial_used(self, user_id: str) -> bool:
        """
        Atomically flip ``trial_used`` from false to true.

        Returns:
            True if this call flipped the flag, False if it was already set
        """
        pass

    async def health_check(self) -> bool:
        """Check that the backend is reachable."""
        return True
