"""
PostgreSQL usage store.

Uses raw SQL through the shared async session manager. Idempotent
operations are retried on transient errors; the conditional increment and
the trial flip run exactly once so a lost acknowledgement can never count
twice.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from compliance_quota.db.connection import db
from compliance_quota.db.utils import with_db_retry
from ..exceptions import UpstreamUnavailableError
from ..schemas import (
    BillingInterval,
    SubscriptionState,
    TierDefinition,
    TrialState,
    UsageRecord,
)
from .base import UsageStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_SERVICE_NAME = "usage_store"

_USAGE_COLUMNS = "user_id, effective_upload_limit, uploads_used, baseline_tier, updated_at"


def _usage_from_row(row: Any) -> UsageRecord:
    return UsageRecord(
        user_id=row.user_id,
        effective_upload_limit=row.effective_upload_limit,
        uploads_used=row.uploads_used,
        baseline_tier=row.baseline_tier,
        updated_at=row.updated_at,
    )


class SqlUsageStore(UsageStore):
    """Usage store backed by the ``subscription_tiers``, ``subscribers``,
    ``usage_records`` and ``profiles`` tables."""

    async def _execute(
        self,
        operation: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        retry: bool = True,
    ) -> T:
        call = with_db_retry(func) if retry else func
        try:
            return await call(*args)
        except UpstreamUnavailableError:
            raise
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Usage store operation '{operation}' failed: {e}")
            raise UpstreamUnavailableError(STORE_SERVICE_NAME, str(e)) from e

    @staticmethod
    def _require_session(session: Any) -> Any:
        if session is None:
            raise UpstreamUnavailableError(STORE_SERVICE_NAME, "database disabled")
        return session

    # =========================================================================
    # Tiers
    # =========================================================================

    async def list_tiers(self) -> List[TierDefinition]:
        return await self._execute("list_tiers", self._list_tiers)

    async def _list_tiers(self) -> List[TierDefinition]:
        async with db.session() as session:
            session = self._require_session(session)
            result = await session.execute(
                text("""
                    SELECT
                        tier_name,
                        display_name,
                        monthly_upload_limit,
                        file_size_limit_mb,
                        monthly_price_cents,
                        yearly_price_cents,
                        stripe_monthly_price_id,
                        stripe_yearly_price_id,
                        sort_order
                    FROM subscription_tiers
                    WHERE is_active = true
                    ORDER BY sort_order
                """)
            )
            return [
                TierDefinition(
                    tier_name=row.tier_name,
                    display_name=row.display_name,
                    monthly_upload_limit=row.monthly_upload_limit,
                    file_size_limit_mb=float(row.file_size_limit_mb),
                    monthly_price_cents=row.monthly_price_cents,
                    yearly_price_cents=row.yearly_price_cents,
                    stripe_monthly_price_id=row.stripe_monthly_price_id,
                    stripe_yearly_price_id=row.stripe_yearly_price_id,
                    sort_order=row.sort_order,
                )
                for row in result.fetchall()
            ]

    async def upsert_tier(self, tier: TierDefinition) -> TierDefinition:
        return await self._execute("upsert_tier", self._upsert_tier, tier)

    async def _upsert_tier(self, tier: TierDefinition) -> TierDefinition:
        async with db.session() as session:
            session = self._require_session(session)
            await session.execute(
                text("""
                    INSERT INTO subscription_tiers (
                        tier_name, display_name, monthly_upload_limit,
                        file_size_limit_mb, monthly_price_cents, yearly_price_cents,
                        stripe_monthly_price_id, stripe_yearly_price_id,
                        sort_order, is_active, created_at, updated_at
                    ) VALUES (
                        :tier_name, :display_name, :monthly_upload_limit,
                        :file_size_limit_mb, :monthly_price_cents, :yearly_price_cents,
                        :stripe_monthly_price_id, :stripe_yearly_price_id,
                        :sort_order, true, :now, :now
                    )
                    ON CONFLICT (tier_name) DO UPDATE SET
                        display_name = EXCLUDED.display_name,
                        monthly_upload_limit = EXCLUDED.monthly_upload_limit,
                        file_size_limit_mb = EXCLUDED.file_size_limit_mb,
                        monthly_price_cents = EXCLUDED.monthly_price_cents,
                        yearly_price_cents = EXCLUDED.yearly_price_cents,
                        stripe_monthly_price_id = EXCLUDED.stripe_monthly_price_id,
                        stripe_yearly_price_id = EXCLUDED.stripe_yearly_price_id,
                        sort_order = EXCLUDED.sort_order,
                        is_active = true,
                        updated_at = EXCLUDED.updated_at
                """),
                {**tier.model_dump(), "now": datetime.utcnow()},
            )
            logger.info(f"Upserted tier {tier.tier_name}")
            return tier

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionState]:
        return await self._execute("get_subscription", self._get_subscription, user_id)

    async def _get_subscription(self, user_id: str) -> Optional[SubscriptionState]:
        async with db.session() as session:
            session = self._require_session(session)
            result = await session.execute(
                text("""
                    SELECT
                        user_id,
                        email,
                        customer_id,
                        subscribed,
                        tier_name,
                        billing_interval,
                        period_end,
                        updated_at
                    FROM subscribers
                    WHERE user_id = :user_id
                """),
                {"user_id": user_id},
            )
            row = result.fetchone()
            if not row:
                return None

            return SubscriptionState(
                user_id=row.user_id,
                email=row.email,
                customer_id=row.customer_id,
                subscribed=bool(row.subscribed),
                tier_name=row.tier_name,
                billing_interval=(
                    BillingInterval(row.billing_interval) if row.billing_interval else None
                ),
                period_end=row.period_end,
                updated_at=row.updated_at,
            )

    async def save_subscription(self, state: SubscriptionState) -> SubscriptionState:
        return await self._execute("save_subscription", self._save_subscription, state)

    async def _save_subscription(self, state: SubscriptionState) -> SubscriptionState:
        now = datetime.utcnow()
        async with db.session() as session:
            session = self._require_session(session)
            await session.execute(
                text("""
                    INSERT INTO subscribers (
                        user_id, email, customer_id, subscribed, tier_name,
                        billing_interval, period_end, created_at, updated_at
                    ) VALUES (
                        :user_id, :email, :customer_id, :subscribed, :tier_name,
                        :billing_interval, :period_end, :now, :now
                    )
                    ON CONFLICT (user_id) DO UPDATE SET
                        email = COALESCE(EXCLUDED.email, subscribers.email),
                        customer_id = EXCLUDED.customer_id,
                        subscribed = EXCLUDED.subscribed,
                        tier_name = EXCLUDED.tier_name,
                        billing_interval = EXCLUDED.billing_interval,
                        period_end = EXCLUDED.period_end,
                        updated_at = EXCLUDED.updated_at
                """),
                {
                    "user_id": state.user_id,
                    "email": state.email,
                    "customer_id": state.customer_id,
                    "subscribed": state.subscribed,
                    "tier_name": state.tier_name,
                    "billing_interval": (
                        state.billing_interval.value if state.billing_interval else None
                    ),
                    "period_end": state.period_end,
                    "now": now,
                },
            )
            return state.model_copy(update={"updated_at": now})

    # =========================================================================
    # Usage
    # =========================================================================

    @staticmethod
    async def _ensure_usage_row(session: Any, user_id: str) -> None:
        await session.execute(
            text("""
                INSERT INTO usage_records (
                    user_id, effective_upload_limit, uploads_used, updated_at
                ) VALUES (:user_id, 0, 0, :now)
                ON CONFLICT (user_id) DO NOTHING
            """),
            {"user_id": user_id, "now": datetime.utcnow()},
        )

    @staticmethod
    async def _select_usage(session: Any, user_id: str) -> UsageRecord:
        result = await session.execute(
            text(f"SELECT {_USAGE_COLUMNS} FROM usage_records WHERE user_id = :user_id"),
            {"user_id": user_id},
        )
        return _usage_from_row(result.fetchone())

    async def get_usage(self, user_id: str) -> UsageRecord:
        return await self._execute("get_usage", self._get_usage, user_id)

    async def _get_usage(self, user_id: str) -> UsageRecord:
        async with db.session() as session:
            session = self._require_session(session)
            await self._ensure_usage_row(session, user_id)
            return await self._select_usage(session, user_id)

    async def reset_usage(
        self,
        user_id: str,
        baseline_tier: Optional[str],
        effective_upload_limit: int,
        expected_baseline: Optional[str] = None,
    ) -> UsageRecord:
        # conditional on the observed baseline, so a retry after a lost
        # acknowledgement finds the new baseline and writes nothing
        return await self._execute(
            "reset_usage",
            self._reset_usage,
            user_id,
            baseline_tier,
            effective_upload_limit,
            expected_baseline,
        )

    async def _reset_usage(
        self,
        user_id: str,
        baseline_tier: Optional[str],
        effective_upload_limit: int,
        expected_baseline: Optional[str],
    ) -> UsageRecord:
        async with db.session() as session:
            session = self._require_session(session)
            await self._ensure_usage_row(session, user_id)
            result = await session.execute(
                text(f"""
                    UPDATE usage_records
                    SET uploads_used = 0,
                        effective_upload_limit = :limit,
                        baseline_tier = :baseline_tier,
                        updated_at = :now
                    WHERE user_id = :user_id
                      AND baseline_tier IS NOT DISTINCT FROM :expected_baseline
                      AND baseline_tier IS DISTINCT FROM :baseline_tier
                    RETURNING {_USAGE_COLUMNS}
                """),
                {
                    "user_id": user_id,
                    "limit": effective_upload_limit,
                    "baseline_tier": baseline_tier,
                    "expected_baseline": expected_baseline,
                    "now": datetime.utcnow(),
                },
            )
            row = result.fetchone()
            if row is None:
                return await self._select_usage(session, user_id)
            return _usage_from_row(row)

    async def set_effective_limit(
        self, user_id: str, baseline_tier: Optional[str], effective_upload_limit: int
    ) -> UsageRecord:
        return await self._execute(
            "set_effective_limit",
            self._set_effective_limit,
            user_id,
            baseline_tier,
            effective_upload_limit,
        )

    async def _set_effective_limit(
        self, user_id: str, baseline_tier: Optional[str], effective_upload_limit: int
    ) -> UsageRecord:
        async with db.session() as session:
            session = self._require_session(session)
            await self._ensure_usage_row(session, user_id)
            result = await session.execute(
                text(f"""
                    UPDATE usage_records
                    SET effective_upload_limit = :limit,
                        updated_at = :now
                    WHERE user_id = :user_id
                      AND baseline_tier IS NOT DISTINCT FROM :baseline_tier
                    RETURNING {_USAGE_COLUMNS}
                """),
                {
                    "user_id": user_id,
                    "limit": effective_upload_limit,
                    "baseline_tier": baseline_tier,
                    "now": datetime.utcnow(),
                },
            )
            row = result.fetchone()
            if row is None:
                return await self._select_usage(session, user_id)
            return _usage_from_row(row)

    async def increment_usage(self, user_id: str) -> Optional[UsageRecord]:
        return await self._execute(
            "increment_usage", self._increment_usage, user_id, retry=False
        )

    async def _increment_usage(self, user_id: str) -> Optional[UsageRecord]:
        async with db.session() as session:
            session = self._require_session(session)
            result = await session.execute(
                text(f"""
                    UPDATE usage_records
                    SET uploads_used = uploads_used + 1,
                        updated_at = :now
                    WHERE user_id = :user_id
                      AND uploads_used < effective_upload_limit
                    RETURNING {_USAGE_COLUMNS}
                """),
                {"user_id": user_id, "now": datetime.utcnow()},
            )
            row = result.fetchone()
            return _usage_from_row(row) if row else None

    # =========================================================================
    # Trials
    # =========================================================================

    async def get_trial_state(
        self, user_id: str, email: Optional[str] = None
    ) -> TrialState:
        return await self._execute("get_trial_state", self._get_trial_state, user_id, email)

    async def _get_trial_state(self, user_id: str, email: Optional[str]) -> TrialState:
        async with db.session() as session:
            session = self._require_session(session)
            result = await session.execute(
                text("""
                    INSERT INTO profiles (user_id, email, trial_used, created_at, updated_at)
                    VALUES (:user_id, :email, false, :now, :now)
                    ON CONFLICT (user_id) DO UPDATE SET
                        email = COALESCE(profiles.email, EXCLUDED.email)
                    RETURNING user_id, email, trial_used, updated_at
                """),
                {"user_id": user_id, "email": email, "now": datetime.utcnow()},
            )
            row = result.fetchone()
            return TrialState(
                user_id=row.user_id,
                email=row.email,
                trial_used=bool(row.trial_used),
                updated_at=row.updated_at,
            )

    async def mark_trial_used(self, user_id: str) -> bool:
        return await self._execute(
            "mark_trial_used", self._mark_trial_used, user_id, retry=False
        )

    async def _mark_trial_used(self, user_id: str) -> bool:
        now = datetime.utcnow()
        async with db.session() as session:
            session = self._require_session(session)
            await session.execute(
                text("""
                    INSERT INTO profiles (user_id, trial_used, created_at, updated_at)
                    VALUES (:user_id, false, :now, :now)
                    ON CONFLICT (user_id) DO NOTHING
                """),
                {"user_id": user_id, "now": now},
            )
            result = await session.execute(
                text("""
                    UPDATE profiles
                    SET trial_used = true,
                        updated_at = :now
                    WHERE user_id = :user_id
                      AND trial_used = false
                """),
                {"user_id": user_id, "now": now},
            )
            return result.rowcount == 1

    async def health_check(self) -> bool:
        return await db.test_connection()
