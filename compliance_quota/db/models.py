"""
SQLAlchemy models for tier gating and usage metering.

Tables:
- subscription_tiers: Admin-editable tier catalog with billing price mapping
- subscribers: Last synchronized billing-provider state per user
- usage_records: Per-user upload counters for the current period
- profiles: Per-user free-trial flag

The usage store talks to these tables with raw SQL; the models define the
schema for table creation and seeding scripts.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                value = value.isoformat()
            result[column.key] = value
        return result


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SubscriptionTierModel(TimestampMixin, Base):
    """One subscription plan and its entitlements."""

    __tablename__ = "subscription_tiers"

    tier_name: Mapped[str] = mapped_column(String(50), primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100))
    monthly_upload_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    file_size_limit_mb: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    monthly_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    yearly_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stripe_monthly_price_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True,
        comment="Billing price id that maps to this tier, billed monthly",
    )
    stripe_yearly_price_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True,
        comment="Billing price id that maps to this tier, billed yearly",
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("monthly_upload_limit >= 0", name="ck_tiers_upload_limit"),
        CheckConstraint("file_size_limit_mb > 0", name="ck_tiers_file_size_limit"),
    )


class SubscriberModel(TimestampMixin, Base):
    """Billing-provider view of one user. Written only by billing sync."""

    __tablename__ = "subscribers"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    customer_id: Mapped[Optional[str]] = mapped_column(String(255))
    subscribed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tier_name: Mapped[Optional[str]] = mapped_column(String(50))
    billing_interval: Mapped[Optional[str]] = mapped_column(
        String(20), comment="'monthly' or 'yearly'"
    )
    period_end: Mapped[Optional[datetime]] = mapped_column(DateTime)


class UsageRecordModel(Base):
    """Per-user upload counter. Written only by the usage ledger."""

    __tablename__ = "usage_records"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    effective_upload_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uploads_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    baseline_tier: Mapped[Optional[str]] = mapped_column(
        String(50), comment="Tier recorded at the last usage reset"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("uploads_used >= 0", name="ck_usage_uploads_used"),
    )


class ProfileModel(TimestampMixin, Base):
    """Per-user profile carrying the single-use free-trial flag."""

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    trial_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


__all__ = [
    "Base",
    "SubscriptionTierModel",
    "SubscriberModel",
    "UsageRecordModel",
    "ProfileModel",
]
