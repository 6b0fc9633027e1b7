"""
Pydantic schemas for tier gating and usage metering.

Provides data models for tier definitions, synchronized subscription state,
usage counters, trial state and gate decisions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator


class BillingInterval(str, Enum):
    """Billing interval reported by the billing provider."""
    monthly = "monthly"
    yearly = "yearly"


class DenyReason(str, Enum):
    """Reasons a gate can refuse a billable action."""
    FILE_TOO_LARGE = "file_too_large"
    QUOTA_EXCEEDED = "quota_exceeded"
    NOT_SUBSCRIBED_AND_TRIAL_USED = "not_subscribed_and_trial_used"
    TRIAL_ALREADY_USED = "trial_already_used"
    CONFIGURATION_ERROR = "configuration_error"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INVALID_DOCUMENT = "invalid_document"


def normalize_tier_name(tier_name: Optional[str]) -> Optional[str]:
    """Lower-case and strip a tier name; empty names become None."""
    if tier_name is None:
        return None
    normalized = tier_name.strip().lower()
    return normalized or None


class TierDefinition(BaseModel):
    """Entitlements of one subscription plan."""
    tier_name: str
    display_name: Optional[str] = None
    monthly_upload_limit: int = Field(..., ge=0)
    file_size_limit_mb: float = Field(..., gt=0)
    monthly_price_cents: int = Field(default=0, ge=0)
    yearly_price_cents: int = Field(default=0, ge=0)
    stripe_monthly_price_id: Optional[str] = None
    stripe_yearly_price_id: Optional[str] = None
    sort_order: int = 0

    @field_validator("tier_name")
    @classmethod
    def validate_tier_name(cls, v: str) -> str:
        normalized = normalize_tier_name(v)
        if not normalized:
            raise ValueError("tier_name must not be empty")
        return normalized

    @property
    def label(self) -> str:
        return self.display_name or self.tier_name.title()


class SubscriptionState(BaseModel):
    """Billing provider's view of one user, as last synchronized."""
    user_id: str
    email: Optional[str] = None
    customer_id: Optional[str] = None
    subscribed: bool = False
    tier_name: Optional[str] = None  # valid only when subscribed
    billing_interval: Optional[BillingInterval] = None  # valid only when subscribed
    period_end: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UsageRecord(BaseModel):
    """Per-user upload counter for the current period."""
    user_id: str
    effective_upload_limit: int = 0
    uploads_used: int = Field(default=0, ge=0)
    baseline_tier: Optional[str] = None  # tier recorded at the last reset
    updated_at: Optional[datetime] = None

    @property
    def remaining(self) -> int:
        return max(0, self.effective_upload_limit - self.uploads_used)

    @property
    def percentage_used(self) -> float:
        if self.effective_upload_limit <= 0:
            return 100.0
        return round(self.uploads_used / self.effective_upload_limit * 100, 2)


class TrialState(BaseModel):
    """Free-trial flag for one user."""
    user_id: str
    email: Optional[str] = None
    trial_used: bool = False
    updated_at: Optional[datetime] = None


class Entitlement(BaseModel):
    """Resolved entitlement for a subscribed user."""
    tier_name: str
    display_name: str
    file_size_limit_mb: float
    monthly_upload_limit: int
    effective_upload_limit: int
    billing_interval: BillingInterval
    period_end: Optional[datetime] = None


class EntitlementSummary(BaseModel):
    """What a user may do right now: tier, remaining quota, size limit, trial."""
    user_id: str
    subscribed: bool
    tier_name: Optional[str] = None
    display_name: Optional[str] = None
    billing_interval: Optional[BillingInterval] = None
    period_end: Optional[datetime] = None
    file_size_limit_mb: float
    upload_limit: int = 0
    uploads_used: int = 0
    remaining: int = 0
    percentage_used: float = 0.0
    trial_available: bool = False


class BillingSnapshot(BaseModel):
    """Current truth returned by a billing provider."""
    subscribed: bool
    tier_name: Optional[str] = None
    billing_interval: Optional[BillingInterval] = None
    period_end: Optional[datetime] = None
    customer_id: Optional[str] = None


class GateDecision(BaseModel):
    """Outcome of a quota or trial gate check."""
    allowed: bool
    reason: Optional[DenyReason] = None
    message: Optional[str] = None
    trial: bool = False
    tier_name: Optional[str] = None
    uploads_used: Optional[int] = None
    upload_limit: Optional[int] = None
    remaining: Optional[int] = None
    file_size_limit_mb: Optional[float] = None
    upgrade_tier: Optional[str] = None
    status_code: int = Field(default=200, exclude=True)

    def to_response_dict(self) -> Dict[str, Any]:
        """Serialize for an HTTP response body."""
        body = self.model_dump(mode="json", exclude_none=True)
        body["success"] = self.allowed
        return body


class SyncResult(BaseModel):
    """Result of a billing-provider sync for one user."""
    state: SubscriptionState
    usage: UsageRecord
    previous_tier: Optional[str] = None
    tier_changed: bool = False


class ProcessingResult(BaseModel):
    """Result of a gated document-processing request."""
    report: str
    filename: str
    report_type: str
    decision: GateDecision
    trial_used: bool = False


__all__ = [
    "BillingInterval",
    "DenyReason",
    "normalize_tier_name",
    "TierDefinition",
    "SubscriptionState",
    "UsageRecord",
    "TrialState",
    "Entitlement",
    "EntitlementSummary",
    "BillingSnapshot",
    "GateDecision",
    "SyncResult",
    "ProcessingResult",
]
