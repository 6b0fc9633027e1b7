"""Request and response schemas for entitlement, upload, trial and sync endpoints."""

from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import AliasChoices, BaseModel, Field

from compliance_quota.constants import DEFAULT_REPORT_TYPE
from compliance_quota.core.quota.schemas import (
    BillingInterval,
    DenyReason,
    EntitlementSummary,
)


# =============================================================================
# Entitlement
# =============================================================================

class EntitlementResponse(BaseModel):
    """Current entitlement for the calling user."""
    success: bool = True
    entitlement: EntitlementSummary


# =============================================================================
# Upload Reservation
# =============================================================================

class ReserveUploadRequest(BaseModel):
    """Request to reserve one upload unit."""
    file_size_mb: float = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("file_size_mb", "fileSizeMB"),
        description="Size of the file about to be processed, in MB",
        examples=[0.5],
    )


class GateDecisionResponse(BaseModel):
    """Outcome of an upload reservation."""
    success: bool
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


# =============================================================================
# Free Trial
# =============================================================================

class TrialConfirmResponse(BaseModel):
    """Result of confirming free-trial use."""
    success: bool = True
    user_id: str
    trial_used: bool


# =============================================================================
# Subscription Sync
# =============================================================================

class SubscriptionSyncRequest(BaseModel):
    """Request to synchronize a user with the billing provider."""
    email: Optional[str] = Field(
        default=None,
        description="Email used to find the billing customer; defaults to the last synced email",
        examples=["user@example.com"],
    )


class SubscriptionSyncResponse(BaseModel):
    """Synchronized subscription state and reconciled usage."""
    success: bool = True
    subscribed: bool
    tier_name: Optional[str] = None
    billing_interval: Optional[BillingInterval] = None
    period_end: Optional[datetime] = None
    previous_tier: Optional[str] = None
    tier_changed: bool = False
    uploads_used: int = 0
    upload_limit: int = 0
    remaining: int = 0


# =============================================================================
# Document Processing
# =============================================================================

class ProcessDocumentRequest(BaseModel):
    """Document to turn into a compliance report."""
    document: str = Field(..., min_length=1, description="Document text content")
    filename: str = Field(..., min_length=1, examples=["policy.pdf"])
    report_type: str = Field(
        default=DEFAULT_REPORT_TYPE,
        validation_alias=AliasChoices("report_type", "reportType"),
        examples=["gdpr"],
    )
    compliance_data: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("compliance_data", "complianceData"),
        description="Assessment answers passed through to the report worker",
    )


class ProcessDocumentResponse(BaseModel):
    """Generated report plus quota state after the request."""
    success: bool = True
    report: str
    filename: str
    report_type: str
    trial_used: bool = False
    tier_name: Optional[str] = None
    uploads_used: Optional[int] = None
    upload_limit: Optional[int] = None
    remaining: Optional[int] = None
    processing_time_ms: float


# =============================================================================
# Tiers
# =============================================================================

class TierResponse(BaseModel):
    """Public subscription tier information."""
    id: str = Field(..., description="Tier identifier (starter, professional, enterprise)")
    name: str = Field(..., description="Display name")
    monthly_upload_limit: int
    yearly_upload_limit: int
    file_size_limit_mb: float
    monthly_price_usd: float
    annual_price_usd: float
    key_features: List[str] = Field(default_factory=list)


class TiersListResponse(BaseModel):
    """Response for listing all available tiers."""
    success: bool
    tiers: List[TierResponse] = Field(default_factory=list)
