"""
Tier gating and usage metering module.

Provides the tier catalog, entitlement resolution, usage ledger, quota and
free-trial gates, billing sync and gated report processing for the
compliance reporting service.
"""

from .schemas import (
    BillingInterval,
    DenyReason,
    TierDefinition,
    SubscriptionState,
    UsageRecord,
    TrialState,
    Entitlement,
    EntitlementSummary,
    BillingSnapshot,
    GateDecision,
    SyncResult,
    ProcessingResult,
)
from .exceptions import (
    QuotaServiceError,
    FileTooLargeError,
    QuotaExceededException,
    TrialAlreadyUsedError,
    ConfigurationError,
    TierNotFoundError,
    TierCatalogError,
    UpstreamUnavailableError,
    InvalidDocumentError,
    UploadDeniedError,
)
from .config import QuotaConfig, get_quota_config, reset_quota_config
from .tier_catalog import TierCatalog, TierCatalogCache
from .entitlement_resolver import EntitlementResolver, effective_upload_limit
from .usage_ledger import UsageLedger
from .trial_gate import FreeTrialGate
from .quota_gate import QuotaGate
from .billing_sync import BillingProvider, BillingSyncService, StripeBillingProvider
from .report_service import (
    HttpReportWorker,
    ReportService,
    ReportWorker,
    validate_document,
)
from .service import QuotaService, get_quota_service, reset_quota_service

__all__ = [
    # Schemas
    "BillingInterval",
    "DenyReason",
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
    # Exceptions
    "QuotaServiceError",
    "FileTooLargeError",
    "QuotaExceededException",
    "TrialAlreadyUsedError",
    "ConfigurationError",
    "TierNotFoundError",
    "TierCatalogError",
    "UpstreamUnavailableError",
    "InvalidDocumentError",
    "UploadDeniedError",
    # Config
    "QuotaConfig",
    "get_quota_config",
    "reset_quota_config",
    # Components
    "TierCatalog",
    "TierCatalogCache",
    "EntitlementResolver",
    "effective_upload_limit",
    "UsageLedger",
    "FreeTrialGate",
    "QuotaGate",
    "BillingProvider",
    "BillingSyncService",
    "StripeBillingProvider",
    "HttpReportWorker",
    "ReportService",
    "ReportWorker",
    "validate_document",
    # Facade
    "QuotaService",
    "get_quota_service",
    "reset_quota_service",
]
