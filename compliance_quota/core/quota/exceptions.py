"""
Custom exceptions for tier gating and quota management.

Every exception carries the deny reason and HTTP status it maps to, plus a
public message. Configuration and upstream failures keep their internal
detail in ``message`` and expose only a generic ``public_message``.
"""

from typing import Optional, Dict, Any

from .schemas import DenyReason, GateDecision

GENERIC_RETRY_MESSAGE = (
    "Unable to verify your subscription status right now. Please try again."
)


class QuotaServiceError(Exception):
    """Base exception for quota and entitlement errors."""

    reason: DenyReason = DenyReason.UPSTREAM_UNAVAILABLE
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        public_message: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.public_message = public_message or message
        super().__init__(self.message)

    def to_response_dict(self) -> Dict[str, Any]:
        """Convert to HTTP response body (never exposes internal details)."""
        return {
            "error": self.reason.value,
            "message": self.public_message,
        }


class FileTooLargeError(QuotaServiceError):
    """Raised when a file exceeds the tier's single-file size limit."""

    reason = DenyReason.FILE_TOO_LARGE
    status_code = 413

    def __init__(
        self,
        file_size_mb: float,
        limit_mb: float,
        tier_label: str,
        upgrade_tier: Optional[str] = None,
    ):
        self.file_size_mb = file_size_mb
        self.limit_mb = limit_mb
        self.tier_label = tier_label
        self.upgrade_tier = upgrade_tier

        message = (
            f"File size ({file_size_mb:.2f}MB) exceeds the {limit_mb:g}MB limit "
            f"for {tier_label} tier."
        )
        if upgrade_tier:
            message += " Upgrade your subscription to upload larger files."

        super().__init__(
            message=message,
            details={
                "file_size_mb": file_size_mb,
                "file_size_limit_mb": limit_mb,
                "upgrade_tier": upgrade_tier,
            },
        )

    def to_response_dict(self) -> Dict[str, Any]:
        response = super().to_response_dict()
        response["file_size_mb"] = round(self.file_size_mb, 2)
        response["file_size_limit_mb"] = self.limit_mb
        if self.upgrade_tier:
            response["upgrade_tier"] = self.upgrade_tier
        return response


class QuotaExceededException(QuotaServiceError):
    """
    Raised when a user has no upload quota left in the current period.

    Contains details needed for HTTP 402 response with upgrade CTA.
    """

    reason = DenyReason.QUOTA_EXCEEDED
    status_code = 402

    def __init__(
        self,
        uploads_used: int,
        upload_limit: int,
        tier_label: Optional[str] = None,
        upgrade_tier: Optional[str] = None,
    ):
        self.uploads_used = uploads_used
        self.upload_limit = upload_limit
        self.tier_label = tier_label
        self.upgrade_tier = upgrade_tier

        plan = f" for your {tier_label} plan" if tier_label else ""
        message = (
            f"File upload limit reached. You have used "
            f"{uploads_used:,}/{upload_limit:,} uploads{plan}."
        )

        super().__init__(
            message=message,
            details={
                "uploads_used": uploads_used,
                "upload_limit": upload_limit,
                "upgrade_tier": upgrade_tier,
            },
        )

    def to_response_dict(self) -> Dict[str, Any]:
        response = super().to_response_dict()
        response["uploads_used"] = self.uploads_used
        response["upload_limit"] = self.upload_limit
        response["remaining"] = max(0, self.upload_limit - self.uploads_used)

        if self.upgrade_tier:
            response["upgrade"] = {
                "tier": self.upgrade_tier,
                "message": f"Upgrade to {self.upgrade_tier.title()} for more uploads",
                "url": f"/subscription?upgrade={self.upgrade_tier}",
            }

        return response


class TrialAlreadyUsedError(QuotaServiceError):
    """Raised when a user without a subscription has already used the free trial."""

    reason = DenyReason.TRIAL_ALREADY_USED
    status_code = 403

    def __init__(self, user_id: str):
        super().__init__(
            message=(
                "Trial already used. Please upgrade to a paid subscription "
                "to continue using the service."
            ),
            details={"user_id": user_id},
        )


class ConfigurationError(QuotaServiceError):
    """Raised when tier configuration cannot answer a request."""

    reason = DenyReason.CONFIGURATION_ERROR
    status_code = 503

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            details=details,
            public_message=GENERIC_RETRY_MESSAGE,
        )


class TierNotFoundError(ConfigurationError):
    """Raised when a tier name or billing price is not in the catalog."""

    def __init__(self, tier_name: Optional[str]):
        self.tier_name = tier_name
        super().__init__(
            message=f"Subscription tier not found: {tier_name!r}",
            details={"tier_name": tier_name},
        )


class TierCatalogError(ConfigurationError):
    """Raised when tier definitions violate catalog invariants."""


class UpstreamUnavailableError(QuotaServiceError):
    """Raised when the store, billing provider, or worker cannot be reached."""

    reason = DenyReason.UPSTREAM_UNAVAILABLE
    status_code = 503

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(
            message=f"{service} unavailable: {message}",
            details={"service": service},
            public_message=GENERIC_RETRY_MESSAGE,
        )


class InvalidDocumentError(QuotaServiceError):
    """Raised when a submitted document fails type or content validation."""

    reason = DenyReason.INVALID_DOCUMENT
    status_code = 400

    def __init__(self, filename: str, message: Optional[str] = None):
        super().__init__(
            message=message or (
                "Invalid file type or potentially malicious content detected. "
                "Please upload only PDF, DOCX, DOC, or TXT files."
            ),
            details={"filename": filename},
        )


class UploadDeniedError(QuotaServiceError):
    """Raised by processing flows when the quota gate refuses a request."""

    def __init__(self, decision: GateDecision):
        self.decision = decision
        self.reason = decision.reason or DenyReason.UPSTREAM_UNAVAILABLE
        self.status_code = decision.status_code
        super().__init__(message=decision.message or self.reason.value)

    def to_response_dict(self) -> Dict[str, Any]:
        response = self.decision.to_response_dict()
        response["error"] = self.reason.value
        return response


__all__ = [
    "GENERIC_RETRY_MESSAGE",
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
]
