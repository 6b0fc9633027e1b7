"""
Gated document processing.

Validates the document, reserves quota through the gate, calls the
report worker and confirms the free trial only after the worker succeeded.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from compliance_quota.constants import (
    ALLOWED_DOCUMENT_EXTENSIONS,
    DEFAULT_REPORT_TYPE,
    DEFAULT_WORKER_TIMEOUT_SECONDS,
    SUSPICIOUS_CONTENT_PATTERNS,
)
from compliance_quota.utils.async_utils import run_sync_in_executor
from compliance_quota.utils.timer_utils import Timer
from .exceptions import (
    ConfigurationError,
    InvalidDocumentError,
    TrialAlreadyUsedError,
    UploadDeniedError,
    UpstreamUnavailableError,
)
from .quota_gate import QuotaGate
from .schemas import ProcessingResult
from .trial_gate import FreeTrialGate

logger = logging.getLogger(__name__)

WORKER_SERVICE_NAME = "report_worker"
BYTES_PER_MB = 1024 * 1024

_SUSPICIOUS_PATTERNS = [re.compile(p, re.IGNORECASE) for p in SUSPICIOUS_CONTENT_PATTERNS]


class ReportWorker(ABC):
    """Opaque generator that turns a document into a compliance report."""

    @abstractmethod
    async def generate(
        self,
        document: str,
        filename: str,
        report_type: str,
        compliance_data: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Generate report text.

        Raises:
            UpstreamUnavailableError: If generation fails
        """
        pass

    def ensure_ready(self) -> None:
        """
        Raise ConfigurationError if the worker cannot be called at all.

        Checked before any quota is reserved.
        """


class HttpReportWorker(ReportWorker):
    """Calls a report-generation endpoint over HTTP."""

    def __init__(self, url: Optional[str], timeout_seconds: int = DEFAULT_WORKER_TIMEOUT_SECONDS):
        self.url = url
        self.timeout_seconds = timeout_seconds

    def ensure_ready(self) -> None:
        if not self.url:
            raise ConfigurationError("Report worker URL is not configured")

    async def generate(
        self,
        document: str,
        filename: str,
        report_type: str,
        compliance_data: Optional[Dict[str, Any]] = None,
    ) -> str:
        self.ensure_ready()

        payload = {
            "document": document,
            "filename": filename,
            "reportType": report_type,
            "complianceData": compliance_data or {},
        }
        try:
            body = await run_sync_in_executor(self._post, payload)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Report worker call failed for {filename}: {e}")
            raise UpstreamUnavailableError(WORKER_SERVICE_NAME, str(e)) from e

        report = body.get("report") if isinstance(body, dict) else None
        if not report:
            raise UpstreamUnavailableError(WORKER_SERVICE_NAME, "empty report returned")
        return report

    def _post(self, payload: Dict[str, Any]) -> Any:
        response = requests.post(self.url, json=payload, timeout=self.timeout_seconds)
        response.raise_for_status()
        return response.json()


def document_size_mb(document: str) -> float:
    """Size of the submitted content in MB (UTF-8)."""
    return len(document.encode("utf-8")) / BYTES_PER_MB


def validate_document(filename: str, document: str) -> None:
    """
    Reject unsupported file types and suspicious content.

    Raises:
        InvalidDocumentError: If the file type or content is not acceptable
    """
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension not in ALLOWED_DOCUMENT_EXTENSIONS:
        raise InvalidDocumentError(filename)

    for pattern in _SUSPICIOUS_PATTERNS:
        if pattern.search(document):
            logger.warning(
                f"Suspicious content in {filename}: matched {pattern.pattern!r}"
            )
            raise InvalidDocumentError(filename)


class ReportService:
    """Runs one document through validation, gating and report generation."""

    def __init__(
        self,
        gate: QuotaGate,
        trial_gate: FreeTrialGate,
        worker: ReportWorker,
        timeout_seconds: int = DEFAULT_WORKER_TIMEOUT_SECONDS,
    ):
        self._gate = gate
        self._trial_gate = trial_gate
        self._worker = worker
        self._timeout_seconds = timeout_seconds

    async def process_document(
        self,
        user_id: str,
        document: str,
        filename: str,
        report_type: str = DEFAULT_REPORT_TYPE,
        compliance_data: Optional[Dict[str, Any]] = None,
    ) -> ProcessingResult:
        """
        Generate a compliance report for one document.

        A consumed upload unit is not refunded when the worker fails; the
        trial is only confirmed after the worker succeeded.

        Raises:
            InvalidDocumentError: Before any quota check
            UploadDeniedError: If the gate refuses the request
            ConfigurationError: If the worker is not configured; nothing is reserved
            UpstreamUnavailableError: If the worker fails or times out
        """
        validate_document(filename, document)
        self._worker.ensure_ready()

        size_mb = document_size_mb(document)
        decision = await self._gate.check_and_reserve(user_id, size_mb)
        if not decision.allowed:
            raise UploadDeniedError(decision)

        timer = Timer().start()
        try:
            report = await asyncio.wait_for(
                self._worker.generate(document, filename, report_type, compliance_data),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self._log_worker_failure(user_id, decision.trial, decision.remaining, "timed out")
            raise UpstreamUnavailableError(
                WORKER_SERVICE_NAME, f"timed out after {self._timeout_seconds}s"
            ) from e
        except UpstreamUnavailableError as e:
            self._log_worker_failure(user_id, decision.trial, decision.remaining, e.message)
            raise

        logger.info(
            f"Generated {report_type} report for {filename} (user {user_id}) "
            f"in {timer.stop():.0f}ms"
        )

        trial_used = False
        if decision.trial:
            try:
                await self._trial_gate.confirm_trial_use(user_id)
                trial_used = True
            except TrialAlreadyUsedError:
                logger.warning(
                    f"Trial for user {user_id} was confirmed by a concurrent request"
                )

        return ProcessingResult(
            report=report,
            filename=filename,
            report_type=report_type,
            decision=decision,
            trial_used=trial_used,
        )

    @staticmethod
    def _log_worker_failure(
        user_id: str, trial: bool, remaining: Optional[int], error: str
    ) -> None:
        if trial:
            logger.warning(
                f"Report worker failed for trial user {user_id}: {error}; trial not consumed"
            )
        else:
            logger.warning(
                f"Report worker failed for user {user_id}: {error}; "
                f"upload unit not refunded ({remaining} remaining)"
            )
