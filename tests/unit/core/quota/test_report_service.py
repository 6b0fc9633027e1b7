"""Tests for gated document processing."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests

DOCUMENT = "Data retention policy. Records are kept for seven years."


@pytest.fixture
def report_service(gate, trial_gate, worker):
    from compliance_quota.core.quota import ReportService
    return ReportService(gate=gate, trial_gate=trial_gate, worker=worker, timeout_seconds=5)


class TestValidateDocument:
    """Tests for validate_document."""

    @pytest.mark.parametrize("filename", ["policy.pdf", "policy.DOCX", "notes.doc", "readme.txt"])
    def test_allowed_extensions(self, filename):
        from compliance_quota.core.quota import validate_document

        validate_document(filename, DOCUMENT)

    @pytest.mark.parametrize("filename", ["payload.exe", "policy", "archive.zip"])
    def test_rejected_extensions(self, filename):
        from compliance_quota.core.quota import InvalidDocumentError, validate_document

        with pytest.raises(InvalidDocumentError) as exc_info:
            validate_document(filename, DOCUMENT)

        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("content", [
        "<script>alert(1)</script>",
        "click javascript:void(0)",
        '<img onerror="x">',
        "../../etc/passwd",
    ])
    def test_suspicious_content_rejected(self, content):
        from compliance_quota.core.quota import InvalidDocumentError, validate_document

        with pytest.raises(InvalidDocumentError):
            validate_document("policy.txt", content)

    def test_ordinary_prose_with_on_word_allowed(self):
        """Test words like 'condition =' are not mistaken for event handlers."""
        from compliance_quota.core.quota import validate_document

        validate_document("policy.txt", "The condition = met when controls are online.")


class TestProcessDocument:
    """Tests for ReportService.process_document."""

    @pytest.mark.asyncio
    async def test_subscribed_user_consumes_one_unit(self, report_service, store, subscribe, worker):
        await subscribe("user-1", "starter")

        result = await report_service.process_document("user-1", DOCUMENT, "policy.pdf", "gdpr")

        assert result.report.startswith("# Compliance Report")
        assert result.report_type == "gdpr"
        assert result.trial_used is False
        assert result.decision.uploads_used == 1
        worker.generate.assert_awaited_once_with(DOCUMENT, "policy.pdf", "gdpr", None)

    @pytest.mark.asyncio
    async def test_invalid_document_checked_before_gate(self, report_service, store, subscribe, worker):
        """Test invalid files are rejected without consuming quota."""
        from compliance_quota.core.quota import InvalidDocumentError

        await subscribe("user-1", "starter")

        with pytest.raises(InvalidDocumentError):
            await report_service.process_document("user-1", DOCUMENT, "malware.exe")

        assert (await store.get_usage("user-1")).uploads_used == 0
        worker.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_denied_upload_raises_with_decision(self, report_service, store, worker):
        from compliance_quota.core.quota import DenyReason, UploadDeniedError

        await store.mark_trial_used("user-1")

        with pytest.raises(UploadDeniedError) as exc_info:
            await report_service.process_document("user-1", DOCUMENT, "policy.pdf")

        assert exc_info.value.status_code == 403
        assert exc_info.value.reason == DenyReason.NOT_SUBSCRIBED_AND_TRIAL_USED
        body = exc_info.value.to_response_dict()
        assert body["error"] == "not_subscribed_and_trial_used"
        assert body["success"] is False
        worker.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_trial_confirmed_after_success(self, report_service, store):
        result = await report_service.process_document("user-1", DOCUMENT, "policy.pdf")

        assert result.trial_used is True
        assert result.decision.trial is True
        assert (await store.get_trial_state("user-1")).trial_used is True

    @pytest.mark.asyncio
    async def test_worker_failure_leaves_trial_unconfirmed(self, report_service, store, worker):
        """Test a failed trial request does not burn the trial."""
        from compliance_quota.core.quota import UpstreamUnavailableError

        worker.generate = AsyncMock(side_effect=UpstreamUnavailableError("report_worker", "500"))

        with pytest.raises(UpstreamUnavailableError):
            await report_service.process_document("user-1", DOCUMENT, "policy.pdf")

        assert (await store.get_trial_state("user-1")).trial_used is False

    @pytest.mark.asyncio
    async def test_worker_failure_does_not_refund(self, report_service, store, subscribe, worker):
        """Test a consumed unit stays consumed when the worker fails."""
        from compliance_quota.core.quota import UpstreamUnavailableError

        await subscribe("user-1", "starter")
        worker.generate = AsyncMock(side_effect=UpstreamUnavailableError("report_worker", "500"))

        with pytest.raises(UpstreamUnavailableError):
            await report_service.process_document("user-1", DOCUMENT, "policy.pdf")

        assert (await store.get_usage("user-1")).uploads_used == 1

    @pytest.mark.asyncio
    async def test_worker_timeout_raises_upstream(self, gate, trial_gate, store):
        from compliance_quota.core.quota import ReportService, ReportWorker, UpstreamUnavailableError

        async def slow_generate(*args, **kwargs):
            await asyncio.sleep(1)
            return "late"

        slow_worker = AsyncMock(spec=ReportWorker)
        slow_worker.generate = slow_generate
        service = ReportService(gate, trial_gate, slow_worker, timeout_seconds=0.01)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await service.process_document("user-1", DOCUMENT, "policy.pdf")

        assert "timed out" in exc_info.value.message
        assert (await store.get_trial_state("user-1")).trial_used is False

    @pytest.mark.asyncio
    async def test_unconfigured_worker_reserves_nothing(self, gate, trial_gate, store, subscribe):
        """Test a missing worker URL fails before the gate, so no unit is consumed."""
        from compliance_quota.core.quota import ConfigurationError, HttpReportWorker, ReportService

        await subscribe("user-1", "starter")
        service = ReportService(gate, trial_gate, HttpReportWorker(url=None))

        for _ in range(3):
            with pytest.raises(ConfigurationError):
                await service.process_document("user-1", DOCUMENT, "policy.pdf")

        assert (await store.get_usage("user-1")).uploads_used == 0
        assert (await store.get_trial_state("user-1")).trial_used is False

    @pytest.mark.asyncio
    async def test_concurrent_trial_confirm_still_returns_report(self, report_service, trial_gate):
        """Test a lost trial-confirm race logs and still returns the report."""
        from compliance_quota.core.quota import TrialAlreadyUsedError

        trial_gate.confirm_trial_use = AsyncMock(side_effect=TrialAlreadyUsedError("user-1"))

        result = await report_service.process_document("user-1", DOCUMENT, "policy.pdf")

        assert result.report
        assert result.trial_used is False


class TestHttpReportWorker:
    """Tests for HttpReportWorker."""

    @pytest.mark.asyncio
    async def test_posts_payload_and_returns_report(self):
        from compliance_quota.core.quota import HttpReportWorker

        response = MagicMock()
        response.json.return_value = {"report": "# Report"}
        worker = HttpReportWorker("http://worker.test/generate", timeout_seconds=30)

        with patch("compliance_quota.core.quota.report_service.requests.post",
                   return_value=response) as mock_post:
            report = await worker.generate("text", "policy.pdf", "soc2", {"q1": "yes"})

        assert report == "# Report"
        mock_post.assert_called_once_with(
            "http://worker.test/generate",
            json={
                "document": "text",
                "filename": "policy.pdf",
                "reportType": "soc2",
                "complianceData": {"q1": "yes"},
            },
            timeout=30,
        )

    @pytest.mark.asyncio
    async def test_http_error_becomes_upstream_unavailable(self):
        from compliance_quota.core.quota import HttpReportWorker, UpstreamUnavailableError

        worker = HttpReportWorker("http://worker.test/generate")

        with patch("compliance_quota.core.quota.report_service.requests.post",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(UpstreamUnavailableError) as exc_info:
                await worker.generate("text", "policy.pdf", "soc2")

        assert exc_info.value.service == "report_worker"

    @pytest.mark.asyncio
    async def test_empty_report_is_upstream_failure(self):
        from compliance_quota.core.quota import HttpReportWorker, UpstreamUnavailableError

        response = MagicMock()
        response.json.return_value = {"report": ""}
        worker = HttpReportWorker("http://worker.test/generate")

        with patch("compliance_quota.core.quota.report_service.requests.post",
                   return_value=response):
            with pytest.raises(UpstreamUnavailableError):
                await worker.generate("text", "policy.pdf", "soc2")

    @pytest.mark.asyncio
    async def test_missing_url_is_configuration_error(self):
        from compliance_quota.core.quota import ConfigurationError, HttpReportWorker

        with pytest.raises(ConfigurationError):
            await HttpReportWorker(None).generate("text", "policy.pdf", "soc2")
