"""Unit tests for the quota, subscription, documents, tiers and health routers."""

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

TEST_USER_ID = "test-user-123"
DOCUMENT = "Access control policy. Reviewed quarterly."


@pytest.fixture
def client(service, clean_env):
    """Create test client with the in-memory quota service."""
    from compliance_quota.api.app import create_app
    from compliance_quota.api.dependencies import get_quota_service

    app = create_app()
    app.dependency_overrides[get_quota_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def headers():
    """Default headers with user ID."""
    return {"X-User-ID": TEST_USER_ID}


class TestEntitlementEndpoint:
    """Tests for GET /entitlement."""

    def test_requires_user_header(self, client):
        response = client.get("/api/v1/entitlement")

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert "X-User-ID" in data["error"]

    def test_unsubscribed_user(self, client, headers):
        response = client.get("/api/v1/entitlement", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["entitlement"]["subscribed"] is False
        assert data["entitlement"]["trial_available"] is True

    @pytest.mark.asyncio
    async def test_unknown_tier_returns_generic_503(self, client, headers, subscribe):
        await subscribe(TEST_USER_ID, "gold")

        response = client.get("/api/v1/entitlement", headers=headers)

        assert response.status_code == 503
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "configuration_error"
        assert "gold" not in data["message"]

    def test_api_key_enforced_when_required(self, client, headers, monkeypatch):
        monkeypatch.setenv("API_KEY_REQUIRED", "true")
        monkeypatch.setenv("API_KEY", "secret")

        missing = client.get("/api/v1/entitlement", headers=headers)
        wrong = client.get("/api/v1/entitlement", headers={**headers, "X-API-Key": "nope"})
        ok = client.get("/api/v1/entitlement", headers={**headers, "X-API-Key": "secret"})

        assert missing.status_code == 401
        assert wrong.status_code == 403
        assert ok.status_code == 200


class TestReserveUploadEndpoint:
    """Tests for POST /uploads/reserve."""

    @pytest.mark.asyncio
    async def test_subscribed_upload_allowed(self, client, headers, subscribe):
        await subscribe(TEST_USER_ID, "starter")

        response = client.post("/api/v1/uploads/reserve", json={"file_size_mb": 0.5}, headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["allowed"] is True
        assert data["uploads_used"] == 1
        assert data["remaining"] == 99

    @pytest.mark.asyncio
    async def test_quota_exceeded_returns_402(self, client, headers, store, subscribe):
        await subscribe(TEST_USER_ID, "starter")
        await store.reset_usage(TEST_USER_ID, "starter", 100)
        for _ in range(100):
            await store.increment_usage(TEST_USER_ID)

        response = client.post("/api/v1/uploads/reserve", json={"fileSizeMB": 0.5}, headers=headers)

        assert response.status_code == 402
        data = response.json()
        assert data["success"] is False
        assert data["reason"] == "quota_exceeded"
        assert data["upgrade_tier"] == "professional"

    @pytest.mark.asyncio
    async def test_file_too_large_returns_413(self, client, headers, subscribe):
        await subscribe(TEST_USER_ID, "professional")

        response = client.post("/api/v1/uploads/reserve", json={"file_size_mb": 2.5}, headers=headers)

        assert response.status_code == 413
        assert response.json()["reason"] == "file_too_large"

    @pytest.mark.asyncio
    async def test_trial_used_returns_403(self, client, headers, store):
        await store.mark_trial_used(TEST_USER_ID)

        response = client.post("/api/v1/uploads/reserve", json={"file_size_mb": 0.5}, headers=headers)

        assert response.status_code == 403
        assert response.json()["reason"] == "not_subscribed_and_trial_used"

    def test_trial_available(self, client, headers):
        response = client.post("/api/v1/uploads/reserve", json={"file_size_mb": 0.5}, headers=headers)

        assert response.status_code == 200
        assert response.json()["trial"] is True

    def test_negative_size_rejected(self, client, headers):
        response = client.post("/api/v1/uploads/reserve", json={"file_size_mb": -1}, headers=headers)

        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"


class TestTrialConfirmEndpoint:
    """Tests for POST /trial/confirm."""

    def test_confirm_once(self, client, headers):
        first = client.post("/api/v1/trial/confirm", headers=headers)
        second = client.post("/api/v1/trial/confirm", headers=headers)

        assert first.status_code == 200
        assert first.json()["trial_used"] is True
        assert second.status_code == 403
        assert second.json()["error"] == "trial_already_used"


class TestSubscriptionSyncEndpoint:
    """Tests for POST /subscription/sync."""

    def test_sync_reports_reconciled_usage(self, client, headers, billing_provider):
        from compliance_quota.core.quota import BillingInterval, BillingSnapshot

        billing_provider.fetch = AsyncMock(return_value=BillingSnapshot(
            subscribed=True, tier_name="enterprise", billing_interval=BillingInterval.yearly,
        ))

        response = client.post(
            "/api/v1/subscription/sync", json={"email": "user@example.com"}, headers=headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["tier_name"] == "enterprise"
        assert data["billing_interval"] == "yearly"
        assert data["tier_changed"] is True
        assert data["upload_limit"] == 6000

    def test_provider_outage_returns_503(self, client, headers, billing_provider):
        from compliance_quota.core.quota import UpstreamUnavailableError

        billing_provider.fetch = AsyncMock(
            side_effect=UpstreamUnavailableError("billing_provider", "timeout")
        )

        response = client.post("/api/v1/subscription/sync", json={}, headers=headers)

        assert response.status_code == 503
        assert response.json()["error"] == "upstream_unavailable"


class TestProcessDocumentEndpoint:
    """Tests for POST /documents/process."""

    @pytest.mark.asyncio
    async def test_process_for_subscriber(self, client, headers, subscribe):
        await subscribe(TEST_USER_ID, "starter")

        response = client.post(
            "/api/v1/documents/process",
            json={"document": DOCUMENT, "filename": "policy.pdf", "reportType": "iso27001"},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["report_type"] == "iso27001"
        assert data["uploads_used"] == 1
        assert data["processing_time_ms"] >= 0

    def test_invalid_file_type_returns_400(self, client, headers):
        response = client.post(
            "/api/v1/documents/process",
            json={"document": DOCUMENT, "filename": "tool.exe"},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_document"

    @pytest.mark.asyncio
    async def test_denied_returns_gate_status(self, client, headers, store):
        await store.mark_trial_used(TEST_USER_ID)

        response = client.post(
            "/api/v1/documents/process",
            json={"document": DOCUMENT, "filename": "policy.pdf"},
            headers=headers,
        )

        assert response.status_code == 403
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "not_subscribed_and_trial_used"

    def test_trial_consumed_on_success(self, client, headers):
        response = client.post(
            "/api/v1/documents/process",
            json={"document": DOCUMENT, "filename": "policy.pdf"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["trial_used"] is True


class TestTiersEndpoint:
    """Tests for GET /tiers."""

    def test_list_tiers_without_user_header(self, client):
        response = client.get("/api/v1/tiers")

        assert response.status_code == 200
        tiers = response.json()["tiers"]
        assert [t["id"] for t in tiers] == ["starter", "professional", "enterprise"]
        assert tiers[0]["monthly_price_usd"] == 199.0
        assert tiers[1]["yearly_upload_limit"] == 3000


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["usage_store"]["backend"] == "InMemoryUsageStore"

    def test_request_id_headers(self, client):
        response = client.get("/api/v1/health")

        assert len(response.headers["X-Request-ID"]) == 8
        assert float(response.headers["X-Response-Time-MS"]) >= 0

    def test_error_envelope_carries_request_id(self, client):
        response = client.get("/api/v1/entitlement")

        assert response.json()["request_id"] == response.headers["X-Request-ID"]

    def test_unhealthy_store(self, client, store):
        store.health_check = AsyncMock(return_value=False)

        response = client.get("/api/v1/health")

        assert response.json()["status"] == "unhealthy"
