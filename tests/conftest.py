"""Shared test fixtures and configuration."""

import os
from unittest.mock import AsyncMock

import pytest


# =============================================================================
# Environment Variable Fixtures
# =============================================================================

@pytest.fixture
def memory_env(monkeypatch):
    """Run the service on the in-memory store with no database."""
    monkeypatch.setenv("QUOTA_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("DATABASE_ENABLED", "false")


@pytest.fixture
def clean_env(monkeypatch):
    """Clear quota environment variables."""
    for key in list(os.environ):
        if key.startswith("QUOTA_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("API_KEY_REQUIRED", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)


# =============================================================================
# Singleton Reset
# =============================================================================

@pytest.fixture(autouse=True)
def reset_quota_singletons():
    """Reset config, store and service singletons before and after each test."""
    from compliance_quota.core.quota import reset_quota_config, reset_quota_service
    from compliance_quota.core.quota.store import reset_usage_store

    reset_quota_config()
    reset_usage_store()
    reset_quota_service()

    yield

    reset_quota_config()
    reset_usage_store()
    reset_quota_service()


# =============================================================================
# Quota Component Fixtures
# =============================================================================

@pytest.fixture
def store():
    """In-memory usage store seeded with the default tiers."""
    from compliance_quota.core.quota.store import InMemoryUsageStore
    return InMemoryUsageStore()


@pytest.fixture
def quota_config():
    """Deterministic config independent of the environment."""
    from compliance_quota.core.quota import QuotaConfig
    return QuotaConfig(
        storage_backend="memory",
        trial_file_size_limit_mb=1.0,
        approaching_limit_percentage=80,
        tier_cache_ttl_seconds=3600,
        worker_url=None,
        worker_timeout_seconds=5,
        stripe_secret_key="sk_test_123",
    )


@pytest.fixture
def catalog_cache(store):
    from compliance_quota.core.quota import TierCatalogCache
    return TierCatalogCache(store, ttl_seconds=3600)


@pytest.fixture
def resolver(store, catalog_cache):
    from compliance_quota.core.quota import EntitlementResolver
    return EntitlementResolver(store, catalog_cache)


@pytest.fixture
def ledger(store, resolver):
    from compliance_quota.core.quota import UsageLedger
    return UsageLedger(store, resolver)


@pytest.fixture
def trial_gate(store):
    from compliance_quota.core.quota import FreeTrialGate
    return FreeTrialGate(store)


@pytest.fixture
def gate(resolver, ledger, trial_gate, catalog_cache):
    from compliance_quota.core.quota import QuotaGate
    return QuotaGate(
        resolver=resolver,
        ledger=ledger,
        trial_gate=trial_gate,
        catalog_cache=catalog_cache,
        trial_file_size_limit_mb=1.0,
        approaching_limit_percentage=80,
    )


@pytest.fixture
def billing_provider():
    """Billing provider returning an unsubscribed snapshot by default."""
    from compliance_quota.core.quota import BillingProvider, BillingSnapshot

    provider = AsyncMock(spec=BillingProvider)
    provider.fetch = AsyncMock(return_value=BillingSnapshot(subscribed=False))
    return provider


@pytest.fixture
def worker():
    """Report worker that always succeeds."""
    from compliance_quota.core.quota import ReportWorker

    mock_worker = AsyncMock(spec=ReportWorker)
    mock_worker.generate = AsyncMock(return_value="# Compliance Report\n\nAll controls met.")
    return mock_worker


@pytest.fixture
def service(store, quota_config, billing_provider, worker):
    """Fully wired quota service on the in-memory store."""
    from compliance_quota.core.quota import QuotaService
    return QuotaService(
        store=store,
        config=quota_config,
        billing_provider=billing_provider,
        worker=worker,
    )


# =============================================================================
# Subscription Helpers
# =============================================================================

@pytest.fixture
def subscribe(store):
    """Store a subscription for a user (as billing sync would)."""
    from compliance_quota.core.quota import BillingInterval, SubscriptionState

    async def _subscribe(
        user_id: str,
        tier_name: str = "starter",
        interval: BillingInterval = BillingInterval.monthly,
    ):
        return await store.save_subscription(
            SubscriptionState(
                user_id=user_id,
                email=f"{user_id}@example.com",
                subscribed=True,
                tier_name=tier_name,
                billing_interval=interval,
            )
        )

    return _subscribe


# =============================================================================
# Integration Test Markers
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    if not os.getenv("RUN_INTEGRATION_TESTS"):
        skip_integration = pytest.mark.skip(
            reason="Set RUN_INTEGRATION_TESTS=1 to run integration tests"
        )
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)
