"""Integration tests for the PostgreSQL usage store.

These tests run the conditional writes against a real database.

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/test_sql_usage_store.py -v
"""

import asyncio
from uuid import uuid4

import pytest
import pytest_asyncio

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def sql_store():
    """SqlUsageStore on freshly created tables; the engine is disposed afterwards."""
    from compliance_quota.core.quota.store.sql import SqlUsageStore
    from compliance_quota.db.connection import db

    await db.create_tables()
    yield SqlUsageStore()
    await db.close_all()


@pytest.fixture
def user_id():
    return f"it-user-{uuid4().hex[:8]}"


class TestConditionalIncrement:
    """Concurrent increments never exceed the stored limit."""

    @pytest.mark.asyncio
    async def test_concurrent_increments_stop_at_limit(self, sql_store, user_id):
        await sql_store.reset_usage(user_id, "starter", 3)

        results = await asyncio.gather(*(sql_store.increment_usage(user_id) for _ in range(10)))

        assert sum(r is not None for r in results) == 3
        assert (await sql_store.get_usage(user_id)).uploads_used == 3

    @pytest.mark.asyncio
    async def test_zero_limit_refuses(self, sql_store, user_id):
        assert await sql_store.increment_usage(user_id) is None


class TestConditionalReset:
    """Resets apply only while the observed baseline is still stored."""

    @pytest.mark.asyncio
    async def test_stale_reset_keeps_usage(self, sql_store, user_id):
        await sql_store.reset_usage(user_id, "starter", 3)
        await sql_store.increment_usage(user_id)

        record = await sql_store.reset_usage(user_id, "professional", 10, expected_baseline=None)

        assert record.baseline_tier == "starter"
        assert record.uploads_used == 1

    @pytest.mark.asyncio
    async def test_reset_from_observed_baseline_zeroes_counter(self, sql_store, user_id):
        await sql_store.reset_usage(user_id, "starter", 3)
        await sql_store.increment_usage(user_id)

        record = await sql_store.reset_usage(
            user_id, "professional", 10, expected_baseline="starter"
        )

        assert record.baseline_tier == "professional"
        assert record.uploads_used == 0
        assert record.effective_upload_limit == 10

    @pytest.mark.asyncio
    async def test_concurrent_resets_apply_once(self, sql_store, user_id):
        await sql_store.reset_usage(user_id, "starter", 3)

        first, second = await asyncio.gather(
            sql_store.reset_usage(user_id, "professional", 10, expected_baseline="starter"),
            sql_store.reset_usage(user_id, "professional", 10, expected_baseline="starter"),
        )
        await sql_store.increment_usage(user_id)
        repeated = await sql_store.reset_usage(
            user_id, "professional", 10, expected_baseline="starter"
        )

        assert first.baseline_tier == second.baseline_tier == "professional"
        assert repeated.uploads_used == 1

    @pytest.mark.asyncio
    async def test_limit_update_ignored_for_other_baseline(self, sql_store, user_id):
        await sql_store.reset_usage(user_id, "starter", 3)

        record = await sql_store.set_effective_limit(user_id, "professional", 10)

        assert record.effective_upload_limit == 3
