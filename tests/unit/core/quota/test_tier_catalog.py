"""Tests for the tier catalog and its TTL cache."""

import pytest
from unittest.mock import AsyncMock


def _tier(name, uploads, size_mb, order, monthly_price=None, yearly_price=None):
    from compliance_quota.core.quota import TierDefinition
    return TierDefinition(
        tier_name=name,
        monthly_upload_limit=uploads,
        file_size_limit_mb=size_mb,
        sort_order=order,
        stripe_monthly_price_id=monthly_price,
        stripe_yearly_price_id=yearly_price,
    )


class TestTierCatalog:
    """Tests for TierCatalog lookups and validation."""

    def test_default_catalog_has_three_ordered_tiers(self):
        """Test the built-in catalog ships starter, professional, enterprise."""
        from compliance_quota.core.quota import TierCatalog

        catalog = TierCatalog.default()

        assert [t.tier_name for t in catalog.tiers()] == ["starter", "professional", "enterprise"]
        assert len(catalog) == 3

    def test_default_tier_limits(self):
        """Test default upload and file-size limits per tier."""
        from compliance_quota.core.quota import TierCatalog

        catalog = TierCatalog.default()

        assert catalog.lookup("starter").monthly_upload_limit == 100
        assert catalog.lookup("starter").file_size_limit_mb == 1.0
        assert catalog.lookup("professional").monthly_upload_limit == 250
        assert catalog.lookup("professional").file_size_limit_mb == 2.0
        assert catalog.lookup("enterprise").monthly_upload_limit == 500
        assert catalog.lookup("enterprise").file_size_limit_mb == 3.0

    def test_lookup_is_case_insensitive(self):
        """Test tier names match regardless of case and whitespace."""
        from compliance_quota.core.quota import TierCatalog

        catalog = TierCatalog.default()

        assert catalog.lookup("Professional").tier_name == "professional"
        assert catalog.lookup("  ENTERPRISE ").tier_name == "enterprise"
        assert "Starter" in catalog

    def test_lookup_unknown_tier_raises(self):
        """Test unknown tier names are an error, never a default tier."""
        from compliance_quota.core.quota import ConfigurationError, TierCatalog, TierNotFoundError

        catalog = TierCatalog.default()

        with pytest.raises(TierNotFoundError) as exc_info:
            catalog.lookup("gold")

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.status_code == 503

    def test_lookup_missing_tier_raises(self):
        """Test a missing tier name raises instead of defaulting."""
        from compliance_quota.core.quota import TierCatalog, TierNotFoundError

        catalog = TierCatalog.default()

        with pytest.raises(TierNotFoundError):
            catalog.lookup(None)
        with pytest.raises(TierNotFoundError):
            catalog.lookup("")

    def test_catalog_rejects_decreasing_upload_limits(self):
        """Test a higher tier cannot have fewer uploads than a lower one."""
        from compliance_quota.core.quota import TierCatalog, TierCatalogError

        with pytest.raises(TierCatalogError):
            TierCatalog([_tier("basic", 100, 1.0, 1), _tier("plus", 50, 2.0, 2)])

    def test_catalog_rejects_decreasing_file_size_limits(self):
        """Test a higher tier cannot have a smaller file-size limit."""
        from compliance_quota.core.quota import TierCatalog, TierCatalogError

        with pytest.raises(TierCatalogError):
            TierCatalog([_tier("basic", 100, 2.0, 1), _tier("plus", 200, 1.0, 2)])

    def test_catalog_rejects_duplicate_tiers(self):
        """Test tier names must be unique after normalization."""
        from compliance_quota.core.quota import TierCatalog, TierCatalogError

        with pytest.raises(TierCatalogError):
            TierCatalog([_tier("basic", 100, 1.0, 1), _tier("BASIC", 200, 2.0, 2)])

    def test_catalog_rejects_price_mapped_twice(self):
        """Test one billing price cannot map to two tiers."""
        from compliance_quota.core.quota import TierCatalog, TierCatalogError

        with pytest.raises(TierCatalogError):
            TierCatalog([
                _tier("basic", 100, 1.0, 1, monthly_price="price_x"),
                _tier("plus", 200, 2.0, 2, yearly_price="price_x"),
            ])

    def test_tier_for_price_returns_tier_and_interval(self):
        """Test billing prices map to a tier and billing interval."""
        from compliance_quota.core.quota import BillingInterval, TierCatalog

        catalog = TierCatalog([
            _tier("basic", 100, 1.0, 1, "price_basic_m", "price_basic_y"),
            _tier("plus", 200, 2.0, 2, "price_plus_m", "price_plus_y"),
        ])

        tier, interval = catalog.tier_for_price("price_plus_y")

        assert tier.tier_name == "plus"
        assert interval == BillingInterval.yearly

    def test_tier_for_unknown_price_raises(self):
        """Test unmapped prices raise instead of guessing from amounts."""
        from compliance_quota.core.quota import TierCatalog, TierNotFoundError

        catalog = TierCatalog.default()

        with pytest.raises(TierNotFoundError):
            catalog.tier_for_price("price_unknown")

    def test_next_tier(self):
        """Test upgrade suggestions follow catalog order."""
        from compliance_quota.core.quota import TierCatalog

        catalog = TierCatalog.default()

        assert catalog.next_tier(None).tier_name == "starter"
        assert catalog.next_tier("starter").tier_name == "professional"
        assert catalog.next_tier("professional").tier_name == "enterprise"
        assert catalog.next_tier("enterprise") is None

    def test_tiers_sorted_by_sort_order(self):
        """Test tiers are ordered by sort_order regardless of input order."""
        from compliance_quota.core.quota import TierCatalog

        catalog = TierCatalog([_tier("plus", 200, 2.0, 2), _tier("basic", 100, 1.0, 1)])

        assert [t.tier_name for t in catalog.tiers()] == ["basic", "plus"]


class TestTierCatalogCache:
    """Tests for TierCatalogCache."""

    @pytest.mark.asyncio
    async def test_get_loads_once_within_ttl(self, store):
        """Test the store is read once while the cache is valid."""
        from compliance_quota.core.quota import TierCatalogCache

        store.list_tiers = AsyncMock(wraps=store.list_tiers)
        cache = TierCatalogCache(store, ttl_seconds=3600)

        first = await cache.get()
        second = await cache.get()

        assert first is second
        assert store.list_tiers.await_count == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_reload(self, store):
        """Test invalidate picks up tier changes from the store."""
        from compliance_quota.core.quota import TierCatalogCache, TierDefinition

        cache = TierCatalogCache(store, ttl_seconds=3600)
        await cache.get()

        await store.upsert_tier(TierDefinition(
            tier_name="agency",
            monthly_upload_limit=1000,
            file_size_limit_mb=5.0,
            sort_order=4,
        ))
        assert "agency" not in await cache.get()

        cache.invalidate()

        assert "agency" in await cache.get()

    @pytest.mark.asyncio
    async def test_zero_ttl_always_reloads(self, store):
        """Test a zero TTL reads the store on every call."""
        from compliance_quota.core.quota import TierCatalogCache

        store.list_tiers = AsyncMock(wraps=store.list_tiers)
        cache = TierCatalogCache(store, ttl_seconds=0)

        await cache.get()
        await cache.get()

        assert store.list_tiers.await_count == 2
