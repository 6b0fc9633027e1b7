"""
Tier catalog: the single source of truth for tier entitlements.

Every entry point (upload validation, document processing, billing sync)
reads tier limits through this module. Tier names are matched
case-insensitively and unknown names are an error, never a default tier.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

from compliance_quota.constants import DEFAULT_TIERS, TIER_CACHE_TTL_SECONDS
from .exceptions import TierCatalogError, TierNotFoundError
from .schemas import BillingInterval, TierDefinition, normalize_tier_name

if TYPE_CHECKING:
    from .store import UsageStore

logger = logging.getLogger(__name__)


class TierCatalog:
    """
    Immutable, validated set of tier definitions.

    Tiers are ordered by ``sort_order``. Upload and file-size limits must
    be non-decreasing along that order; a catalog that violates this is
    rejected at construction.
    """

    def __init__(self, definitions: Iterable[TierDefinition]):
        ordered = sorted(definitions, key=lambda t: t.sort_order)
        self._tiers: Dict[str, TierDefinition] = {}
        self._prices: Dict[str, Tuple[str, BillingInterval]] = {}

        for tier in ordered:
            if tier.tier_name in self._tiers:
                raise TierCatalogError(
                    f"Duplicate tier definition: {tier.tier_name}",
                    details={"tier_name": tier.tier_name},
                )
            self._tiers[tier.tier_name] = tier
            self._register_price(tier.stripe_monthly_price_id, tier, BillingInterval.monthly)
            self._register_price(tier.stripe_yearly_price_id, tier, BillingInterval.yearly)

        self._ordered: List[TierDefinition] = list(self._tiers.values())
        self._validate_ordering()

    def _register_price(
        self, price_id: Optional[str], tier: TierDefinition, interval: BillingInterval
    ) -> None:
        if not price_id:
            return
        if price_id in self._prices:
            raise TierCatalogError(
                f"Billing price {price_id} is mapped to more than one tier",
                details={"price_id": price_id},
            )
        self._prices[price_id] = (tier.tier_name, interval)

    def _validate_ordering(self) -> None:
        for lower, higher in zip(self._ordered, self._ordered[1:]):
            if higher.monthly_upload_limit < lower.monthly_upload_limit:
                raise TierCatalogError(
                    f"Upload limit of {higher.tier_name} ({higher.monthly_upload_limit}) "
                    f"is below {lower.tier_name} ({lower.monthly_upload_limit})",
                    details={"lower": lower.tier_name, "higher": higher.tier_name},
                )
            if higher.file_size_limit_mb < lower.file_size_limit_mb:
                raise TierCatalogError(
                    f"File size limit of {higher.tier_name} ({higher.file_size_limit_mb}MB) "
                    f"is below {lower.tier_name} ({lower.file_size_limit_mb}MB)",
                    details={"lower": lower.tier_name, "higher": higher.tier_name},
                )

    @classmethod
    def default(cls) -> "TierCatalog":
        """Build the catalog from the built-in seed tiers."""
        return cls(TierDefinition(**tier) for tier in DEFAULT_TIERS)

    def lookup(self, tier_name: Optional[str]) -> TierDefinition:
        """
        Look up a tier by name (case-insensitive).

        Raises:
            TierNotFoundError: If the name is empty or unknown
        """
        tier = self._tiers.get(normalize_tier_name(tier_name) or "")
        if tier is None:
            raise TierNotFoundError(tier_name)
        return tier

    def tier_for_price(self, price_id: str) -> Tuple[TierDefinition, BillingInterval]:
        """
        Map a billing price identifier to its tier and interval.

        Raises:
            TierNotFoundError: If the price is not mapped to any tier
        """
        mapping = self._prices.get(price_id)
        if mapping is None:
            raise TierNotFoundError(f"price:{price_id}")
        tier_name, interval = mapping
        return self._tiers[tier_name], interval

    def next_tier(self, tier_name: Optional[str]) -> Optional[TierDefinition]:
        """Return the tier after ``tier_name`` in catalog order, if any."""
        normalized = normalize_tier_name(tier_name)
        if normalized is None:
            return self._ordered[0] if self._ordered else None
        for index, tier in enumerate(self._ordered):
            if tier.tier_name == normalized:
                if index + 1 < len(self._ordered):
                    return self._ordered[index + 1]
                return None
        return None

    def tiers(self) -> List[TierDefinition]:
        """All tiers in catalog order."""
        return list(self._ordered)

    def __contains__(self, tier_name: object) -> bool:
        return isinstance(tier_name, str) and normalize_tier_name(tier_name) in self._tiers

    def __len__(self) -> int:
        return len(self._ordered)


class TierCatalogCache:
    """
    TTL cache in front of the stored tier definitions.

    Tiers rarely change, so the catalog is rebuilt at most once per TTL.
    """

    def __init__(self, store: "UsageStore", ttl_seconds: int = TIER_CACHE_TTL_SECONDS):
        self._store = store
        self._ttl = ttl_seconds
        self._catalog: Optional[TierCatalog] = None
        self._loaded_at: float = 0.0
        self._lock = asyncio.Lock()

    def _is_valid(self) -> bool:
        return self._catalog is not None and (time.time() - self._loaded_at) < self._ttl

    async def get(self) -> TierCatalog:
        """
        Get the current catalog, reloading from the store when expired.

        Raises:
            TierCatalogError: If stored tiers violate catalog invariants
            UpstreamUnavailableError: If the store cannot be read
        """
        if self._is_valid():
            return self._catalog

        async with self._lock:
            if self._is_valid():
                return self._catalog

            definitions = await self._store.list_tiers()
            if not definitions:
                logger.warning("No active tiers found in store")
            catalog = TierCatalog(definitions)
            self._catalog = catalog
            self._loaded_at = time.time()
            logger.debug(f"Loaded tier catalog with {len(catalog)} tiers")
            return catalog

    def invalidate(self) -> None:
        """Drop the cached catalog."""
        self._catalog = None
        self._loaded_at = 0.0


__all__ = [
    "TierCatalog",
    "TierCatalogCache",
]
