#!/usr/bin/env python3
"""
Seed subscription tiers into the database.

Creates the default Starter, Professional and Enterprise tiers. Billing
price ids are read from the environment so the catalog can map provider
prices to tiers:

    STRIPE_PRICE_STARTER_MONTHLY, STRIPE_PRICE_STARTER_YEARLY, ...

Usage:
    python scripts/seed_tiers.py           # Seed default tiers (upsert)
    python scripts/seed_tiers.py --list    # List current tiers
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from compliance_quota.constants import DEFAULT_TIERS  # noqa: E402
from compliance_quota.core.quota import TierCatalog, TierDefinition, effective_upload_limit  # noqa: E402
from compliance_quota.core.quota.schemas import BillingInterval  # noqa: E402
from compliance_quota.core.quota.store.sql import SqlUsageStore  # noqa: E402
from compliance_quota.db.connection import db  # noqa: E402
from compliance_quota.utils.env_utils import parse_str_env  # noqa: E402


def build_default_tiers():
    """Default tiers with price ids filled in from the environment."""
    tiers = []
    for config in DEFAULT_TIERS:
        name = config["tier_name"].upper()
        tiers.append(TierDefinition(
            **config,
            stripe_monthly_price_id=parse_str_env(f"STRIPE_PRICE_{name}_MONTHLY"),
            stripe_yearly_price_id=parse_str_env(f"STRIPE_PRICE_{name}_YEARLY"),
        ))
    # Validates ordering and price-id uniqueness before anything is written
    TierCatalog(tiers)
    return tiers


async def list_tiers(store: SqlUsageStore):
    """List existing subscription tiers."""
    tiers = await store.list_tiers()
    if not tiers:
        logger.info("No subscription tiers found in database")
        return

    logger.info(f"Subscription Tiers ({len(tiers)}):")
    logger.info("-" * 80)
    for tier in tiers:
        logger.info(
            f"  {tier.tier_name:12} | "
            f"Uploads: {tier.monthly_upload_limit:>5}/mo "
            f"({effective_upload_limit(tier, BillingInterval.yearly):>6}/yr) | "
            f"Files: {tier.file_size_limit_mb:g} MB | "
            f"${tier.monthly_price_cents / 100:.2f}/mo | "
            f"prices: {tier.stripe_monthly_price_id or '-'}, {tier.stripe_yearly_price_id or '-'}"
        )


async def seed_tiers(store: SqlUsageStore):
    """Upsert the default subscription tiers."""
    for tier in build_default_tiers():
        await store.upsert_tier(tier)
        logger.info(f"Upserted tier: {tier.tier_name}")
    logger.info("Successfully seeded subscription tiers!")


async def run(args) -> int:
    store = SqlUsageStore()
    try:
        if args.list:
            await list_tiers(store)
        else:
            await seed_tiers(store)
            await list_tiers(store)
        return 0
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        return 1
    finally:
        await db.close_all()


def main():
    parser = argparse.ArgumentParser(
        description="Seed subscription tiers into the database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Default Tiers:
    Starter      - 100 reports/mo, files up to 1 MB ($199/mo)
    Professional - 250 reports/mo, files up to 2 MB ($399/mo)
    Enterprise   - 500 reports/mo, files up to 3 MB ($799/mo)
        """
    )
    parser.add_argument(
        "--list", "-l",
        action="store_true",
        help="List current subscription tiers"
    )

    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
