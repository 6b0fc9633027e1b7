#!/usr/bin/env python3
"""
Create, drop or inspect the usage-store tables.

The schema comes from the ORM models in compliance_quota/db/models.py;
there are no hand-written DDL files.

    python scripts/db_setup.py setup           # create tables
    python scripts/db_setup.py teardown [-f]   # drop tables
    python scripts/db_setup.py reset [-f]      # drop, then create
    python scripts/db_setup.py status          # connectivity and table list

Connection settings come from DATABASE_URL, or from DATABASE_NAME,
DATABASE_USER, DATABASE_PASSWORD, DATABASE_HOST and DATABASE_PORT.
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("db_setup")

from compliance_quota.db.connection import db  # noqa: E402
from compliance_quota.db.models import Base  # noqa: E402

TABLES = sorted(Base.metadata.tables)


def confirmed(question: str, force: bool) -> bool:
    if force:
        return True
    if input(f"{question} (yes/no): ").strip().lower() == "yes":
        return True
    logger.info("Cancelled")
    return False


async def setup() -> None:
    logger.info(f"Creating tables on {db.config.safe_url}")
    await db.create_tables()
    logger.info(f"Created: {', '.join(TABLES)}")


async def teardown(force: bool) -> None:
    if not confirmed("Drop all usage-store tables?", force):
        return
    await db.drop_tables()
    logger.info(f"Dropped: {', '.join(TABLES)}")


async def reset(force: bool) -> None:
    if not confirmed("Reset the database? Usage counters and trial flags are lost.", force):
        return
    await db.drop_tables()
    await setup()


async def status() -> bool:
    ok = await db.test_connection()
    logger.info(f"{db.config.safe_url}: {'reachable' if ok else 'UNREACHABLE'}")
    logger.info(f"Model tables: {', '.join(TABLES)}")
    logger.info(f"Pools: {db.get_pool_stats()}")
    return ok


async def run(command: str, force: bool) -> int:
    try:
        if command == "setup":
            await setup()
        elif command == "teardown":
            await teardown(force)
        elif command == "reset":
            await reset(force)
        elif not await status():
            return 1
        return 0
    except Exception as e:
        logger.error(f"{command} failed: {e}")
        return 1
    finally:
        await db.close_all()


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("command", choices=["setup", "teardown", "reset", "status"])
    parser.add_argument("-f", "--force", action="store_true", help="do not ask for confirmation")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.command, args.force)))


if __name__ == "__main__":
    main()
