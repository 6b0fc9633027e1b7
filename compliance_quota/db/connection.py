"""
PostgreSQL async connection management using SQLAlchemy 2.0.

Engines are kept per event loop: the API server, the setup scripts and the
test runner each drive their own loop, and an asyncpg pool is bound to the
loop that opened it.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from compliance_quota.constants import (
    DEFAULT_DB_MAX_OVERFLOW,
    DEFAULT_DB_POOL_RECYCLE,
    DEFAULT_DB_POOL_SIZE,
    DEFAULT_DB_POOL_TIMEOUT,
)
from compliance_quota.utils.env_utils import parse_bool_env, parse_int_env

load_dotenv()

logger = logging.getLogger(__name__)


class DatabaseConfig:
    """Database settings read from the environment."""

    def __init__(self):
        # false runs the service on the in-memory usage store
        self.enabled = parse_bool_env("DATABASE_ENABLED", True)

        name = os.getenv("DATABASE_NAME", "compliance_quota")
        user = os.getenv("DATABASE_USER", "postgres")
        password = os.getenv("DATABASE_PASSWORD", "")
        host = os.getenv("DATABASE_HOST", "localhost")
        port = parse_int_env("DATABASE_PORT", 5432)
        self.database_url = os.getenv(
            "DATABASE_URL",
            f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}",
        )

        self.pool_size = parse_int_env("DB_POOL_SIZE", DEFAULT_DB_POOL_SIZE)
        self.max_overflow = parse_int_env("DB_MAX_OVERFLOW", DEFAULT_DB_MAX_OVERFLOW)
        self.pool_timeout = parse_int_env("DB_POOL_TIMEOUT", DEFAULT_DB_POOL_TIMEOUT)
        self.pool_recycle = parse_int_env("DB_POOL_RECYCLE", DEFAULT_DB_POOL_RECYCLE)
        self.echo_sql = parse_bool_env("DB_ECHO", False)

    @property
    def safe_url(self) -> str:
        """Database URL with the password masked, for logs."""
        if "@" not in self.database_url:
            return self.database_url
        credentials, host = self.database_url.rsplit("@", 1)
        scheme, _, rest = credentials.partition("://")
        user, sep, _ = rest.partition(":")
        if not sep:
            return self.database_url
        return f"{scheme}://{user}:****@{host}"


class DatabaseManager:
    """
    Process-wide owner of async engines and session factories.

    There is one instance per process (``db`` below). Nothing connects
    until a loop first asks for a session or an engine.
    """

    _instance: Optional["DatabaseManager"] = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.config = DatabaseConfig()
            instance._engines = {}
            instance._sessionmakers = {}
            cls._instance = instance
        return cls._instance

    @staticmethod
    def _loop_key() -> int:
        try:
            return id(asyncio.get_running_loop())
        except RuntimeError:
            return 0

    def _engine_for_loop(self) -> Optional[AsyncEngine]:
        if not self.config.enabled:
            return None

        key = self._loop_key()
        engine = self._engines.get(key)
        if engine is None:
            logger.info(f"Creating database engine: {self.config.safe_url}")
            engine = create_async_engine(
                self.config.database_url,
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=self.config.pool_timeout,
                pool_recycle=self.config.pool_recycle,
                pool_pre_ping=True,
                echo=self.config.echo_sql,
            )
            self._engines[key] = engine
            self._sessionmakers[key] = async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return engine

    async def get_engine_async(self) -> Optional[AsyncEngine]:
        """Engine for the running loop, or None when the database is disabled."""
        return self._engine_for_loop()

    async def test_connection(self, timeout: float = 15.0) -> bool:
        """Run ``SELECT 1``; False on error or after ``timeout`` seconds."""
        if not self.config.enabled:
            logger.info("Database disabled, skipping connection test")
            return True

        engine = self._engine_for_loop()
        try:
            async with asyncio.timeout(timeout):
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except asyncio.TimeoutError:
            logger.error(f"Database connection test timed out after {timeout}s")
            return False
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False
        return True

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[Optional[AsyncSession], None]:
        """
        Transactional session: commit on success, rollback on error.

        Yields None when the database is disabled; callers decide how to fail.
        """
        if self._engine_for_loop() is None:
            yield None
            return

        session = self._sessionmakers[self._loop_key()]()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def _run_metadata(self, action: str) -> None:
        from .models import Base

        engine = self._engine_for_loop()
        if engine is None:
            raise RuntimeError("Database is disabled (DATABASE_ENABLED=false)")
        async with engine.begin() as conn:
            await conn.run_sync(getattr(Base.metadata, action))

    async def create_tables(self):
        """Create every table declared in ``models`` (setup script, development)."""
        await self._run_metadata("create_all")
        logger.info("Database tables created")

    async def drop_tables(self):
        await self._run_metadata("drop_all")
        logger.info("Database tables dropped")

    def get_pool_stats(self) -> Dict[str, Any]:
        """Pool usage keyed by event loop id."""
        return {
            str(key): {
                "size": engine.pool.size(),
                "checked_out": engine.pool.checkedout(),
                "overflow": engine.pool.overflow(),
            }
            for key, engine in self._engines.items()
        }

    async def close_all(self):
        """
        Dispose engines at shutdown.

        Only the running loop's engine can be awaited here; the others are
        forgotten and go away with their loops.
        """
        engine = self._engines.get(self._loop_key())
        if engine is not None:
            try:
                await engine.dispose()
            except Exception as e:
                logger.debug(f"Error disposing engine: {e}")
        self._engines.clear()
        self._sessionmakers.clear()
        logger.info("Database connections closed")


db = DatabaseManager()
