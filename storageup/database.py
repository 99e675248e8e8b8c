"""PostgreSQL pool lifecycle and schema migrations for the credential store."""

import asyncio
from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from storageup.config import get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# Process-wide pool, created by init_database() during app startup
_pool: Optional[asyncpg.Pool] = None


class DatabaseUnavailableError(RuntimeError):
    """Raised when the credential store is used before its pool exists."""


async def get_pool() -> asyncpg.Pool:
    """Return the process-wide connection pool.

    Raises:
        DatabaseUnavailableError: If init_database() has not succeeded
    """
    if _pool is None:
        raise DatabaseUnavailableError(
            "Database pool not initialized. Call init_database() first."
        )
    return _pool


async def init_database() -> asyncpg.Pool:
    """Create the connection pool once; later calls return the same pool.

    Every statement on the pool is bounded by STORE_TIMEOUT_SECONDS.
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
            command_timeout=settings.store_timeout_seconds,
        )
    except (asyncpg.PostgresError, OSError) as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.postgres_pool_min_size,
        max_size=settings.postgres_pool_max_size,
    )
    return _pool


async def close_database() -> None:
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


async def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply pending SQL migrations in filename order.

    Applied filenames are recorded in ``schema_migrations``; each file runs
    at most once, inside its own transaction together with its record.

    Returns:
        Names of the migrations applied by this call
    """
    pool = await get_pool()
    migration_files = sorted(migrations_dir.glob("*.sql"))
    applied: list[str] = []

    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                filename TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        done = {row["filename"] for row in await conn.fetch("SELECT filename FROM schema_migrations")}

        for migration_file in migration_files:
            if migration_file.name in done:
                continue
            try:
                async with conn.transaction():
                    await conn.execute(migration_file.read_text())
                    await conn.execute(
                        "INSERT INTO schema_migrations (filename) VALUES ($1)",
                        migration_file.name,
                    )
            except asyncpg.PostgresError as e:
                logger.error("migration_failed", file=migration_file.name, error=str(e))
                raise
            applied.append(migration_file.name)
            logger.info("migration_applied", file=migration_file.name)

    if not applied:
        logger.info("migrations_up_to_date", path=str(migrations_dir))
    return applied


async def health_check() -> bool:
    """Return True if the pool exists and answers ``SELECT 1`` in time."""
    settings = get_settings()
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            result = await asyncio.wait_for(
                conn.fetchval("SELECT 1"),
                timeout=settings.store_timeout_seconds,
            )
        return result == 1
    except (DatabaseUnavailableError, asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
