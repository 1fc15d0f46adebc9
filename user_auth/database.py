"""Database pool, schema migrations, and schema health for the users store."""

from pathlib import Path
from typing import List, Optional

import asyncpg
import structlog

from user_auth.config import get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

# Objects the account code relies on: the refresh-token pair check keeps
# hash and expiry in step, and the LOWER(email) index backs case-insensitive
# uniqueness.
REQUIRED_TABLES = ("users", "user_roles")
REQUIRED_CONSTRAINTS = ("users_refresh_token_pair",)
REQUIRED_INDEXES = ("users_email_lower_idx", "users_username_idx")

DB_HEALTHY = "healthy"
DB_SCHEMA_INCOMPLETE = "schema_incomplete"
DB_UNAVAILABLE = "unavailable"

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool.

    Raises:
        RuntimeError: If pool is not initialized
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Create the connection pool sized from settings."""
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
            command_timeout=settings.postgres_command_timeout,
        )
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.postgres_pool_min_size,
        max_size=settings.postgres_pool_max_size,
    )
    return _pool


async def close_database() -> None:
    """Close the database connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database_pool_closed")


async def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> List[str]:
    """Apply pending SQL migrations in filename order, then verify the schema.

    Applied filenames are recorded in schema_migrations, so each file runs
    once and inside its own transaction.

    Returns:
        Filenames applied by this call

    Raises:
        RuntimeError: If required schema objects are missing afterwards
    """
    pool = await get_pool()
    migration_files = sorted(migrations_dir.glob("*.sql"))

    if not migration_files:
        logger.warning("no_migrations_found", path=str(migrations_dir))

    applied: List[str] = []

    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                filename VARCHAR(255) PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        rows = await conn.fetch("SELECT filename FROM schema_migrations")
        done = {row["filename"] for row in rows}

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
            except Exception as e:
                logger.error("migration_failed", file=migration_file.name, error=str(e))
                raise
            applied.append(migration_file.name)
            logger.info("migration_applied", file=migration_file.name)

        missing = await missing_schema_objects(conn)

    if missing:
        logger.error("schema_incomplete", missing=missing)
        raise RuntimeError(f"Schema is missing required objects: {', '.join(missing)}")

    return applied


async def missing_schema_objects(conn: asyncpg.Connection) -> List[str]:
    """Names of required tables, constraints, and indexes not present."""
    tables = await conn.fetch(
        "SELECT tablename AS name FROM pg_tables WHERE tablename = ANY($1::text[])",
        list(REQUIRED_TABLES),
    )
    constraints = await conn.fetch(
        "SELECT conname AS name FROM pg_constraint WHERE conname = ANY($1::text[])",
        list(REQUIRED_CONSTRAINTS),
    )
    indexes = await conn.fetch(
        "SELECT indexname AS name FROM pg_indexes WHERE indexname = ANY($1::text[])",
        list(REQUIRED_INDEXES),
    )
    present = {row["name"] for row in [*tables, *constraints, *indexes]}
    return [
        name
        for name in (*REQUIRED_TABLES, *REQUIRED_CONSTRAINTS, *REQUIRED_INDEXES)
        if name not in present
    ]


async def health_check() -> str:
    """Report whether the users store can serve account requests.

    Returns:
        DB_HEALTHY, DB_SCHEMA_INCOMPLETE, or DB_UNAVAILABLE
    """
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            missing = await missing_schema_objects(conn)
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return DB_UNAVAILABLE

    if missing:
        logger.warning("database_schema_incomplete", missing=missing)
        return DB_SCHEMA_INCOMPLETE
    return DB_HEALTHY
