"""
asyncpg pool shared by the config and score repositories.

Lifecycle:
    init_db()       create the pool once, from Settings (lifespan startup)
    get_db_pool()   return the pool, creating it lazily on first use
    close_db()      close and forget the pool (lifespan shutdown)

Repositories never touch connections directly; they go through
execute_query / execute_query_one / execute_command, which borrow a pooled
connection for a single statement. ensure_schema() runs the DDL from
survey_ml.sql.schema when AUTO_CREATE_SCHEMA is on.

JSON Columns:
Flags, factors, emotions and settings bags are stored as JSONB. Each pooled
connection registers a JSON codec on creation so that those columns round-trip
as Python dicts and lists instead of raw strings.

Usage:
    await init_db()

    rows = await execute_query(get_all_configs_query())
    status = await execute_command(get_delete_config_query(), config_id)
    if affected_rows(status) == 0:
        ...

    await close_db()
"""

import json
import logging
from typing import Any, List, Optional

import asyncpg
from asyncpg import Connection, Pool

from survey_ml.core.config import get_settings
from survey_ml.sql.schema import get_schema_statements


logger = logging.getLogger(__name__)


# Set by init_db(), cleared by close_db()
_pool: Optional[Pool] = None


async def _init_connection(conn: Connection) -> None:
    """Register JSON/JSONB codecs so JSON columns decode to Python objects."""
    for type_name in ('json', 'jsonb'):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema='pg_catalog',
        )


# =============================================================================
# Pool Lifecycle
# =============================================================================

async def init_db() -> Pool:
    """
    Create the pool if it does not exist yet and return it.

    Raises:
        asyncpg.PostgresError: The server rejected the connection.
        OSError: The database host could not be reached.
    """
    global _pool

    if _pool is None:
        settings = get_settings()

        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
            init=_init_connection,
        )
        logger.info(
            f"Database pool created (min={settings.db_pool_min_size}, "
            f"max={settings.db_pool_max_size})"
        )

    return _pool


async def get_db_pool() -> Pool:
    """Return the shared pool, running init_db() first when needed."""
    if _pool is None:
        return await init_db()
    return _pool


async def close_db() -> None:
    """Close the pool. A later get_db_pool() call builds a fresh one."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Statement Helpers
# =============================================================================

async def execute_query(query: str, *args: Any) -> List[asyncpg.Record]:
    """Run a SELECT and return every row."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetch(query, *args)


async def execute_query_one(query: str, *args: Any) -> Optional[asyncpg.Record]:
    """Run a statement and return its first row, or None when it yields nothing."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetchrow(query, *args)


async def execute_command(query: str, *args: Any) -> str:
    """
    Run an INSERT/UPDATE/DELETE and return asyncpg's status tag.

    The tag ends with the affected-row count ('UPDATE 1', 'DELETE 0');
    see affected_rows().
    """
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.execute(query, *args)


def affected_rows(status: str) -> int:
    """Parse the affected-row count from an asyncpg command status string."""
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError, AttributeError):
        return 0


async def ensure_schema() -> None:
    """Create the service's tables and indexes if they do not exist yet."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in get_schema_statements():
                await conn.execute(statement)

    logger.info("Database schema ensured")
