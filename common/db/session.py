"""
Engine and session factories.

The API serves concurrent webhook deliveries from a connection pool. The
billing sweep worker runs sequentially and sets ``DB_USE_NULLPOOL=true`` so
it never holds idle connections between sweeps.
"""

import time
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import pool, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.config import Settings, settings
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


def engine_options(config: Settings) -> Dict[str, Any]:
    """Engine keyword arguments for the configured pooling mode."""
    options: Dict[str, Any] = {
        "echo": config.debug,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": {
            # Unique names keep asyncpg prepared statements safe behind pgbouncer
            "prepared_statement_name_func": lambda: f"__asyncpg_{uuid4()}__",
        },
    }
    if config.db_use_nullpool:
        logger.info("Using NullPool - no connection pooling (worker mode)")
        options["poolclass"] = pool.NullPool
    else:
        logger.info(
            f"Using connection pooling - pool_size={config.db_pool_size}, max_overflow={config.db_pool_overflow}"
        )
        options["pool_size"] = config.db_pool_size
        options["max_overflow"] = config.db_pool_overflow
    return options


engine = create_async_engine(settings.async_database_url, **engine_options(settings))
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Same engine for now; point at a replica when one exists
AsyncSessionLocalReadonly = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db():
    """Request-scoped session for routes that talk to the database directly."""
    start = time.perf_counter()
    async with AsyncSessionLocal() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(f"Session acquire: {acquire_time * 1000:.2f}ms")

        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Rolling back due to error {e}")
            await session.rollback()
            raise


async def init_db():
    """
    Check connectivity at startup.

    The schema is owned by Alembic migrations. An unreachable database is
    logged, not raised, so the process still starts and the health routes
    can report it.
    """
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        logger.info(f"Database reachable at {settings.db_host}:{settings.db_port}")
    except Exception as e:
        logger.error(f"Database not reachable at startup: {e}")
