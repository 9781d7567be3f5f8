"""
Operation-scoped database sessions.

Sessions are acquired lazily and released right after each operation so that
no connection is held while the billing core talks to the payment gateway.

Usage:
    # Single operation - acquires and releases immediately
    async with get_session() as session:
        result = await session.get(ClientEntity, client_id)

    # Several operations that must commit together
    async with transaction():
        await payment_repo.insert_if_absent(payment)
        await client_repo.apply_plan(client_id, plan)

See also:
    - common/db/context.py: ContextVar plumbing and the @readonly decorator
    - common/db/session.py: engine, session factories and the request-scoped get_db
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
    is_readonly_forced,
)

logger = get_logger(__name__)


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session. Commits on success (unless
    readonly) and rolls back on any exception, which is then re-raised.

    Nested calls reuse the enclosing transaction's session instead of opening
    a second one, so a service that opens a transaction can be called from
    another transaction without splitting the unit of work.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)
    if existing is not None:
        yield existing
        return

    session_factory = (
        AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
    )

    start = time.perf_counter()
    async with session_factory() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(
            f"Transaction session acquire: {acquire_time * 1000:.2f}ms, readonly={effective_readonly}"
        )

        token = set_current_session(session, readonly=effective_readonly)
        try:
            yield session
            if not effective_readonly:
                commit_start = time.perf_counter()
                await session.commit()
                commit_time = time.perf_counter() - commit_start
                logger.debug(f"Transaction commit: {commit_time * 1000:.2f}ms")
        except Exception as e:
            logger.error(f"Transaction rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token, readonly=effective_readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the session of an enclosing ``transaction()``; otherwise acquires a
    new session, commits (unless readonly) and releases it on exit.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)

    if existing:
        # Inside a transaction - the transaction owns commit/rollback
        yield existing
    else:
        session_factory = (
            AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
        )

        start = time.perf_counter()
        async with session_factory() as session:
            acquire_time = time.perf_counter() - start
            logger.debug(
                f"Operation session acquire: {acquire_time * 1000:.2f}ms, readonly={effective_readonly}"
            )

            try:
                yield session
                if not effective_readonly:
                    commit_start = time.perf_counter()
                    await session.commit()
                    commit_time = time.perf_counter() - commit_start
                    logger.debug(f"Operation commit: {commit_time * 1000:.2f}ms")
            except Exception as e:
                logger.error(f"Operation rollback due to: {e}")
                await session.rollback()
                raise
