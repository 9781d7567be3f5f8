"""
Database session context.

Holds the session of the current explicit transaction in a ContextVar so that
repositories called inside ``transaction()`` share one session and commit
together, while repositories called outside of it acquire and release a
session per operation.

Usage:
    # Payment ingestion - the client row lock, the payment row and the
    # entitlement update commit or roll back as one unit
    async with transaction():
        client = await client_repo.get_for_update(client_id)
        inserted = await payment_repo.insert_if_absent(command)
        await client_repo.apply_plan(client_id, plan, allowance, price)

    # Force readonly for a reporting call chain
    @readonly
    async def get_period_usage(client_id: str, start, end):
        ...
"""

from contextvars import ContextVar
from functools import wraps
from typing import Optional, Callable, TypeVar, ParamSpec

from sqlalchemy.ext.asyncio import AsyncSession


# Current write session (set inside a write transaction)
_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)

# Current read session (set inside a read transaction)
_read_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_read_session", default=None
)

_force_readonly: ContextVar[bool] = ContextVar("db_force_readonly", default=False)


def is_readonly_forced() -> bool:
    return _force_readonly.get()


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """
    Get the session of the enclosing transaction, if any.

    A call chain decorated with ``@readonly`` always resolves to the read session.
    """
    effective_readonly = readonly or is_readonly_forced()
    if effective_readonly:
        return _read_session.get()
    return _write_session.get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> object:
    """Bind a session to the context. Returns the token for reset."""
    if readonly:
        return _read_session.set(session)
    return _write_session.set(session)


def reset_current_session(token: object, readonly: bool = False) -> None:
    if readonly:
        _read_session.reset(token)
    else:
        _write_session.reset(token)


def in_transaction(readonly: bool = False) -> bool:
    return get_current_session(readonly=readonly) is not None


P = ParamSpec("P")
T = TypeVar("T")


def readonly(func: Callable[P, T]) -> Callable[P, T]:
    """
    Force every DB operation in the decorated call chain onto the read session.

    The read session never commits, so writes issued underneath are discarded.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        token = _force_readonly.set(True)
        try:
            return await func(*args, **kwargs)
        finally:
            _force_readonly.reset(token)

    return wrapper
