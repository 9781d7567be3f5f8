"""Dialect-aware INSERT ... ON CONFLICT helpers.

PostgreSQL and SQLite share the ``on_conflict_do_nothing`` /
``on_conflict_do_update`` API but live in different dialect modules, so the
statement has to be built for the dialect the session is bound to.
"""

from typing import Any, Dict, Iterable, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(session: AsyncSession, table):
    """Return the dialect specific ``insert`` construct for ``table``."""
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(table)
    if dialect_name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"ON CONFLICT is not supported on {dialect_name}")


async def insert_if_absent(
    session: AsyncSession,
    table,
    values: Dict[str, Any],
    conflict_columns: Iterable[str],
    returning,
) -> Optional[Any]:
    """
    Insert a row unless one with the same conflict key exists.

    Returns the ``returning`` column of the new row, or None when the row
    already existed and nothing was written.
    """
    stmt = (
        dialect_insert(session, table)
        .values(**values)
        .on_conflict_do_nothing(index_elements=list(conflict_columns))
        .returning(returning)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
