"""
Dialect-aware ``INSERT ... ON CONFLICT DO UPDATE`` helper.

Postgres and SQLite share the same ``on_conflict_do_update`` API, so the
statement is built from whichever dialect the session is bound to.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from dflexsync.db.base import utc_now

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def upsert(
    db: AsyncSession,
    model: Any,
    values: dict[str, Any],
    index_elements: list[str],
) -> None:
    """
    Insert a row or fully replace the non-key columns of the existing one.

    Args:
        db: Database session
        model: Mapped model class
        values: Column values, including the conflict key(s)
        index_elements: Columns of the unique constraint to conflict on

    Raises:
        NotImplementedError: If the bound dialect has no upsert support
    """
    dialect = db.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Upsert is not supported for dialect {dialect}")

    values = {**values, "updated_at": utc_now()}
    stmt = insert(model).values(**values)
    update_cols = {
        key: getattr(stmt.excluded, key) for key in values if key not in index_elements
    }
    stmt = stmt.on_conflict_do_update(index_elements=index_elements, set_=update_cols)
    await db.execute(stmt)
