"""Dialect-aware INSERT ... ON CONFLICT helpers.

PostgreSQL in production, SQLite for local runs and tests. Both
dialects expose the same on_conflict_do_update/do_nothing API.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(db: AsyncSession, model: type[Any]) -> Any:
    """Return an INSERT construct for the dialect the session is bound to."""
    dialect = db.bind.dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}") from None
    return insert(model)


def upsert(
    db: AsyncSession,
    model: type[Any],
    values: dict[str, Any],
    conflict_keys: list[str],
) -> Any:
    """Build an upsert that fully replaces the non-key columns on conflict."""
    stmt = dialect_insert(db, model).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=conflict_keys,
        set_={k: stmt.excluded[k] for k in values if k not in conflict_keys},
    )
