"""Dialect-aware SQL helpers — dialect detection, upsert, savepoints."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import event

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or the raw dialect name."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name in ("postgresql", "postgres"):
        return "postgresql"
    return name


async def upsert(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str] | None = None,
) -> int:
    """Insert *values* into *model*'s table, updating on conflict. Returns rowcount.

    Uses ``INSERT ... ON CONFLICT DO UPDATE`` (SQLite and PostgreSQL).
    *conflict_keys* must match a unique constraint on the table.  Only
    *update_keys* are overwritten on conflict (defaults to every
    non-conflict column in *values*).
    """
    if dialect == "postgresql":
        from sqlalchemy.dialects import postgresql as dialect_module
    elif dialect == "sqlite":
        from sqlalchemy.dialects import sqlite as dialect_module
    else:
        raise ValueError(f"Upsert is not supported for dialect {dialect!r}")

    stmt = dialect_module.insert(model).values(**values)

    if update_keys is not None:
        update_cols = {k: v for k, v in values.items() if k in update_keys}
    else:
        update_cols = {k: v for k, v in values.items() if k not in conflict_keys}

    if update_cols:
        stmt = stmt.on_conflict_do_update(index_elements=conflict_keys, set_=update_cols)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_keys)

    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]


def _sqlite_autocommit_driver(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLAlchemy emits BEGIN itself, see _sqlite_begin
    dbapi_connection.isolation_level = None


def _sqlite_begin(conn: Any) -> None:
    conn.exec_driver_sql("BEGIN")


def enable_sqlite_savepoints(engine: Engine | AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN and SAVEPOINT itself on a SQLite engine.

    The sqlite3 and aiosqlite drivers begin transactions lazily and ignore
    SAVEPOINT semantics unless the driver's own transaction handling is
    switched off.  Call before the engine opens its first connection.
    No-op for other dialects, and safe to call twice.
    """
    sync_engine = getattr(engine, "sync_engine", engine)
    if get_dialect(sync_engine) != "sqlite":
        return
    if not event.contains(sync_engine, "connect", _sqlite_autocommit_driver):
        event.listen(sync_engine, "connect", _sqlite_autocommit_driver)
    if not event.contains(sync_engine, "begin", _sqlite_begin):
        event.listen(sync_engine, "begin", _sqlite_begin)


@asynccontextmanager
async def savepoint(session: AsyncSession) -> AsyncIterator[None]:
    """Run the block inside a SAVEPOINT so a failure does not abort the outer transaction.

    SQLite engines need ``enable_sqlite_savepoints`` (``Database`` does this).
    """
    async with session.begin_nested():
        yield
