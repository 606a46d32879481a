"""Async SQLAlchemy engine and session factory (SQLite-only).

Usage:
    engine = create_engine(settings.database_url)
    await init_schema(engine)
    async with get_session(engine) as session:
        ...
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from paddock.db.models import Base

logger = logging.getLogger(__name__)


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Enables WAL journal mode and a busy timeout so concurrent interaction
    handlers don't immediately fail with "database is locked".
    """
    connect_args: dict[str, object] = {"timeout": 15}

    engine = create_async_engine(database_url, echo=False, connect_args=connect_args)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn: object, connection_record: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[union-attr]
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=15000")
        # Roster set deletion relies on ON DELETE CASCADE to remove its teams.
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


# One session factory per engine instance, keyed by the sync engine identity.
_session_factories: dict[int, async_sessionmaker[AsyncSession]] = {}


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a cached session factory bound to *engine*."""
    key = id(engine.sync_engine)
    if key not in _session_factories:
        _session_factories[key] = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factories[key]


@asynccontextmanager
async def get_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session that auto-commits on success, rolls back on error."""
    factory = create_session_factory(engine)
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:  # Re-raise pattern: must catch all to ensure rollback on any error
            await session.rollback()
            raise


async def init_schema(engine: AsyncEngine) -> int:
    """Create missing tables, then add any columns older databases lack.

    Safe to call on every startup. Returns the number of columns added.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        added = await auto_migrate_schema(conn)
        await _backfill_event_channels(conn)
    if added:
        logger.info("schema_migrated columns_added=%d", added)
    return added


async def _backfill_event_channels(conn: AsyncConnection) -> None:
    """Fill channel_ids from the single channel_id column of older databases."""
    result = await conn.execute(text("PRAGMA table_info(events)"))
    if "channel_id" not in {row[1] for row in result.fetchall()}:
        return
    result = await conn.execute(
        text(
            "UPDATE events SET channel_ids = json_array(channel_id) "
            "WHERE channel_id IS NOT NULL AND channel_id != '' "
            "AND (channel_ids IS NULL OR channel_ids = '[]')"
        )
    )
    if result.rowcount:
        logger.info("schema_backfilled table=events column=channel_ids rows=%d", result.rowcount)


# ---------------------------------------------------------------------------
# Auto-migration: detect and add missing columns at startup
# ---------------------------------------------------------------------------

_SQLITE_TYPE_MAP: dict[str, str] = {
    "String": "VARCHAR",
    "Text": "TEXT",
    "Integer": "INTEGER",
    "Boolean": "BOOLEAN",
    "DateTime": "DATETIME",
    "JSON": "JSON",
    "NullType": "TEXT",
}


def _sqlite_col_type(sa_type: object) -> str:
    """Convert a SQLAlchemy type to a SQLite type string."""
    type_name = type(sa_type).__name__
    base = _SQLITE_TYPE_MAP.get(type_name, "TEXT")
    if type_name == "String" and getattr(sa_type, "length", None):
        return f"VARCHAR({sa_type.length})"  # type: ignore[attr-defined]
    return base


def _scalar_default_sql(column: object) -> str | None:
    """Extract a SQL DEFAULT literal from a column, or None.

    Callable defaults (e.g. ``default=list``) are Python-side only and have
    no SQL equivalent.
    """
    if column.server_default is not None:  # type: ignore[union-attr]
        return str(column.server_default.arg)  # type: ignore[union-attr]
    if column.default is not None and column.default.is_scalar:  # type: ignore[union-attr]
        val = column.default.arg  # type: ignore[union-attr]
        if val is None:
            return None
        if isinstance(val, bool):
            return "1" if val else "0"
        if isinstance(val, (int, float)):
            return str(val)
        if isinstance(val, str):
            escaped = val.replace("'", "''")
            return f"'{escaped}'"
    return None


async def auto_migrate_schema(conn: AsyncConnection) -> int:
    """Compare ORM models against the live SQLite schema, add missing columns.

    Columns that already exist are skipped, so running this twice is a
    no-op. Missing NOT NULL columns without a SQL default are logged and
    skipped, since existing rows would violate the constraint.

    Returns the number of columns added.
    """
    added = 0
    for table_name, table in Base.metadata.tables.items():
        result = await conn.execute(text(f"PRAGMA table_info({table_name})"))
        rows = result.fetchall()
        if not rows:
            continue
        existing_cols = {row[1] for row in rows}

        for column in table.columns:
            if column.name in existing_cols:
                continue

            col_type = _sqlite_col_type(column.type)
            default_sql = _scalar_default_sql(column)

            if default_sql is not None:
                col_def = f"{column.name} {col_type} DEFAULT {default_sql}"
            elif column.nullable:
                col_def = f"{column.name} {col_type}"
            else:
                logger.warning(
                    "auto_migrate: skipping %s.%s (NOT NULL with no SQL default)",
                    table_name,
                    column.name,
                )
                continue

            try:
                await conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {col_def}"))
            except OperationalError as exc:
                # Another process added it between PRAGMA and ALTER.
                if "duplicate column" not in str(exc).lower():
                    raise
                logger.info("auto_migrate: %s.%s already present", table_name, column.name)
                continue
            logger.info("auto_migrate: added %s.%s", table_name, column.name)
            added += 1

    return added
