"""SQLite database connections, schema initialization and write transactions.

Two connections are kept open on the same database file. Writes go through
write_transaction() on the writer connection. Reads made outside a write
transaction use the reader connection; with WAL journaling it only ever sees
committed data, so an in-flight publish is never observed half-applied.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from pathlib import Path

import aiosqlite

# Global connection holders
_db_connection: aiosqlite.Connection | None = None
_read_connection: aiosqlite.Connection | None = None

# Serializes write transactions on the writer connection
_write_lock: asyncio.Lock | None = None

# Serializes multi-statement snapshots on the reader connection
_read_lock: asyncio.Lock | None = None

# Task that owns the open write transaction; tasks spawned from it inherit
# the value but do not own the transaction
_transaction_owner: ContextVar[asyncio.Task | None] = ContextVar(
    "callflow_transaction_owner", default=None
)


async def init_database(db_path: str) -> None:
    """Initialize the database connections and create schema."""
    global _db_connection, _read_connection, _write_lock, _read_lock

    # Ensure the data directory exists
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # Autocommit mode: transactions are opened explicitly by write_transaction()
    _db_connection = await aiosqlite.connect(db_path, isolation_level=None)
    _db_connection.row_factory = aiosqlite.Row
    _write_lock = asyncio.Lock()

    # WAL lets the reader keep reading committed data while a write is open
    await _db_connection.execute("PRAGMA journal_mode = WAL")
    await _db_connection.execute("PRAGMA foreign_keys = ON")

    # Create schema
    await _create_schema(_db_connection)

    _read_connection = await aiosqlite.connect(db_path, isolation_level=None)
    _read_connection.row_factory = aiosqlite.Row
    _read_lock = asyncio.Lock()
    await _read_connection.execute("PRAGMA foreign_keys = ON")


async def close_database() -> None:
    """Close the database connections."""
    global _db_connection, _read_connection, _write_lock, _read_lock
    if _read_connection:
        await _read_connection.close()
        _read_connection = None
    if _db_connection:
        await _db_connection.close()
        _db_connection = None
    _write_lock = None
    _read_lock = None


def _writer() -> aiosqlite.Connection:
    if _db_connection is None or _write_lock is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _db_connection


async def get_db() -> aiosqlite.Connection:
    """Get the connection for a read.

    Inside write_transaction() this is the writer connection, so the
    transaction sees its own uncommitted changes. Elsewhere it is the reader
    connection, which only sees committed data.
    """
    if in_transaction():
        return _writer()
    if _read_connection is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _read_connection


def in_transaction() -> bool:
    """Whether the current task is running inside write_transaction()."""
    owner = _transaction_owner.get()
    return owner is not None and owner is asyncio.current_task()


@asynccontextmanager
async def write_transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Run a unit of work as one database transaction.

    Commits when the block exits normally and rolls back on any exception.
    Nested use by the same task joins the enclosing transaction, so store
    methods called from the versioning services never commit on their own.
    """
    db = _writer()

    if in_transaction():
        yield db
        return

    async with _write_lock:
        token = _transaction_owner.set(asyncio.current_task())
        try:
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield db
            except BaseException:
                await db.rollback()
                raise
            await db.commit()
        finally:
            _transaction_owner.reset(token)


@asynccontextmanager
async def read_snapshot() -> AsyncIterator[aiosqlite.Connection]:
    """Run several reads against one consistent committed snapshot.

    Inside write_transaction() the enclosing transaction is used instead.
    """
    if in_transaction():
        yield _writer()
        return

    db = await get_db()
    if _read_lock is None:
        raise RuntimeError("Database not initialized. Call init_database first.")

    async with _read_lock:
        await db.execute("BEGIN")
        try:
            yield db
        finally:
            await db.rollback()


async def _create_schema(db: aiosqlite.Connection) -> None:
    """Create database tables and indexes."""
    # Flow registry (flow -> owning customer/project)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS flows (
            flow_id TEXT PRIMARY KEY,
            name TEXT,
            customer_id TEXT,
            project_id TEXT,
            init_segment TEXT NOT NULL DEFAULT 'init',
            is_active INTEGER NOT NULL DEFAULT 1,
            date_created TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # ChangeSets table
    await db.execute("""
        CREATE TABLE IF NOT EXISTS changesets (
            change_set_id TEXT PRIMARY KEY,
            flow_id TEXT NOT NULL,
            customer_id TEXT,
            project_id TEXT,
            status TEXT NOT NULL DEFAULT 'draft',
            version_name TEXT,
            description TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_by TEXT,
            date_created TEXT NOT NULL DEFAULT (datetime('now')),
            published_by TEXT,
            date_published TEXT,
            FOREIGN KEY (flow_id) REFERENCES flows(flow_id),
            CHECK (status IN ('draft', 'validated', 'published', 'discarded', 'archived'))
        )
    """)

    # Segments table (graph nodes); scope NULL = published
    await db.execute("""
        CREATE TABLE IF NOT EXISTS segments (
            segment_id TEXT PRIMARY KEY,
            flow_id TEXT NOT NULL,
            name TEXT NOT NULL,
            type_id TEXT NOT NULL,
            display_name TEXT,
            scope TEXT,
            segment_order INTEGER NOT NULL DEFAULT 0,
            config_json TEXT NOT NULL DEFAULT '[]',
            hooks_json TEXT,
            date_created TEXT NOT NULL DEFAULT (datetime('now')),
            date_updated TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (flow_id) REFERENCES flows(flow_id),
            FOREIGN KEY (scope) REFERENCES changesets(change_set_id)
        )
    """)

    # Transitions table (graph edges); target NULL = terminal
    await db.execute("""
        CREATE TABLE IF NOT EXISTS transitions (
            transition_id TEXT PRIMARY KEY,
            flow_id TEXT NOT NULL,
            source_segment_id TEXT NOT NULL,
            result_name TEXT NOT NULL,
            target_segment_id TEXT,
            scope TEXT,
            transition_order INTEGER NOT NULL DEFAULT 0,
            context_key TEXT,
            params_json TEXT,
            date_created TEXT NOT NULL DEFAULT (datetime('now')),
            FOREIGN KEY (flow_id) REFERENCES flows(flow_id),
            FOREIGN KEY (source_segment_id) REFERENCES segments(segment_id) ON DELETE CASCADE,
            FOREIGN KEY (target_segment_id) REFERENCES segments(segment_id) ON DELETE CASCADE,
            FOREIGN KEY (scope) REFERENCES changesets(change_set_id),
            UNIQUE(source_segment_id, result_name)
        )
    """)

    # Segment name is unique per (flow, scope); NULL scope folded to ''
    await db.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_segments_flow_scope_name
        ON segments(flow_id, COALESCE(scope, ''), name)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_segments_flow_scope
        ON segments(flow_id, scope, segment_order)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_transitions_flow_scope
        ON transitions(flow_id, scope)
    """)

    # Reverse lookups when deleting a target segment
    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_transitions_target
        ON transitions(target_segment_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_changesets_flow_status_active
        ON changesets(flow_id, status, is_active, date_created)
    """)
