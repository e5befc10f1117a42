"""
DevHive Database Schema Definitions

Base schema, additive column migrations and indexes for the SQLite
coordination store. Everything here is safe to re-apply on every open.
"""

import sqlite3
from typing import List, Set, Tuple

SCHEMA_SQLITE = """
CREATE TABLE IF NOT EXISTS sprints (
    id TEXT PRIMARY KEY,
    config_file TEXT,
    project_path TEXT,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'completed')),
    started_at TEXT NOT NULL,
    completed_at TEXT
);

CREATE TABLE IF NOT EXISTS roles (
    name TEXT PRIMARY KEY,
    description TEXT,
    role_file TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS workers (
    name TEXT PRIMARY KEY,
    sprint_id TEXT NOT NULL REFERENCES sprints(id),
    branch TEXT NOT NULL,
    role_name TEXT,
    worktree_path TEXT,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'working', 'completed', 'blocked', 'error')),
    current_task TEXT,
    last_commit TEXT,
    error_count INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_worker TEXT NOT NULL,
    to_worker TEXT NOT NULL,
    message_type TEXT NOT NULL DEFAULT 'info',
    subject TEXT,
    content TEXT NOT NULL,
    read_at TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    worker TEXT,
    data TEXT,
    created_at TEXT NOT NULL
);
"""

# (table, column, column definition), applied in order when the column is missing
MIGRATIONS: Tuple[Tuple[str, str, str], ...] = (
    (
        "workers",
        "session_state",
        "TEXT NOT NULL DEFAULT 'stopped' "
        "CHECK (session_state IN ('running', 'waiting_permission', 'idle', 'stopped'))",
    ),
    ("roles", "args", "TEXT"),
    ("workers", "progress", "INTEGER NOT NULL DEFAULT 0 CHECK (progress BETWEEN 0 AND 100)"),
    ("workers", "activity", "TEXT"),
)

# Created after migrations since some reference migrated columns.
INDEXES_SQLITE = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_sprints_single_active ON sprints(status) WHERE status = 'active';
CREATE INDEX IF NOT EXISTS idx_workers_sprint ON workers(sprint_id);
CREATE INDEX IF NOT EXISTS idx_workers_session_state ON workers(session_state);
CREATE INDEX IF NOT EXISTS idx_messages_unread ON messages(to_worker, read_at);
CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type);
CREATE INDEX IF NOT EXISTS idx_events_created_at ON events(created_at);
"""


def table_columns(conn: sqlite3.Connection, table: str) -> Set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def apply_migrations(conn: sqlite3.Connection) -> List[str]:
    """Add every missing migrated column; returns ``table.column`` for each one applied."""
    applied: List[str] = []
    columns_by_table = {}
    for table, column, ddl in MIGRATIONS:
        if table not in columns_by_table:
            columns_by_table[table] = table_columns(conn, table)
        if column in columns_by_table[table]:
            continue
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
        columns_by_table[table].add(column)
        applied.append(f"{table}.{column}")
    return applied


def demote_extra_active_sprints(conn: sqlite3.Connection, completed_at: str) -> List[str]:
    """Keep only the newest active sprint; mark older active ones completed.

    Databases written before the single-active index existed may hold several
    active sprints, and the index cannot be created over them.
    """
    rows = conn.execute(
        "SELECT id FROM sprints WHERE status = 'active' ORDER BY started_at DESC, rowid DESC"
    ).fetchall()
    extra = [row[0] for row in rows[1:]]
    for sprint_id in extra:
        conn.execute(
            "UPDATE sprints SET status = 'completed', completed_at = ? WHERE id = ?",
            (completed_at, sprint_id),
        )
    return extra
