"""DB connection and schema for the local record store (sqlite3)."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS docs (
        id          INTEGER PRIMARY KEY,
        slug        TEXT NOT NULL UNIQUE,
        content     TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS meta (
        id          INTEGER PRIMARY KEY,
        path        TEXT NOT NULL UNIQUE,
        content     TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS api_specs (
        id          INTEGER PRIMARY KEY,
        name        TEXT NOT NULL UNIQUE,
        spec_url    TEXT NOT NULL,
        version     TEXT,
        base_url    TEXT,
        description TEXT,
        updated_at  TEXT NOT NULL
    );
"""


def get_conn(db_path: Path) -> sqlite3.Connection:
    """Open the store DB with WAL mode, creating the parent directory.

    Detects a 0-byte DB file up front: that is a corrupted store, not an
    empty one, and opening it would otherwise fail with an opaque I/O error.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    if db_path.exists() and db_path.stat().st_size == 0:
        msg = f"Record store DB is empty (0 bytes): {db_path}"
        raise sqlite3.OperationalError(msg)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode=WAL")
    except sqlite3.DatabaseError:
        conn.close()
        raise
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA)
    conn.commit()
