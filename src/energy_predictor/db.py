"""Database connection and schema management."""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "energy-predictor" / "predictor.db"

SCHEMA = """
-- Key-value records (saved sessions, stored API key), values are JSON text
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed.

    ENERGY_PREDICTOR_DB overrides the default location.
    """
    db_path = Path(os.environ.get("ENERGY_PREDICTOR_DB") or DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT key, LENGTH(value) as size, updated_at FROM kv_store ORDER BY key"
        ).fetchall()
        return {
            row["key"]: {"size": row["size"], "updated_at": row["updated_at"]}
            for row in rows
        }
