"""Key-value persistence for sessions and settings.

The store is read and written wholesale per key: callers load a whole
value, change it in memory and save it back. There is no locking; a
single user is assumed.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from .db import get_connection, init_db

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the store cannot be read or written."""
    pass


class KeyValueStore:
    """JSON values keyed by name, backed by SQLite."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        self._initialized = False

    def _ensure_schema(self) -> None:
        if self._initialized:
            return
        try:
            init_db(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Could not initialise database: {e}") from e
        self._initialized = True

    def load(self, key: str) -> Any | None:
        """Return the value stored under key, or None if there is none."""
        self._ensure_schema()
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

        if row is None:
            return None

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for '{key}' is not valid JSON: {e}") from e

    def save(self, key: str, value: Any | None) -> None:
        """Replace the value stored under key. Saving None removes the key."""
        self._ensure_schema()
        try:
            with get_connection(self.db_path) as conn:
                if value is None:
                    conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                else:
                    conn.execute(
                        """INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                           VALUES (?, ?, CURRENT_TIMESTAMP)""",
                        (key, json.dumps(value)),
                    )
                conn.commit()
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for '{key}' cannot be stored as JSON: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write '{key}': {e}") from e
        logger.debug("Saved key %s", key)
