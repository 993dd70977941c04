"""
Database connection and schema management for Danbooru Explorer.
"""

import json
import os
import sqlite3
import threading
from typing import Any
from danbooru_explorer.config.constants import DATABASE_PATH


class Database:
    """SQLite store for the image cache index, settings and search history."""

    def __init__(self, path: str = DATABASE_PATH):
        """
        Open the database and create tables if they don't exist.

        Args:
            path: Database file, ":memory:" for a throwaway database
        """
        if path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        self.path = path
        # Shared between worker threads, every statement runs under self.lock
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.lock = threading.RLock()
        self._create_schema()

    def _create_schema(self) -> None:
        """Create database schema if it doesn't exist."""
        with self.lock:
            cursor = self.conn.cursor()
            cursor.executescript(
                """
                CREATE TABLE IF NOT EXISTS cached_images (
                    url TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    last_access INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_cached_images_last_access
                    ON cached_images (last_access);

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
            """
            )
            self.conn.commit()

    def get_cursor(self) -> sqlite3.Cursor:
        """Get a database cursor."""
        return self.conn.cursor()

    def commit(self) -> None:
        """Commit current transaction."""
        self.conn.commit()

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Read a JSON-encoded setting.

        Args:
            key: Setting name
            default: Value returned when the setting is missing

        Returns:
            Decoded setting value or default
        """
        with self.lock:
            cursor = self.get_cursor()
            cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
        if row is None:
            return default
        return json.loads(row["value"])

    def set_setting(self, key: str, value: Any) -> None:
        """Store a setting as JSON."""
        with self.lock:
            cursor = self.get_cursor()
            cursor.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, json.dumps(value)),
            )
            self.commit()

    def delete_setting(self, key: str) -> None:
        with self.lock:
            self.get_cursor().execute("DELETE FROM settings WHERE key = ?", (key,))
            self.commit()

    def close(self) -> None:
        """Close database connection."""
        with self.lock:
            self.conn.close()

