"""
Database module for persisting swivel counter state.

Holds two kinds of data:
- settings: independently addressable key/value slots (counter value,
  calibration headings, tolerance, debounce) read back at startup with typed
  fallbacks.
- count_events: history of every counter change (automatic or manual).

Schema versioning ensures automatic migration when schema changes.
"""

from __future__ import annotations

import logging
import math
import os
import sqlite3
import time
from typing import Any, Dict, List, Optional, Tuple

from models.count_event import CountEvent

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 1

# Settings slots
KEY_COUNTER = "counter"
KEY_ORIGIN = "origin_heading"
KEY_DESTINATION = "destination_heading"
KEY_TOLERANCE = "tolerance_deg"
KEY_DEBOUNCE = "debounce_ms"


def waypoint_key(index: int) -> str:
    return f"waypoint_heading_{index}"


class Database:
    """
    SQLite store for settings slots and count events.

    Reads of settings never raise: absent or malformed values are replaced
    by the caller's default.
    """

    def __init__(self, local_database_path: str):
        """
        Initialize the database.

        Args:
            local_database_path: Path to the SQLite database file.
        """
        self.local_database_path = local_database_path
        self.conn: Optional[sqlite3.Connection] = None

        # Create directory if it doesn't exist
        db_dir = os.path.dirname(local_database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Database initialized at {local_database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            self.conn = sqlite3.connect(self.local_database_path)
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        """Get current schema version from database."""
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _drop_old_tables(self) -> None:
        """Drop all managed tables."""
        cursor = self._get_connection().cursor()

        for table in ("settings", "count_events", "schema_meta"):
            try:
                cursor.execute(f"DROP TABLE IF EXISTS {table}")
                logging.debug(f"Dropped table: {table}")
            except sqlite3.Error as e:
                logging.warning(f"Could not drop table {table}: {e}")

        self._get_connection().commit()

    def _create_schema(self) -> None:
        cursor = self._get_connection().cursor()

        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        cursor.execute("""
            CREATE TABLE settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        cursor.execute("""
            CREATE TABLE count_events (
                id INTEGER PRIMARY KEY,
                ts INTEGER NOT NULL,
                kind TEXT NOT NULL,
                delta REAL NOT NULL,
                value REAL NOT NULL,
                heading REAL
            )
        """)

        cursor.execute("CREATE INDEX idx_count_events_ts ON count_events(ts)")
        cursor.execute("CREATE INDEX idx_count_events_kind ON count_events(kind)")

        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )

        self._get_connection().commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """
        Initialize the database schema.

        If schema_meta is missing or version doesn't match EXPECTED_SCHEMA_VERSION,
        drops all old tables and creates fresh schema.
        """
        try:
            self._get_connection()

            current_version = self._get_schema_version()

            if current_version != EXPECTED_SCHEMA_VERSION:
                if current_version is not None:
                    logging.warning(
                        f"Schema version mismatch: found {current_version}, "
                        f"expected {EXPECTED_SCHEMA_VERSION}. Dropping old tables."
                    )
                else:
                    logging.info("No schema found, creating fresh database.")

                self._drop_old_tables()
                self._create_schema()
            else:
                logging.info(f"Schema version {current_version} is current")

        except sqlite3.Error as e:
            logging.error(f"Database initialization error: {e}")
            raise

    # -------------------------------------------------------------------------
    # Settings slots
    # -------------------------------------------------------------------------

    def _read_setting(self, key: str) -> Optional[str]:
        try:
            cursor = self._get_connection().cursor()
            cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error as e:
            logging.error(f"Error reading setting {key}: {e}")
            return None

    def save_setting(self, key: str, value: Any) -> None:
        """Write a slot; None removes it."""
        if value is None:
            self.delete_setting(key)
            return
        text = str(value)
        try:
            cursor = self._get_connection().cursor()
            cursor.execute("""
                INSERT INTO settings (key, value, updated_at) VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """, (key, text))
            self._get_connection().commit()
        except sqlite3.Error as e:
            logging.error(f"Error saving setting {key}: {e}")

    def delete_setting(self, key: str) -> None:
        try:
            cursor = self._get_connection().cursor()
            cursor.execute("DELETE FROM settings WHERE key = ?", (key,))
            self._get_connection().commit()
        except sqlite3.Error as e:
            logging.error(f"Error deleting setting {key}: {e}")

    def load_number(
        self,
        key: str,
        fallback: Optional[float],
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
    ) -> Optional[float]:
        """
        Read a numeric slot.

        Returns fallback when the slot is absent, not a finite number, or
        outside [min_value, max_value].
        """
        raw = self._read_setting(key)
        if raw is None:
            return fallback
        try:
            value = float(raw)
        except ValueError:
            logging.debug(f"Malformed value for {key}: {raw!r}, using default {fallback}")
            return fallback
        if not math.isfinite(value):
            logging.debug(f"Non-finite value for {key}: {raw!r}, using default {fallback}")
            return fallback
        if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
            logging.debug(f"Out-of-range value for {key}: {value}, using default {fallback}")
            return fallback
        return value

    def load_heading(self, key: str) -> Optional[float]:
        """Read a calibration heading slot; None when unset or invalid."""
        return self.load_number(key, None, min_value=0.0, max_value=360.0)

    # -------------------------------------------------------------------------
    # Count events
    # -------------------------------------------------------------------------

    def add_count_event(self, event: CountEvent) -> Optional[int]:
        """
        Record a counter change.

        Returns:
            ID of the inserted record, or None on error.
        """
        try:
            cursor = self._get_connection().cursor()

            ts_ms = int(event.timestamp * 1000)

            cursor.execute("""
                INSERT INTO count_events (ts, kind, delta, value, heading)
                VALUES (?, ?, ?, ?, ?)
            """, (ts_ms, event.kind, event.delta, event.value, event.heading))

            self._get_connection().commit()

            logging.debug(f"Count event added: kind={event.kind}, value={event.value}")
            return cursor.lastrowid

        except sqlite3.Error as e:
            logging.error(f"Error adding count event: {e}")
            return None

    def get_swivel_count(
        self,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
    ) -> int:
        """
        Number of automatic swivel events in a time range.

        Args:
            start_time: Start time as Unix timestamp (default: 24 hours ago).
            end_time: End time as Unix timestamp (default: now).
        """
        counts = self.get_counts_by_kind(start_time, end_time)
        return counts.get("swivel", 0)

    def get_counts_by_kind(
        self,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
    ) -> Dict[str, int]:
        """Event counts grouped by kind within a time range (default: last 24h)."""
        try:
            cursor = self._get_connection().cursor()

            if start_time is None:
                start_time = time.time() - 86400
            if end_time is None:
                end_time = time.time()

            cursor.execute("""
                SELECT kind, COUNT(*)
                FROM count_events
                WHERE ts BETWEEN ? AND ?
                GROUP BY kind
            """, (int(start_time * 1000), int(end_time * 1000)))

            return {row[0]: row[1] for row in cursor.fetchall()}

        except sqlite3.Error as e:
            logging.error(f"Error getting counts by kind: {e}")
            return {}

    def get_recent_events(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Get most recent count events, newest first.

        Args:
            limit: Maximum number of events to return.
        """
        try:
            self._get_connection().row_factory = sqlite3.Row
            cursor = self._get_connection().cursor()

            cursor.execute("""
                SELECT * FROM count_events
                ORDER BY ts DESC, id DESC
                LIMIT ?
            """, (limit,))

            events = [dict(row) for row in cursor.fetchall()]

            # Convert ts from ms to seconds for consistency
            for event in events:
                event["timestamp"] = event["ts"] / 1000.0

            return events

        except sqlite3.Error as e:
            logging.error(f"Error getting recent events: {e}")
            return []
        finally:
            if self.conn:
                self.conn.row_factory = None

    def get_daily_counts(self, days: int = 30) -> List[Tuple[str, int]]:
        """
        Get daily swivel counts for the past N days.

        Returns:
            List of (date_str, count) tuples.
        """
        try:
            cursor = self._get_connection().cursor()

            start_ms = int((time.time() - (days * 86400)) * 1000)

            cursor.execute("""
                SELECT
                    strftime('%Y-%m-%d', ts/1000, 'unixepoch', 'localtime') as date,
                    COUNT(*) as count
                FROM count_events
                WHERE ts >= ? AND kind = 'swivel'
                GROUP BY date
                ORDER BY date
            """, (start_ms,))

            return cursor.fetchall()

        except sqlite3.Error as e:
            logging.error(f"Error getting daily counts: {e}")
            return []

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def cleanup_old_data(self, retention_days: int = 30) -> int:
        """
        Remove count events older than retention period.

        Returns:
            Number of deleted events.
        """
        try:
            cursor = self._get_connection().cursor()

            cutoff_ms = int((time.time() - (retention_days * 86400)) * 1000)

            cursor.execute("DELETE FROM count_events WHERE ts < ?", (cutoff_ms,))

            deleted = cursor.rowcount
            self._get_connection().commit()

            if deleted > 0:
                logging.info(f"Cleaned up {deleted} events older than {retention_days} days")
            return deleted

        except sqlite3.Error as e:
            logging.error(f"Error cleaning up old data: {e}")
            return 0

    def close(self) -> None:
        """Close database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logging.info("Database connection closed")
