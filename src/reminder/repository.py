"""
Persistence adapter for the reminder collection.
Stores the whole collection as one JSON blob under a fixed key in a
SQLite-backed key-value table.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from typing import List, Optional

from config.logging_config import get_logger
from config import settings
from src.reminder.errors import PersistenceError
from src.reminder.models import ReminderRecord

logger = get_logger(__name__)


class ReminderRepository:
    """
    Whole-collection persistence over a thread-safe SQLite key-value table.
    Every save overwrites the previous value entirely; there is no merge.
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    );
    """

    def __init__(self, db_path: str = None, key: str = None):
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database (default from settings)
            key: Storage key holding the collection (default from settings)
        """
        self.db_path = db_path or str(settings.DB_PATH)
        self.key = key or settings.STORAGE_KEY
        self.lock = threading.Lock()

        logger.info(f"ReminderRepository initialized: {self.db_path} [{self.key}]")
        self._initialize_database()

    def _initialize_database(self) -> None:
        """Create database schema if it doesn't exist."""
        try:
            with self._get_connection() as conn:
                conn.executescript(self.SCHEMA)
                conn.commit()
            logger.debug("Key-value schema initialized")

        except sqlite3.Error as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise PersistenceError(f"Cannot initialize {self.db_path}: {e}") from e

    @contextmanager
    def _get_connection(self):
        """
        Get database connection (context manager).

        Yields:
            SQLite connection
        """
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def save(self, records: List[ReminderRecord]) -> None:
        """
        Serialize the full ordered collection and write it under the key.

        Args:
            records: Complete collection, in order

        Raises:
            PersistenceError: If encoding or the write fails
        """
        try:
            blob = json.dumps([record.to_dict() for record in records]).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot encode reminders: {e}") from e

        self.write_blob(blob)
        logger.debug(f"Saved {len(records)} reminders ({len(blob)} bytes)")

    def load(self) -> List[ReminderRecord]:
        """
        Read and decode the collection.

        Returns:
            Stored records, or an empty list if absent, unreadable or malformed
        """
        try:
            blob = self.read_blob()
        except PersistenceError as e:
            logger.warning(f"Could not read reminders, starting empty: {e}")
            return []

        if blob is None:
            logger.info("No saved reminders found")
            return []

        try:
            items = json.loads(blob)
            if not isinstance(items, list):
                raise ValueError(f"expected a list, got {type(items).__name__}")
            records = [ReminderRecord.from_dict(item) for item in items]

        except (ValueError, KeyError, TypeError, AttributeError, OverflowError, OSError) as e:
            logger.warning(f"Saved reminders are malformed, starting empty: {e}")
            return []

        logger.info(f"Loaded {len(records)} reminders")
        return records

    def read_blob(self) -> Optional[bytes]:
        """
        Read the raw stored value for the key.

        Returns:
            Raw bytes or None if the key is absent
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT value FROM kv_store WHERE key = ?",
                    (self.key,)
                )
                row = cursor.fetchone()

        except sqlite3.Error as e:
            raise PersistenceError(f"Read failed for {self.key}: {e}") from e

        if row is None:
            return None

        value = row[0]
        return value.encode('utf-8') if isinstance(value, str) else bytes(value)

    def write_blob(self, blob: bytes) -> None:
        """
        Replace the raw stored value for the key.

        Args:
            blob: Bytes to store
        """
        with self.lock:
            try:
                with self._get_connection() as conn:
                    conn.execute(
                        """
                        INSERT INTO kv_store (key, value, updated_at)
                        VALUES (?, ?, CURRENT_TIMESTAMP)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                        """,
                        (self.key, sqlite3.Binary(blob))
                    )
                    conn.commit()

            except sqlite3.Error as e:
                logger.error(f"Failed to write {self.key}: {e}")
                raise PersistenceError(f"Write failed for {self.key}: {e}") from e
