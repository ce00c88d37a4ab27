# =============================================================================
# rental_core/offline/local_store.py
# Local SQLite Store for Offline Operations
# =============================================================================
"""
LocalStore - SQLite-backed key/value store for collection snapshots.

Features:
- One JSON array per collection key, rewritten wholesale on every mutation
- Keys namespaced by user id so accounts never see each other's data
- Sync queue of operations that fell back to local while signed in
- Thread-local connections, transactional writes
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rental_core.errors import CorruptLocalStateError, LocalStoreError
from rental_core.logging import get_logger

logger = get_logger(__name__)


def namespaced_key(key: str, user_id: Optional[str] = None) -> str:
    """Prefix a collection key with the owning user id (anonymous: no prefix)."""
    return f"{user_id}:{key}" if user_id else key


class LocalStore:
    """
    Local SQLite store used when there is no session or Supabase is unreachable.
    """

    DEFAULT_DB_PATH = Path("local_data") / "rental_manager.db"

    SCHEMA = {
        "snapshots": """
            CREATE TABLE IF NOT EXISTS snapshots (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "sync_queue": """
            CREATE TABLE IF NOT EXISTS sync_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                operation TEXT NOT NULL,
                table_name TEXT NOT NULL,
                record_id TEXT,
                user_id TEXT NOT NULL,
                data_json TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                attempts INTEGER DEFAULT 0,
                last_attempt TEXT,
                status TEXT DEFAULT 'pending',
                error_message TEXT
            )
        """,
    }

    def __init__(self, db_path: Optional[Path] = None):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path or self.DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise LocalStoreError(f"Local store write failed: {e}") from e
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self.transaction() as conn:
            for table_name, schema in self.SCHEMA.items():
                conn.execute(schema)
                logger.debug(f"Created/verified table: {table_name}")

        self._initialized = True
        logger.info(f"Local store initialized at: {self.db_path}")

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def read_snapshot(self, key: str) -> Optional[List[Dict[str, Any]]]:
        """
        Read the JSON array stored under key.

        Returns:
            List of records, or None when the key is absent

        Raises:
            CorruptLocalStateError: If the stored value is not a JSON array
        """
        row = self._get_connection().execute(
            "SELECT value FROM snapshots WHERE key = ?", [key]
        ).fetchone()
        if row is None:
            return None

        try:
            records = json.loads(row["value"])
        except (TypeError, json.JSONDecodeError) as e:
            raise CorruptLocalStateError(f"Snapshot is not valid JSON: {e}", key=key) from e

        if not isinstance(records, list):
            raise CorruptLocalStateError("Snapshot is not a JSON array", key=key)
        return records

    def write_snapshot(self, key: str, records: List[Dict[str, Any]]) -> None:
        """Replace the snapshot stored under key."""
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO snapshots (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, json.dumps(records), datetime.now().isoformat()],
            )

    def clear_namespace(self, user_id: str) -> int:
        """
        Remove every snapshot and queued operation belonging to one user.

        Returns:
            Number of snapshot keys removed
        """
        prefix = namespaced_key("", user_id)
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM snapshots WHERE substr(key, 1, ?) = ?",
                [len(prefix), prefix],
            )
            conn.execute("DELETE FROM sync_queue WHERE user_id = ?", [user_id])
            removed = cursor.rowcount

        logger.info(f"Cleared {removed} local snapshots for user {user_id}")
        return removed

    # =========================================================================
    # SYNC QUEUE MANAGEMENT
    # =========================================================================

    def queue_sync(
        self,
        operation: str,
        table: str,
        record_id: Optional[str],
        user_id: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record an operation that could not reach Supabase."""
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO sync_queue (operation, table_name, record_id, user_id, data_json)
                VALUES (?, ?, ?, ?, ?)
                """,
                [operation, table, record_id, user_id, json.dumps(data or {})],
            )

    def get_pending_sync(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Get pending sync operations for a user, oldest first."""
        rows = self._get_connection().execute(
            """
            SELECT * FROM sync_queue
            WHERE status = 'pending' AND user_id = ?
            ORDER BY id ASC
            LIMIT ?
            """,
            [user_id, limit],
        ).fetchall()
        return [
            {
                "id": row["id"],
                "operation": row["operation"],
                "table": row["table_name"],
                "record_id": row["record_id"],
                "data": json.loads(row["data_json"]) if row["data_json"] else {},
                "created_at": row["created_at"],
                "attempts": row["attempts"],
            }
            for row in rows
        ]

    def mark_synced(self, sync_id: int) -> None:
        """Mark a sync operation as completed."""
        with self.transaction() as conn:
            conn.execute("UPDATE sync_queue SET status = 'synced' WHERE id = ?", [sync_id])

    def mark_sync_failed(self, sync_id: int, error: str, give_up: bool = False) -> None:
        """Record a failed attempt; give_up moves the operation out of the queue."""
        with self.transaction() as conn:
            conn.execute(
                """
                UPDATE sync_queue
                SET status = ?, attempts = attempts + 1,
                    last_attempt = ?, error_message = ?
                WHERE id = ?
                """,
                ["failed" if give_up else "pending", datetime.now().isoformat(), error, sync_id],
            )

    def discard_pending(self, table: str, record_id: str, user_id: str) -> None:
        """Drop queued operations for a record that no longer exists remotely."""
        with self.transaction() as conn:
            conn.execute(
                """
                DELETE FROM sync_queue
                WHERE status = 'pending' AND table_name = ? AND record_id = ? AND user_id = ?
                """,
                [table, record_id, user_id],
            )

    def get_pending_count(self, user_id: Optional[str] = None) -> int:
        """Count pending sync operations (for one user, or all)."""
        if user_id is None:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count FROM sync_queue WHERE status = 'pending'"
            ).fetchone()
        else:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count FROM sync_queue WHERE status = 'pending' AND user_id = ?",
                [user_id],
            ).fetchone()
        return row["count"] if row else 0

    def close(self) -> None:
        """Close this thread's database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None
