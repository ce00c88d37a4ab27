# =============================================================================
# rental_core/offline/sync_engine.py
# Replay of Locally-Saved Operations to Supabase
# =============================================================================
"""
SyncEngine - pushes operations that fell back to local storage while the
user was signed in (Supabase unreachable, timed out, or rejected) back to
Supabase.

Features:
- Manual sync (sync_now) and optional background sync thread
- Strict queue order; a failure stops the batch so later operations never
  overtake earlier ones
- Retry limit per operation
- Sync status tracking and callbacks
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from rental_core.data.supabase_client import RemoteStoreClient
from rental_core.errors import RemoteStoreError
from rental_core.logging import get_logger
from rental_core.offline.local_store import LocalStore

logger = get_logger(__name__)


@dataclass
class SyncState:
    """Current sync state."""
    is_syncing: bool = False
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    pending_count: int = 0
    failed_count: int = 0
    total_synced: int = 0
    last_error: Optional[str] = None


class SyncEngine:
    """
    Replays the local sync queue against Supabase for the signed-in user.

    Usage:
        engine = SyncEngine(store, remote, lambda: user_id)
        engine.sync_now()      # Push now
        engine.start()         # Or keep pushing in the background
    """

    # Configuration
    SYNC_INTERVAL = 30          # Seconds between background sync attempts
    MAX_RETRY_ATTEMPTS = 5      # Attempts before an operation is parked as failed
    BATCH_SIZE = 50             # Operations per sync batch

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteStoreClient,
        user_id_provider: Callable[[], Optional[str]],
    ):
        self.store = store
        self.remote = remote
        self._user_id_provider = user_id_provider
        self._state = SyncState()
        self._sync_lock = threading.Lock()
        self._sync_thread: Optional[threading.Thread] = None
        self._stop_sync = threading.Event()
        self._callbacks: List[Callable[[SyncState], None]] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def pending_count(self) -> int:
        user_id = self._user_id_provider()
        if not user_id:
            return 0
        return self.store.get_pending_count(user_id)

    # =========================================================================
    # BACKGROUND THREAD
    # =========================================================================

    def start(self) -> None:
        """Start background sync thread."""
        if self._sync_thread is not None and self._sync_thread.is_alive():
            return

        self._stop_sync.clear()
        self._sync_thread = threading.Thread(
            target=self._sync_loop,
            daemon=True,
            name="SyncEngine",
        )
        self._sync_thread.start()
        logger.info("Sync engine started")

    def stop(self) -> None:
        """Stop background sync thread."""
        self._stop_sync.set()
        if self._sync_thread:
            self._sync_thread.join(timeout=10)
            self._sync_thread = None
        logger.info("Sync engine stopped")

    def _sync_loop(self) -> None:
        while not self._stop_sync.is_set():
            if self._stop_sync.wait(timeout=self.SYNC_INTERVAL):
                break
            try:
                self.sync_now()
            except Exception as e:
                logger.error(f"Sync error: {e}")

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_now(self) -> bool:
        """
        Push pending operations for the signed-in user.

        Returns:
            True if the queue was fully drained
        """
        user_id = self._user_id_provider()
        if not user_id or not self.remote.is_connected():
            logger.debug("Cannot sync: no session or Supabase not configured")
            return False

        # One sync at a time; a concurrent call just reports "not drained"
        if not self._sync_lock.acquire(blocking=False):
            return False

        self._state.is_syncing = True
        self._state.last_sync = datetime.now()
        self._notify_callbacks()

        try:
            return self._perform_sync(user_id)
        finally:
            self._state.is_syncing = False
            self._state.pending_count = self.store.get_pending_count(user_id)
            self._sync_lock.release()
            self._notify_callbacks()

    def _perform_sync(self, user_id: str) -> bool:
        pending = self.store.get_pending_sync(user_id, limit=self.BATCH_SIZE)
        if not pending:
            self._state.last_sync_success = datetime.now()
            return True

        logger.info(f"Syncing {len(pending)} operations")
        synced = 0

        for op in pending:
            try:
                self._sync_operation(op, user_id)
            except RemoteStoreError as e:
                give_up = op["attempts"] + 1 >= self.MAX_RETRY_ATTEMPTS
                self.store.mark_sync_failed(op["id"], str(e), give_up=give_up)
                self._state.failed_count += 1
                self._state.last_error = str(e)
                logger.warning(
                    f"Sync of {op['operation']} {op['table']}/{op['record_id']} failed"
                    f"{' permanently' if give_up else ''}: {e}"
                )
                # Preserve queue order: stop at the first failure
                break

            self.store.mark_synced(op["id"])
            synced += 1

        self._state.total_synced += synced
        drained = self.store.get_pending_count(user_id) == 0
        if drained:
            self._state.last_sync_success = datetime.now()

        logger.info(f"Sync complete: {synced} of {len(pending)} operations pushed")
        return drained

    def _sync_operation(self, op: Dict[str, Any], user_id: str) -> None:
        """Apply one queued operation to Supabase (raises RemoteStoreError)."""
        table = op["table"]
        operation = op["operation"]
        data = op["data"]

        if operation == "INSERT":
            self.remote.insert(table, {**data, "user_id": user_id})
        elif operation == "UPDATE":
            fields = {k: v for k, v in data.items() if k not in ("id", "user_id", "created_at")}
            if fields:
                self.remote.update(table, op["record_id"], user_id, fields)
        elif operation == "DELETE":
            self.remote.delete(table, op["record_id"], user_id)
        else:
            logger.warning(f"Dropping unknown sync operation: {operation}")

    # =========================================================================
    # CALLBACKS & STATUS
    # =========================================================================

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        return {
            "is_syncing": self._state.is_syncing,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": self._state.last_sync_success.isoformat() if self._state.last_sync_success else None,
            "pending_count": self.pending_count,
            "failed_count": self._state.failed_count,
            "total_synced": self._state.total_synced,
            "last_error": self._state.last_error,
        }
