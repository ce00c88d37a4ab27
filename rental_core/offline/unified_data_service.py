# =============================================================================
# rental_core/offline/unified_data_service.py
# Rental Data Service - Single API for Remote/Local Operations
# =============================================================================
"""
RentalDataService - The primary API for all data operations.

This service wires together:
- SessionManager: who the caller is (Supabase Auth)
- FallbackPersistence: Supabase first, local SQLite on failure
- Five repositories: properties, tenants, payments, checklists, comments
- SyncEngine: replays operations saved locally while signed in

Usage:
------
from rental_core.offline import get_data_service

service = get_data_service()

# Read the collections
for prop in service.properties.all():
    print(prop.name)

# Mutate (auto-falls back to local storage)
service.properties.add(Property(name="Sunset Flat", rent=1200))

# Check status
print(service.get_status()["pending_sync"])
"""

from __future__ import annotations
import threading
from typing import Any, Callable, Dict, List, Optional

from rental_core.auth.session_manager import SessionManager, SignUpResult, UserIdentity
from rental_core.config import AppSettings, load_settings
from rental_core.data.supabase_client import RemoteStoreClient, create_supabase_client
from rental_core.errors import LocalStoreError
from rental_core.logging import LogContext, get_logger, mask_email
from rental_core.models.entities import (
    CHECKLISTS,
    COMMENTS,
    PAYMENTS,
    PROPERTIES,
    TENANTS,
    Checklist,
    Comment,
    EntitySpec,
    Payment,
    Property,
    Tenant,
)
from rental_core.offline.local_store import LocalStore
from rental_core.offline.mutation_queue import KeyedMutationQueue
from rental_core.offline.persistence import FallbackPersistence, LocalBackend, RemoteBackend
from rental_core.offline.repository import CollectionObserver, Repository
from rental_core.offline.sync_engine import SyncEngine

logger = get_logger(__name__)

_UNSET = object()


class RentalDataService:
    """
    Data service providing a single API for the presentation layer.

    One instance per signed-in browser session: the Supabase client inside
    carries that user's auth session.
    """

    _instance: Optional[RentalDataService] = None
    _lock = threading.Lock()

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        client: Any = _UNSET,
        store: Optional[LocalStore] = None,
    ):
        """
        Args:
            settings: Resolved settings (load_settings() when omitted)
            client: Supabase client; created from settings when omitted,
                None forces local-only mode
            store: Local store; created at settings.local_db_path when omitted
        """
        self.settings = settings or load_settings()

        if client is _UNSET:
            client = create_supabase_client(self.settings)
        self.client = client

        self.local_store = store or LocalStore(self.settings.local_db_path)
        self.local_store.initialize()

        self.sessions = SessionManager(client, email_redirect_to=self.settings.email_redirect_to)
        self.remote = RemoteStoreClient(client)
        self.persistence = FallbackPersistence(
            RemoteBackend(self.remote),
            LocalBackend(self.local_store),
            on_fallback=self._queue_for_sync,
            load_timeout=self.settings.remote_timeout_seconds,
        )
        self.sync_engine = SyncEngine(self.local_store, self.remote, lambda: self.user_id)

        self._identity: Optional[UserIdentity] = None
        self._session_unsubscribe: Optional[Callable[[], None]] = None
        self._load_lock = threading.Lock()
        self._started = False

        # Shared so an id is never mutated twice at once, whatever its kind
        mutations = KeyedMutationQueue()
        self.properties: Repository[Property] = self._repository(PROPERTIES, mutations)
        self.tenants: Repository[Tenant] = self._repository(TENANTS, mutations)
        self.payments: Repository[Payment] = self._repository(PAYMENTS, mutations)
        self.checklists: Repository[Checklist] = self._repository(CHECKLISTS, mutations)
        self.comments: Repository[Comment] = self._repository(COMMENTS, mutations)

    @classmethod
    def get_instance(cls) -> RentalDataService:
        """Get or create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = RentalDataService()
        return cls._instance

    def _repository(self, spec: EntitySpec, mutations: KeyedMutationQueue) -> Repository:
        return Repository(spec, self.persistence, lambda: self.user_id, mutations)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def repositories(self) -> List[Repository]:
        return [self.properties, self.tenants, self.payments, self.checklists, self.comments]

    @property
    def identity(self) -> Optional[UserIdentity]:
        return self._identity

    @property
    def user_id(self) -> Optional[str]:
        return self._identity.id if self._identity else None

    @property
    def is_signed_in(self) -> bool:
        return self._identity is not None

    @property
    def is_ready(self) -> bool:
        return all(repo.is_ready for repo in self.repositories)

    @property
    def pending_sync_count(self) -> int:
        """Operations saved locally while signed in, not yet in Supabase."""
        return self.sync_engine.pending_count

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def start(self, start_sync: bool = False) -> None:
        """
        Resolve the active session, subscribe to session changes and load
        all collections.

        Args:
            start_sync: Whether to start the background sync thread
        """
        if self._started:
            return

        self._identity = self.sessions.get_active_session()
        self._session_unsubscribe = self.sessions.on_session_change(self._on_session_change)
        self.load()

        if start_sync and self.remote.is_connected():
            self.sync_engine.start()

        self._started = True
        logger.info(
            f"RentalDataService started. Signed in: {self.is_signed_in}, "
            f"Supabase configured: {self.settings.is_remote_configured}"
        )

    def _on_session_change(self, identity: Optional[UserIdentity]) -> None:
        """Reload on a new identity or on sign-out; ignore token refresh."""
        previous = self.user_id
        self._identity = identity

        if identity is None:
            if previous is not None:
                # Drop the user's records, then show this device's anonymous data
                self._clear_collections()
                self.load()
            return

        if identity.id != previous:
            logger.info(f"Session established for {mask_email(identity.email)}")
            self.load()

    def load(self) -> None:
        """
        (Re)load all five collections for the current identity.

        With a session: parallel Supabase fetch, all-or-nothing; the fetched
        snapshots are mirrored into the local store. Without one, or when
        any fetch fails: local snapshots.
        """
        with self._load_lock:
            user_id = self.user_id
            for repo in self.repositories:
                repo.begin_loading()

            # Push locally-saved changes first so the fetch includes them
            if user_id and self.local_store.get_pending_count(user_id):
                self.sync_engine.sync_now()

            specs = [repo.spec for repo in self.repositories]
            with LogContext(logger, "Fetching collections", slow_after=self.settings.remote_timeout_seconds / 2):
                snapshots, source = self.persistence.load_many(specs, user_id)

            for repo in self.repositories:
                repo.replace_all(snapshots.get(repo.kind, []))

            if source == self.persistence.primary.name:
                self._mirror_locally(user_id)

            logger.info(
                f"Loaded collections from {source}: "
                + ", ".join(f"{repo.kind}={len(repo)}" for repo in self.repositories)
            )

    def _mirror_locally(self, user_id: Optional[str]) -> None:
        for repo in self.repositories:
            try:
                self.persistence.save_snapshot(repo.spec, user_id, repo.records())
            except LocalStoreError as e:
                logger.error(f"Could not mirror {repo.kind} locally: {e}")

    def _clear_collections(self) -> None:
        for repo in self.repositories:
            repo.clear()
        logger.info("Cleared in-memory collections")

    def _queue_for_sync(
        self,
        operation: str,
        spec: EntitySpec,
        record_id: Optional[str],
        data: Optional[Dict[str, Any]],
        user_id: Optional[str],
    ) -> None:
        self.local_store.queue_sync(operation, spec.table, record_id, user_id, data)
        logger.info(f"Queued {operation} {spec.table}/{record_id} for sync")

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    def sign_up(self, email: str, password: str) -> SignUpResult:
        """Create an account; collections reload if a session opened."""
        return self.sessions.sign_up(email, password)

    def sign_in(self, email: str, password: str) -> UserIdentity:
        """Sign in; collections reload for the new identity before returning."""
        identity = self.sessions.sign_in(email, password)
        if self.user_id != identity.id:
            # Handler not attached (start() not called yet)
            self._identity = identity
            self.load()
        return identity

    def sign_out(self, forget_device_data: bool = False) -> None:
        """
        Sign out. When this returns the user's records are gone from memory
        and the collections hold this device's anonymous snapshots.

        Args:
            forget_device_data: Also delete the user's local snapshots and
                unsynced operations from this device
        """
        user_id = self.user_id
        self.sessions.sign_out()
        # No-op when the auth listener already handled SIGNED_OUT
        self._on_session_change(None)

        if forget_device_data and user_id:
            self.local_store.clear_namespace(user_id)

    # =========================================================================
    # OBSERVERS & STATUS
    # =========================================================================

    def subscribe(self, observer: CollectionObserver) -> Callable[[], None]:
        """
        Register observer(kind, entities) on every collection.

        Returns:
            Callable that unregisters the observer everywhere
        """
        unsubscribers = [repo.subscribe(observer) for repo in self.repositories]

        def unsubscribe() -> None:
            for unsub in unsubscribers:
                unsub()

        return unsubscribe

    def get_status(self) -> Dict[str, Any]:
        """Get data layer status for UI display."""
        return {
            "signed_in": self.is_signed_in,
            "user_email": self._identity.email if self._identity else None,
            "remote_configured": self.settings.is_remote_configured,
            "mode": "remote" if self.persistence.uses_primary(self.user_id) else "local",
            "collections": {
                repo.kind: {"status": repo.status.value, "count": len(repo)}
                for repo in self.repositories
            },
            "pending_sync": self.pending_sync_count,
            "sync": self.sync_engine.get_status_display(),
        }

    def sync_now(self) -> bool:
        """Push locally-saved operations to Supabase now."""
        return self.sync_engine.sync_now()

    def teardown(self) -> None:
        """Cleanup resources."""
        if self._session_unsubscribe is not None:
            self._session_unsubscribe()
            self._session_unsubscribe = None
        try:
            self.sync_engine.stop()
            self.sessions.teardown()
            self.local_store.close()
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")
        self._started = False


# Singleton accessor
_data_service: Optional[RentalDataService] = None


def get_data_service() -> RentalDataService:
    """
    Get the process-wide RentalDataService instance.

    Streamlit pages should use rental_core.state.get_session_data_service(),
    which keeps one instance per browser session.

    Returns:
        RentalDataService singleton
    """
    global _data_service
    if _data_service is None:
        _data_service = RentalDataService.get_instance()
        _data_service.start()
    return _data_service
