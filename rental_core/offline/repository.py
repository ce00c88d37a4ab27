# =============================================================================
# rental_core/offline/repository.py
# Generic Observable Repository for One Entity Kind
# =============================================================================
"""
Repository[T] - in-memory collection plus dual-destination persistence.

One instance per entity kind (properties, tenants, payments, checklists,
comments), configured by an EntitySpec. The in-memory collection is the
single shared state the presentation layer reads; only the repository's
own operations change it, and observers are notified after each change.

Lifecycle per collection:
    UNINITIALIZED -> LOADING -> READY
Reads before READY return whatever is in memory (usually nothing).
"""

from __future__ import annotations
import threading
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from rental_core.errors import LocalStoreError
from rental_core.logging import get_logger
from rental_core.models.entities import Entity, EntitySpec, new_id, to_plain, utc_now_iso
from rental_core.offline.mutation_queue import KeyedMutationQueue
from rental_core.offline.persistence import FallbackPersistence

logger = get_logger(__name__)

T = TypeVar("T", bound=Entity)

CollectionObserver = Callable[[str, List[Any]], None]


class CollectionStatus(Enum):
    """Load state of one collection."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class Repository(Generic[T]):
    """
    CRUD facade for one entity kind.

    Mutations never raise on persistence failures: remote errors fall back
    to local storage inside FallbackPersistence. Validation errors
    (DataValidationError) do propagate.

    Usage:
        properties = Repository(PROPERTIES, persistence, lambda: user_id)
        prop = properties.add(Property(name="Sunset Flat", ...))
        properties.update(prop.id, {"rent": 1300})
        properties.delete(prop.id)
    """

    def __init__(
        self,
        spec: EntitySpec,
        persistence: FallbackPersistence,
        user_id_provider: Callable[[], Optional[str]],
        mutation_queue: Optional[KeyedMutationQueue] = None,
    ):
        self.spec = spec
        self.persistence = persistence
        self._user_id_provider = user_id_provider
        self._mutations = mutation_queue or KeyedMutationQueue()
        self._records: Dict[str, T] = {}
        self._lock = threading.RLock()
        self._status = CollectionStatus.UNINITIALIZED
        self._observers: List[CollectionObserver] = []

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def kind(self) -> str:
        return self.spec.kind

    @property
    def status(self) -> CollectionStatus:
        return self._status

    @property
    def is_ready(self) -> bool:
        return self._status == CollectionStatus.READY

    def all(self) -> List[T]:
        """Snapshot of the collection in insertion (display) order."""
        with self._lock:
            return list(self._records.values())

    def get(self, record_id: Optional[str]) -> Optional[T]:
        if record_id is None:
            return None
        with self._lock:
            return self._records.get(record_id)

    def records(self) -> List[Dict[str, Any]]:
        """Snapshot as plain dicts (what the local store holds)."""
        return [entity.to_record() for entity in self.all()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._records

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def subscribe(self, observer: CollectionObserver) -> Callable[[], None]:
        """
        Register observer(kind, entities), called after every change.

        Returns:
            Callable that unregisters the observer
        """
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            observers = list(self._observers)
        snapshot = self.all()
        for observer in observers:
            try:
                observer(self.kind, snapshot)
            except Exception as e:
                logger.error(f"Error in {self.kind} observer: {e}")

    # =========================================================================
    # LOADING
    # =========================================================================

    def begin_loading(self) -> None:
        self._status = CollectionStatus.LOADING

    def replace_all(self, records: List[Dict[str, Any]]) -> None:
        """Adopt a freshly loaded snapshot and mark the collection READY."""
        entities: Dict[str, T] = {}
        for record in records:
            try:
                entity = self.spec.entity_cls.from_record(record)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable {self.kind} record: {e}")
                continue
            if entity.id is not None:
                entities[entity.id] = entity

        with self._lock:
            self._records = entities
            self._status = CollectionStatus.READY

        logger.debug(f"{self.kind}: {len(entities)} records ready")
        self._notify()

    def clear(self) -> None:
        """Empty the in-memory collection (local snapshots are untouched)."""
        with self._lock:
            self._records = {}
            self._status = CollectionStatus.UNINITIALIZED
        self._notify()

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def _user_id(self) -> Optional[str]:
        return self._user_id_provider()

    def _save_snapshot(self, user_id: Optional[str]) -> None:
        """Rewrite the full local snapshot so it mirrors memory."""
        if not self.is_ready:
            # Memory does not hold the stored snapshot yet; writing would erase it
            logger.warning(f"Not saving {self.kind} snapshot while {self._status.value}")
            return
        try:
            self.persistence.save_snapshot(self.spec, user_id, self.records())
        except LocalStoreError as e:
            logger.error(f"Could not write local {self.kind} snapshot: {e}")

    def add(self, entity: T) -> T:
        """
        Create a record with a fresh id and created_at.

        Returns:
            The adopted record (server-normalized when Supabase accepted it)

        Raises:
            DataValidationError: If the entity is invalid
        """
        entity.validate()
        user_id = self._user_id()

        record = entity.to_record()
        record.update(id=new_id(), created_at=utc_now_iso(), user_id=user_id)

        with self._mutations.hold(record["id"]):
            stored = self.persistence.insert(self.spec, record, user_id)
            adopted = self.spec.entity_cls.from_record(stored)
            with self._lock:
                self._records[adopted.id] = adopted
            self._save_snapshot(user_id)

        logger.info(f"Added {self.kind}/{adopted.id}")
        self._notify()
        return adopted

    def update(self, record_id: str, partial: Dict[str, Any]) -> Optional[T]:
        """
        Shallow-merge partial into the record. Unknown id is a no-op.

        Returns:
            The updated record, or None if record_id does not exist
        """
        return self.modify(record_id, lambda current: partial)

    def modify(
        self,
        record_id: str,
        transform: Callable[[T], Dict[str, Any]],
    ) -> Optional[T]:
        """
        Read-modify-write under the record's mutation lock.

        transform receives the latest in-memory record and returns the
        partial fields to write. Concurrent modify() calls on the same id
        run one after another, each seeing the previous one's result.
        """
        user_id = self._user_id()

        with self._mutations.hold(record_id):
            current = self.get(record_id)
            if current is None:
                logger.debug(f"Ignoring update of missing {self.kind}/{record_id}")
                return None

            partial = {k: to_plain(v) for k, v in transform(current).items()}
            current.merged(partial).validate()

            stored = self.persistence.update(self.spec, current.to_record(), partial, user_id)
            updated = self.spec.entity_cls.from_record(stored)

            with self._lock:
                # Preserve the original id even if the server echoed none
                self._records[record_id] = updated if updated.id == record_id else current.merged(partial)
            self._save_snapshot(user_id)

        self._notify()
        return self.get(record_id)

    def delete(self, record_id: str) -> bool:
        """
        Remove a record. Deleting a missing id is a no-op.

        Returns:
            True if a record was removed
        """
        user_id = self._user_id()

        with self._mutations.hold(record_id):
            if record_id not in self:
                logger.debug(f"Ignoring delete of missing {self.kind}/{record_id}")
                return False

            self.persistence.delete(self.spec, record_id, user_id)
            with self._lock:
                self._records.pop(record_id, None)
            self._save_snapshot(user_id)

        logger.info(f"Deleted {self.kind}/{record_id}")
        self._notify()
        return True
