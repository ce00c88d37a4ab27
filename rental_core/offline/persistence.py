# =============================================================================
# rental_core/offline/persistence.py
# Persistence Strategies: Remote (Supabase) with Local (SQLite) Fallback
# =============================================================================
"""
Persistence backends used by the repositories.

    ┌──────────────────────────────────────────┐
    │           FallbackPersistence            │
    │   try primary, on failure use fallback   │
    └──────────────────────────────────────────┘
                 │                  │
                 ▼                  ▼
        ┌───────────────┐   ┌───────────────┐
        │ RemoteBackend │   │ LocalBackend  │
        │  (Supabase)   │   │   (SQLite)    │
        └───────────────┘   └───────────────┘

Write methods return the record the caller should adopt into memory, or
None when the backend produced nothing (e.g. zero rows updated remotely).
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from rental_core.data.supabase_client import RemoteStoreClient
from rental_core.errors import CorruptLocalStateError, RemoteStoreError
from rental_core.logging import get_logger
from rental_core.models.entities import EntitySpec, IMMUTABLE_FIELDS
from rental_core.offline.local_store import LocalStore, namespaced_key

logger = get_logger(__name__)

Record = Dict[str, Any]

# (operation, spec, record_id, data, user_id)
FallbackHook = Callable[[str, EntitySpec, Optional[str], Optional[Record], Optional[str]], None]


class PersistenceBackend(ABC):
    """Capability interface shared by remote, local and fallback persistence."""

    name = "backend"

    def available(self, user_id: Optional[str]) -> bool:
        """Whether this backend can serve a call for user_id."""
        return True

    @abstractmethod
    def load(self, spec: EntitySpec, user_id: Optional[str]) -> List[Record]:
        ...

    @abstractmethod
    def insert(self, spec: EntitySpec, record: Record, user_id: Optional[str]) -> Optional[Record]:
        ...

    @abstractmethod
    def update(
        self,
        spec: EntitySpec,
        current: Record,
        partial: Record,
        user_id: Optional[str],
    ) -> Optional[Record]:
        ...

    @abstractmethod
    def delete(self, spec: EntitySpec, record_id: str, user_id: Optional[str]) -> bool:
        ...


# =============================================================================
# REMOTE
# =============================================================================

class RemoteBackend(PersistenceBackend):
    """Owner-scoped Supabase persistence. Only usable with a session."""

    name = "remote"

    def __init__(self, client: RemoteStoreClient):
        self.client = client

    def available(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and self.client.is_connected()

    def load(self, spec: EntitySpec, user_id: Optional[str]) -> List[Record]:
        return self.client.fetch_owned(spec.table, user_id)

    def insert(self, spec: EntitySpec, record: Record, user_id: Optional[str]) -> Optional[Record]:
        return self.client.insert(spec.table, {**record, "user_id": user_id})

    def update(
        self,
        spec: EntitySpec,
        current: Record,
        partial: Record,
        user_id: Optional[str],
    ) -> Optional[Record]:
        fields = {k: v for k, v in partial.items() if k not in IMMUTABLE_FIELDS}
        if not fields:
            # Nothing to write; echo the current row
            return current
        return self.client.update(spec.table, current["id"], user_id, fields)

    def delete(self, spec: EntitySpec, record_id: str, user_id: Optional[str]) -> bool:
        self.client.delete(spec.table, record_id, user_id)
        return True


# =============================================================================
# LOCAL
# =============================================================================

class LocalBackend(PersistenceBackend):
    """
    Local persistence. Writes are computed against the in-memory record;
    the snapshot itself is rewritten by save_snapshot() after each mutation.
    """

    name = "local"

    def __init__(self, store: LocalStore):
        self.store = store

    def load(self, spec: EntitySpec, user_id: Optional[str]) -> List[Record]:
        """Absent key -> []. Raises CorruptLocalStateError on malformed JSON."""
        return self.store.read_snapshot(namespaced_key(spec.local_key, user_id)) or []

    def insert(self, spec: EntitySpec, record: Record, user_id: Optional[str]) -> Optional[Record]:
        return dict(record)

    def update(
        self,
        spec: EntitySpec,
        current: Record,
        partial: Record,
        user_id: Optional[str],
    ) -> Optional[Record]:
        merged = dict(current)
        merged.update({k: v for k, v in partial.items() if k not in IMMUTABLE_FIELDS})
        return merged

    def delete(self, spec: EntitySpec, record_id: str, user_id: Optional[str]) -> bool:
        return True

    def save_snapshot(self, spec: EntitySpec, user_id: Optional[str], records: List[Record]) -> None:
        """Rewrite the full snapshot for one collection."""
        self.store.write_snapshot(namespaced_key(spec.local_key, user_id), records)

    def discard_pending(self, spec: EntitySpec, record_id: str, user_id: Optional[str]) -> None:
        if user_id:
            self.store.discard_pending(spec.table, record_id, user_id)


# =============================================================================
# FALLBACK DECORATOR
# =============================================================================

class FallbackPersistence(PersistenceBackend):
    """
    Try the primary backend; on RemoteStoreError, an empty result, or when the
    primary is unavailable, use the fallback. Remote failures never propagate.

    Usage:
        persistence = FallbackPersistence(
            RemoteBackend(RemoteStoreClient(client)),
            LocalBackend(store),
            on_fallback=queue_for_sync,
        )
    """

    name = "fallback"

    def __init__(
        self,
        primary: PersistenceBackend,
        fallback: LocalBackend,
        on_fallback: Optional[FallbackHook] = None,
        load_timeout: Optional[float] = None,
    ):
        self.primary = primary
        self.fallback = fallback
        self.on_fallback = on_fallback
        self.load_timeout = load_timeout

    def uses_primary(self, user_id: Optional[str]) -> bool:
        return self.primary.available(user_id)

    def _fell_back(
        self,
        operation: str,
        spec: EntitySpec,
        record_id: Optional[str],
        data: Optional[Record],
        user_id: Optional[str],
    ) -> None:
        # Only signed-in fallbacks diverge from the remote store
        if self.on_fallback is not None and self.uses_primary(user_id):
            try:
                self.on_fallback(operation, spec, record_id, data, user_id)
            except Exception as e:
                logger.error(f"Error in fallback hook: {e}")

    # -- loading ------------------------------------------------------------

    def load(self, spec: EntitySpec, user_id: Optional[str]) -> List[Record]:
        snapshots, _ = self.load_many([spec], user_id)
        return snapshots[spec.kind]

    def load_many(
        self,
        specs: Sequence[EntitySpec],
        user_id: Optional[str],
    ) -> Tuple[Dict[str, List[Record]], str]:
        """
        Load several collections at once.

        With a session all collections are fetched from the primary in
        parallel. If any fetch fails every result is discarded and all
        collections load from the fallback (all-or-nothing).

        Returns:
            (records by kind, name of the backend that served them)
        """
        if self.uses_primary(user_id):
            try:
                return self._load_primary(specs, user_id), self.primary.name
            except Exception as e:
                logger.warning(f"Remote load failed, using local snapshots: {e}")

        return {spec.kind: self._load_fallback(spec, user_id) for spec in specs}, self.fallback.name

    def _load_primary(self, specs: Sequence[EntitySpec], user_id: Optional[str]) -> Dict[str, List[Record]]:
        pool = ThreadPoolExecutor(max_workers=len(specs), thread_name_prefix="RemoteLoad")
        try:
            futures = {spec.kind: pool.submit(self.primary.load, spec, user_id) for spec in specs}
            _, not_done = wait(futures.values(), timeout=self.load_timeout)
            if not_done:
                raise RemoteStoreError(
                    f"Remote load timed out after {self.load_timeout}s",
                    operation="select",
                )
            # .result() re-raises the first failure
            return {kind: future.result() for kind, future in futures.items()}
        finally:
            # Don't block on stragglers after a timeout
            pool.shutdown(wait=False, cancel_futures=True)

    def _load_fallback(self, spec: EntitySpec, user_id: Optional[str]) -> List[Record]:
        try:
            return self.fallback.load(spec, user_id)
        except CorruptLocalStateError as e:
            logger.error(f"Discarding corrupt local snapshot for {spec.kind}: {e}")
            return []

    # -- writes -------------------------------------------------------------

    def insert(self, spec: EntitySpec, record: Record, user_id: Optional[str]) -> Optional[Record]:
        if self.uses_primary(user_id):
            try:
                stored = self.primary.insert(spec, record, user_id)
                if stored:
                    return stored
                logger.warning(f"Remote insert into {spec.table} returned no row")
            except RemoteStoreError as e:
                logger.warning(f"Remote insert failed, saving locally: {e}")

        self._fell_back("INSERT", spec, record.get("id"), record, user_id)
        return self.fallback.insert(spec, record, user_id)

    def update(
        self,
        spec: EntitySpec,
        current: Record,
        partial: Record,
        user_id: Optional[str],
    ) -> Optional[Record]:
        if self.uses_primary(user_id):
            try:
                stored = self.primary.update(spec, current, partial, user_id)
                if stored:
                    return stored
                logger.warning(f"Remote update of {spec.table}/{current.get('id')} matched no row")
            except RemoteStoreError as e:
                logger.warning(f"Remote update failed, saving locally: {e}")

        self._fell_back("UPDATE", spec, current.get("id"), partial, user_id)
        return self.fallback.update(spec, current, partial, user_id)

    def delete(self, spec: EntitySpec, record_id: str, user_id: Optional[str]) -> bool:
        if self.uses_primary(user_id):
            try:
                deleted = self.primary.delete(spec, record_id, user_id)
                # Queued writes for this record must not resurrect it on replay
                self.fallback.discard_pending(spec, record_id, user_id)
                return deleted
            except RemoteStoreError as e:
                logger.warning(f"Remote delete failed, deleting locally: {e}")

        self._fell_back("DELETE", spec, record_id, None, user_id)
        return self.fallback.delete(spec, record_id, user_id)

    def save_snapshot(self, spec: EntitySpec, user_id: Optional[str], records: List[Record]) -> None:
        self.fallback.save_snapshot(spec, user_id, records)
