# =============================================================================
# rental_core/offline/mutation_queue.py
# Per-Record Mutation Serialization
# =============================================================================
"""
KeyedMutationQueue - at most one in-flight mutation per entity id.

A second mutation on the same id waits until the first has finished
updating both the in-memory collection and the local store, so a
read-modify-write (e.g. toggling one checklist task) always starts from the
latest state. Mutations on different ids run independently.
"""

from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class _Slot:
    __slots__ = ("lock", "waiters")

    def __init__(self):
        self.lock = threading.Lock()
        self.waiters = 0


class KeyedMutationQueue:
    """Mapping of key -> lock; slots are dropped once nobody holds or waits."""

    def __init__(self):
        self._guard = threading.Lock()
        self._slots: Dict[Hashable, _Slot] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Block until no other mutation on key is in flight, then run the body."""
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.waiters += 1

        slot.lock.acquire()
        try:
            yield
        finally:
            slot.lock.release()
            with self._guard:
                slot.waiters -= 1
                if slot.waiters == 0:
                    del self._slots[key]

    def in_flight(self) -> int:
        """Number of keys with a running or queued mutation."""
        with self._guard:
            return len(self._slots)
