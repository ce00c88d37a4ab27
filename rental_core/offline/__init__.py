# =============================================================================
# rental_core/offline/__init__.py
# Remote-First Persistence with Local Fallback for Rental Manager
# =============================================================================
"""
Synchronization Layer Module

Every mutation goes to Supabase when the user is signed in, and falls back
to a local SQLite store when there is no session or Supabase fails. The
in-memory collections are what the pages read.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                     SYNCHRONIZATION LAYER                       │
├─────────────────────────────────────────────────────────────────┤
│                                                                 │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                 RentalDataService                        │  │
│   │         (Single API - Pages use this only)               │  │
│   └──────────────────────────────────────────────────────────┘  │
│                            │                                    │
│              ┌─────────────┴─────────────┐                      │
│              ▼                           ▼                      │
│   ┌──────────────────┐        ┌──────────────────┐              │
│   │  SessionManager  │        │  Repository x 5  │              │
│   │  (Supabase Auth) │        │ (+ per-id locks) │              │
│   └──────────────────┘        └──────────────────┘              │
│                                          │                      │
│                               ┌──────────────────┐              │
│                               │FallbackPersistence│             │
│                               └──────────────────┘              │
│                          ┌───────────┴──────────┐               │
│                          ▼                      ▼               │
│                     ┌────────┐            ┌──────────┐          │
│                     │Supabase│◄──────────►│  SQLite  │          │
│                     │(Cloud) │ SyncEngine │ (Local)  │          │
│                     └────────┘            └──────────┘          │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from rental_core.offline import get_data_service

service = get_data_service()
service.tenants.add(Tenant(full_name="Ana Ruiz", property_id=prop.id))
print(service.get_status()["pending_sync"])
"""

from rental_core.offline.local_store import (
    LocalStore,
    namespaced_key,
)

from rental_core.offline.mutation_queue import KeyedMutationQueue

from rental_core.offline.persistence import (
    PersistenceBackend,
    RemoteBackend,
    LocalBackend,
    FallbackPersistence,
)

from rental_core.offline.repository import (
    Repository,
    CollectionStatus,
)

from rental_core.offline.sync_engine import (
    SyncEngine,
    SyncState,
)

from rental_core.offline.unified_data_service import (
    RentalDataService,
    get_data_service,
)

__all__ = [
    # Local Store
    "LocalStore",
    "namespaced_key",
    # Mutation serialization
    "KeyedMutationQueue",
    # Persistence
    "PersistenceBackend",
    "RemoteBackend",
    "LocalBackend",
    "FallbackPersistence",
    # Repositories
    "Repository",
    "CollectionStatus",
    # Sync Engine
    "SyncEngine",
    "SyncState",
    # Data Service (Main API)
    "RentalDataService",
    "get_data_service",
]
