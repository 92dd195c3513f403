"""Freshness marker stores.

Provides SQLite and in-memory implementations of the ``FreshnessStore``
protocol consumed by the fetch layer.
"""

from resilient_fetch.store.errors import (
    MigrationError,
    StateStoreError,
    StoreConnectionError,
)
from resilient_fetch.store.memory import MemoryStore
from resilient_fetch.store.migrations import CURRENT_VERSION, MigrationManager
from resilient_fetch.store.store import StateStore


__all__ = [
    "CURRENT_VERSION",
    "MemoryStore",
    "MigrationError",
    "MigrationManager",
    "StateStore",
    "StateStoreError",
    "StoreConnectionError",
]
