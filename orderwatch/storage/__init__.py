"""Key-value storage backends for history persistence.

Submodules:
    base    -- KeyValueStore contract and PersistenceQuotaError.
    memory  -- Dict-backed store with an optional byte quota.
    file    -- One-file-per-key store with temp-file/rename writes.
"""

from orderwatch.storage.base import KeyValueStore, PersistenceQuotaError
from orderwatch.storage.file import FileKeyValueStore
from orderwatch.storage.memory import InMemoryKeyValueStore

__all__ = ["FileKeyValueStore", "InMemoryKeyValueStore", "KeyValueStore", "PersistenceQuotaError"]
