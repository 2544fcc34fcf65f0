"""Storage layer.

Durable collections (:class:`PersistentStore`), the synchronous mirror
(:class:`SyncCache`), the one-shot legacy import (:class:`MigrationManager`)
and the :class:`StorageFacade` the rest of the library goes through.
"""

from transportjf.storage.cache import SyncCache
from transportjf.storage.facade import StorageFacade
from transportjf.storage.migration import MigrationManager
from transportjf.storage.persistent import PersistentStore
from transportjf.storage.policy import DEFAULT_POLICY, ReadAuthority
from transportjf.storage.schema import SCHEMA, CollectionSpec

__all__ = [
    "DEFAULT_POLICY",
    "SCHEMA",
    "CollectionSpec",
    "MigrationManager",
    "PersistentStore",
    "ReadAuthority",
    "StorageFacade",
    "SyncCache",
]
