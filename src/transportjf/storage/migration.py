"""One-shot import of legacy cache-only collections into the durable store."""

from __future__ import annotations

import logging

from transportjf._constants import COLLECTIONS, MIGRATION_MARKER_KEY
from transportjf.exceptions import MigrationError, TransportError
from transportjf.storage.cache import SyncCache
from transportjf.storage.persistent import PersistentStore

_logger = logging.getLogger(__name__)


class MigrationManager:
    """Copy every legacy collection snapshot into the durable store exactly once.

    Completion is recorded by a marker key in the sync cache.  The marker is
    only written after every collection was stored, so a failed run is
    retried in full on the next start; re-writing already migrated records
    is harmless because ``put`` replaces by id.
    """

    def __init__(
        self,
        store: PersistentStore,
        cache: SyncCache,
        *,
        collections: tuple[str, ...] = COLLECTIONS,
    ) -> None:
        self._store = store
        self._cache = cache
        self._collections = collections

    @property
    def completed(self) -> bool:
        return bool(self._cache.get(MIGRATION_MARKER_KEY))

    @property
    def pending(self) -> bool:
        """Legacy snapshots exist that have not been migrated yet."""
        if self.completed:
            return False
        return any(self._cache.get_collection(c) for c in self._collections)

    async def migrate(self) -> bool:
        """Run the migration if it has not completed yet.

        Returns ``True`` when this call completed the migration.  Failures
        are logged and swallowed; they never propagate to the caller.
        """
        if self.completed:
            return False

        _logger.info("Starting migration of legacy cache data into the durable store")
        try:
            counts = await self._copy_collections()
        except (TransportError, ValueError) as exc:
            error = MigrationError(f"Migration failed: {exc}")
            error.__cause__ = exc
            _logger.error("%s; will retry on next start", error, exc_info=True)
            return False

        self._cache.set(MIGRATION_MARKER_KEY, "true")
        _logger.info("Migration completed: %s", ", ".join(f"{c}={n}" for c, n in counts.items()) or "nothing to copy")
        return True

    async def _copy_collections(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for collection in self._collections:
            snapshot = self._cache.get_collection(collection) or []
            records = [r for r in snapshot if isinstance(r.get("id"), str) and r["id"]]
            if len(records) != len(snapshot):
                _logger.warning("Skipping %d legacy %s record(s) without id", len(snapshot) - len(records), collection)
            if not records:
                continue
            counts[collection] = await self._store.put_all(collection, records)
        return counts
