"""Single entry point for record access.

The facade composes the durable store and the sync cache and applies the
per-collection read authority from :mod:`transportjf.storage.policy`:

* mutations always go to the durable store first; for mirrored
  collections the same records are then written through to the cache
  before the call returns.
* async reads of a mirrored collection are served by the cache once the
  durable store has answered for it at least once (the mirror is then
  primed); before that the store is asked, and if it fails the cached
  snapshot is the fallback.
* store-only collections are always read from the durable store.

While mirrors are held (legacy data not migrated yet) the cached snapshots
are never replaced: async reads go to the durable store without priming,
and writes are merged into the legacy snapshot so a retried migration still
finds every record.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from pydantic import ValidationError

from transportjf._constants import CURRENT_USER_KEY, TRIPS
from transportjf.exceptions import (
    DuplicateKeyError,
    InvalidStateError,
    RecordNotFoundError,
    StorageError,
    StorageFullError,
)
from transportjf.models import RecordModel, TripStatus, User
from transportjf.storage.cache import SyncCache
from transportjf.storage.persistent import PersistentStore, Record
from transportjf.storage.policy import DEFAULT_POLICY, ReadAuthority, is_mirrored, mirrored_collections

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=RecordModel)


class StorageFacade:
    """Hides which backend answers a given read."""

    def __init__(
        self,
        store: PersistentStore,
        cache: SyncCache,
        *,
        policy: Mapping[str, ReadAuthority] = DEFAULT_POLICY,
    ) -> None:
        self._store = store
        self._cache = cache
        self._policy = dict(policy)
        self._primed: set[str] = set()
        self._held = False

    @property
    def store(self) -> PersistentStore:
        return self._store

    @property
    def cache(self) -> SyncCache:
        return self._cache

    def authority(self, collection: str) -> ReadAuthority:
        return self._policy.get(collection, ReadAuthority.STORE_ONLY)

    def is_primed(self, collection: str) -> bool:
        return collection in self._primed

    @property
    def mirrors_held(self) -> bool:
        return self._held

    def hold_mirrors(self, held: bool = True) -> None:
        """Stop (or resume) replacing cached snapshots with durable reads."""
        self._held = held
        if held:
            self._primed.clear()

    async def refresh(self, collections: Iterable[str] | None = None) -> None:
        """Re-read mirrored collections from the durable store into the cache."""
        if self._held:
            _logger.info("Mirrors held until the legacy migration completes; skipping refresh")
            return
        targets = mirrored_collections(self._policy) if collections is None else tuple(collections)
        for collection in targets:
            if not is_mirrored(self._policy, collection):
                continue
            self._primed.discard(collection)
            await self.get_all(collection)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, collection: str) -> list[Record]:
        """Synchronous read of a mirrored collection.

        Raises :class:`InvalidStateError` for store-only collections, which
        have no synchronous read path.
        """
        if not is_mirrored(self._policy, collection):
            raise InvalidStateError(f"{collection!r} is not mirrored; read it with 'await get_all()'")
        return self._cache.get_collection(collection) or []

    async def get_all(self, collection: str) -> list[Record]:
        if not is_mirrored(self._policy, collection):
            return await self._store.get_all(collection)

        if collection in self._primed:
            return self.snapshot(collection)

        try:
            records = await self._store.get_all(collection)
        except StorageError:
            cached = self._cache.get_collection(collection)
            if cached is None:
                raise
            _logger.warning("Durable read of %s failed; serving cached snapshot", collection, exc_info=True)
            return cached
        if self._held:
            return records
        self._cache.set_collection(collection, records)
        self._primed.add(collection)
        return records

    async def get_by_id(self, collection: str, record_id: str) -> Record | None:
        if is_mirrored(self._policy, collection) and collection in self._primed:
            return next((r for r in self.snapshot(collection) if r.get("id") == record_id), None)
        try:
            return await self._store.get_by_id(collection, record_id)
        except StorageError:
            if not is_mirrored(self._policy, collection):
                raise
            cached = self._cache.get_collection(collection)
            if cached is None:
                raise
            _logger.warning("Durable read of %s/%s failed; serving cached record", collection, record_id)
            return next((r for r in cached if r.get("id") == record_id), None)

    async def require(self, collection: str, record_id: str) -> Record:
        record = await self.get_by_id(collection, record_id)
        if record is None:
            raise RecordNotFoundError(
                f"No record with id {record_id!r} in {collection!r}",
                collection=collection,
                key=record_id,
            )
        return record

    async def find(self, collection: str, index: str, value: Any) -> list[Record]:
        return await self._store.find(collection, index, value)

    async def find_range(self, collection: str, index: str, lower: Any = None, upper: Any = None) -> list[Record]:
        return await self._store.find_range(collection, index, lower, upper)

    async def find_by_cedula(self, collection: str, cedula: str) -> Record | None:
        matches = await self._store.find(collection, "cedula", cedula.strip())
        return matches[0] if matches else None

    async def load(self, collection: str, model: type[M]) -> list[M]:
        """Read *collection* as typed models."""
        return [model.from_record(r) for r in await self.get_all(collection)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _guard_trip_transitions(self, records: list[Record]) -> None:
        """Refuse writes that would move a finalized trip back to active."""
        for record in records:
            incoming = record.get("status")
            if incoming == TripStatus.FINALIZED:
                continue
            existing = await self._store.get_by_id(TRIPS, str(record.get("id")))
            if existing is not None and existing.get("status") == TripStatus.FINALIZED:
                raise InvalidStateError(f"Trip {record.get('id')!r} is finalized and cannot become {incoming!r} again")

    async def put(self, collection: str, record: Mapping[str, Any] | RecordModel) -> None:
        payload = record.to_record() if isinstance(record, RecordModel) else dict(record)
        if collection == TRIPS:
            await self._guard_trip_transitions([payload])
        await self._store.put(collection, payload)
        if is_mirrored(self._policy, collection):
            self._cache.upsert_records(collection, [payload])

    async def put_all(self, collection: str, records: Iterable[Mapping[str, Any] | RecordModel]) -> int:
        """Write a batch; mirrored records follow exactly what the store accepted."""
        payloads = [r.to_record() if isinstance(r, RecordModel) else dict(r) for r in records]
        if collection == TRIPS:
            await self._guard_trip_transitions(payloads)
        try:
            written = await self._store.put_all(collection, payloads)
        except (StorageFullError, DuplicateKeyError) as exc:
            if is_mirrored(self._policy, collection) and exc.written:
                self._cache.upsert_records(collection, payloads[: exc.written])
            raise
        if is_mirrored(self._policy, collection):
            self._cache.upsert_records(collection, payloads)
        return written

    async def delete(self, collection: str, record_id: str) -> bool:
        removed = await self._store.delete(collection, record_id)
        if is_mirrored(self._policy, collection):
            self._cache.remove_record(collection, record_id)
        return removed

    async def clear(self, collection: str) -> None:
        await self._store.clear(collection)
        if is_mirrored(self._policy, collection):
            self._cache.set_collection(collection, [])

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def current_user(self) -> User | None:
        data = self._cache.get(CURRENT_USER_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return User.from_record(data)
        except ValidationError:
            _logger.warning("Cached current user is malformed; ignoring it")
            return None

    def set_current_user(self, user: User | None) -> None:
        if user is None:
            self._cache.remove(CURRENT_USER_KEY)
        else:
            self._cache.set(CURRENT_USER_KEY, user.to_record())
