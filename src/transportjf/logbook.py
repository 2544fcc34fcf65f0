"""High-level async entry point wiring the storage and trip layers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from transportjf.config import TransportConfig
from transportjf.defaults import load_conductor_roster, seed_defaults
from transportjf.exceptions import TransportError
from transportjf.storage.cache import SyncCache
from transportjf.storage.facade import StorageFacade
from transportjf.storage.migration import MigrationManager
from transportjf.storage.persistent import PersistentStore
from transportjf.trips.groups import TripGroupRegistry
from transportjf.trips.lifecycle import TripLifecycle

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Logbook:
    """Open the store handle once and hand the wired components out.

    Usage::

        async with Logbook(TransportConfig.from_env()) as logbook:
            trip = await logbook.trips.start(passenger, conductor, "R1", "mañana")
    """

    def __init__(
        self,
        config: TransportConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
        cache: SyncCache | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._cache = cache
        self._store: PersistentStore | None = None
        self._facade: StorageFacade | None = None
        self._groups: TripGroupRegistry | None = None
        self._trips: TripLifecycle | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Logbook:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self._store is not None:
            return
        config = self._config
        roster: list[dict[str, Any]] = []
        if config.seed_defaults and config.conductor_roster_path:
            roster = load_conductor_roster(config.conductor_roster_path)
        cache = self._cache if self._cache is not None else SyncCache(config.cache_path or None)
        store = PersistentStore(config.database_path, quota_bytes=config.quota_bytes)
        await store.open()

        self._cache = cache
        self._store = store
        self._facade = StorageFacade(store, cache)
        self._groups = TripGroupRegistry(cache, clock=self._clock, tz=config.tzinfo)
        self._trips = TripLifecycle(
            self._facade,
            self._groups,
            capacity=config.seat_capacity,
            clock=self._clock,
        )

        migration = MigrationManager(store, cache)
        if config.run_migration:
            await migration.migrate()
        # Legacy snapshots are the only copy of unmigrated records.
        self._facade.hold_mirrors(migration.pending)
        if config.seed_defaults:
            try:
                await seed_defaults(self._facade, conductors=roster)
            except TransportError:
                _logger.warning("Seeding default data failed", exc_info=True)
        await self._facade.refresh()

    async def close(self) -> None:
        store = self._store
        self._store = None
        self._facade = None
        self._groups = None
        self._trips = None
        if store is not None:
            await store.close()

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if self._store is None:
            raise TransportError("Logbook not open. Use 'async with Logbook(...) as logbook:'")

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def store(self) -> PersistentStore:
        self._require_open()
        assert self._store is not None  # noqa: S101
        return self._store

    @property
    def cache(self) -> SyncCache:
        self._require_open()
        assert self._cache is not None  # noqa: S101
        return self._cache

    @property
    def storage(self) -> StorageFacade:
        self._require_open()
        assert self._facade is not None  # noqa: S101
        return self._facade

    @property
    def groups(self) -> TripGroupRegistry:
        self._require_open()
        assert self._groups is not None  # noqa: S101
        return self._groups

    @property
    def trips(self) -> TripLifecycle:
        self._require_open()
        assert self._trips is not None  # noqa: S101
        return self._trips
