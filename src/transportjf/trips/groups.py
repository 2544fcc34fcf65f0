"""Boarding-session (group) identifiers.

A group binds every trip of one conductor on one route, shift and calendar
day.  Bindings live in the sync cache under a key derived from those four
inputs, so lookups never suspend.  A binding stays stable until it is
cleared (when the route is finalized); the next use then mints a new one.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import UTC, date, datetime, tzinfo

from transportjf._constants import GROUP_KEY_PREFIX, NO_ROUTE, NO_SHIFT
from transportjf.models import Shift
from transportjf.storage.cache import SyncCache

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TripGroupRegistry:
    """Derive, cache and clear group ids.

    Not coordinated across processes: two processes sharing the cache file
    can mint different ids for the same session.
    """

    def __init__(
        self,
        cache: SyncCache,
        *,
        clock: Callable[[], datetime] = _utcnow,
        tz: tzinfo = UTC,
    ) -> None:
        self._cache = cache
        self._clock = clock
        self._tz = tz

    @staticmethod
    def key_for(conductor_id: str, route: str | None, shift: Shift | str | None, day: date) -> str:
        """Compose the cache key for a (conductor, route, shift, day) session.

        The parts are joined with ``_`` unescaped, matching keys written by
        earlier versions.  Conductor ids or routes containing ``_`` can
        therefore collide (``("a_b", "c")`` and ``("a", "b_c")`` share a key).
        """
        return (
            f"{GROUP_KEY_PREFIX}{conductor_id}_{route or NO_ROUTE}_{str(shift) if shift else NO_SHIFT}_"
            f"{day.isoformat()}"
        )

    def today(self) -> date:
        return self.day_of(self._clock())

    def day_of(self, moment: datetime) -> date:
        """Calendar day of *moment* in the registry time zone."""
        return moment.astimezone(self._tz).date()

    def current_group(self, conductor_id: str, route: str | None, shift: Shift | str | None) -> str | None:
        value = self._cache.get(self.key_for(conductor_id, route, shift, self.today()))
        return value if isinstance(value, str) and value else None

    def ensure_group(self, conductor_id: str, route: str | None, shift: Shift | str | None) -> str:
        """Return today's group id for the session, minting one if needed."""
        key = self.key_for(conductor_id, route, shift, self.today())
        existing = self._cache.get(key)
        if isinstance(existing, str) and existing:
            return existing
        now_ms = int(self._clock().timestamp() * 1000)
        group_id = f"{conductor_id}-{now_ms}-{secrets.token_hex(3)}"
        self._cache.set(key, group_id)
        _logger.debug("Minted group %s for %s", group_id, key)
        return group_id

    def clear_group(
        self,
        conductor_id: str,
        route: str | None,
        shift: Shift | str | None,
        day: date | None = None,
    ) -> None:
        """Drop the binding for *day* (default: today)."""
        key = self.key_for(conductor_id, route, shift, day or self.today())
        self._cache.remove(key)
        _logger.debug("Cleared group binding %s", key)

    def bindings(self) -> dict[str, str]:
        """Every stored binding (all days), keyed by cache key."""
        return {k: v for k in self._cache.keys(GROUP_KEY_PREFIX) if isinstance(v := self._cache.get(k), str)}

    def prune(self, *, keep_days: int = 0) -> int:
        """Drop bindings older than ``today - keep_days``; returns how many were removed."""
        cutoff = self.today().toordinal() - keep_days
        removed = 0
        for key in self._cache.keys(GROUP_KEY_PREFIX):
            try:
                day = date.fromisoformat(key.rsplit("_", 1)[-1])
            except ValueError:
                continue
            if day.toordinal() < cutoff:
                self._cache.remove(key)
                removed += 1
        return removed
