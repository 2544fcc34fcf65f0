"""Synchronous process-local key/value cache.

This is the non-suspending read path: the in-memory dict answers every
``get`` immediately, and each mutation is flushed to a JSON file so the
values survive a restart (the legacy collections imported by the migration
live here too).

The cache never raises user-facing errors.  An unreadable or malformed file
starts an empty cache and a failed flush leaves the value in memory only;
both are logged.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from transportjf._constants import LEGACY_KEYS

_logger = logging.getLogger(__name__)


class SyncCache:
    """Key/value area holding JSON values, optionally persisted to *path*."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = Path(path) if path else None
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            _logger.warning("Sync cache file %s unreadable; starting empty", self._path, exc_info=True)
            return {}
        if not isinstance(raw, dict):
            _logger.warning("Sync cache file %s is not a JSON object; starting empty", self._path)
            return {}
        return raw

    def _flush(self) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".cache-", suffix=".json", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(self._data, handle, ensure_ascii=False)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError):
            _logger.warning("Sync cache flush to %s failed; value kept in memory", self._path, exc_info=True)

    # ------------------------------------------------------------------
    # Plain keys
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def contains(self, key: str) -> bool:
        return key in self._data

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]

    def clear(self, prefix: str = "") -> None:
        for key in self.keys(prefix):
            del self._data[key]
        self._flush()

    # ------------------------------------------------------------------
    # Collection snapshots (JSON arrays under the legacy keys)
    # ------------------------------------------------------------------

    @staticmethod
    def collection_key(collection: str) -> str:
        key = LEGACY_KEYS.get(collection)
        if key is None:
            raise KeyError(f"no cache key for collection {collection!r}")
        return key

    def get_collection(self, collection: str) -> list[dict[str, Any]] | None:
        """Return the cached snapshot, or ``None`` when absent or malformed."""
        value = self._data.get(self.collection_key(collection))
        if value is None:
            return None
        if isinstance(value, str):
            # Snapshots copied verbatim from browser storage are JSON text.
            try:
                value = json.loads(value)
            except ValueError:
                _logger.warning("Cached %s snapshot is not valid JSON; ignoring it", collection)
                return None
        if not isinstance(value, list) or not all(isinstance(r, dict) for r in value):
            _logger.warning("Cached %s snapshot is not a list of records; ignoring it", collection)
            return None
        return copy.deepcopy(value)

    def set_collection(self, collection: str, records: list[dict[str, Any]]) -> None:
        self.set(self.collection_key(collection), records)

    def upsert_records(self, collection: str, records: list[dict[str, Any]]) -> None:
        """Replace-by-id (or append) *records* in the cached snapshot."""
        snapshot = self.get_collection(collection) or []
        positions = {r.get("id"): i for i, r in enumerate(snapshot)}
        for record in records:
            index = positions.get(record.get("id"))
            if index is None:
                positions[record.get("id")] = len(snapshot)
                snapshot.append(copy.deepcopy(record))
            else:
                snapshot[index] = copy.deepcopy(record)
        self.set_collection(collection, snapshot)

    def remove_record(self, collection: str, record_id: str) -> None:
        snapshot = self.get_collection(collection)
        if snapshot is None:
            return
        self.set_collection(collection, [r for r in snapshot if r.get("id") != record_id])
