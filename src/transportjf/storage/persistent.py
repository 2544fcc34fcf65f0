"""Durable, versioned collection store backed by SQLite.

Every public method is a coroutine.  The blocking SQLite work runs on a
single dedicated worker thread, so operations complete in the order they
were submitted; this is what gives callers per-collection ordering.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from transportjf._constants import SCHEMA_VERSION
from transportjf._redact import redact_for_log, summarize_records
from transportjf.exceptions import DuplicateKeyError, StorageError, StorageFullError
from transportjf.storage.schema import SCHEMA, CollectionSpec

_logger = logging.getLogger(__name__)

T = TypeVar("T")

Record = dict[str, Any]


def _is_storage_full(exc: sqlite3.Error) -> bool:
    if getattr(exc, "sqlite_errorcode", None) == sqlite3.SQLITE_FULL:
        return True
    return "database or disk is full" in str(exc)


def _index_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float)):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


class PersistentStore:
    """System of record for the logbook collections.

    Usage::

        async with PersistentStore("logbook.sqlite3") as store:
            await store.put("passengers", {"id": "p1", "cedula": "123", ...})
            records = await store.get_all("passengers")
    """

    def __init__(
        self,
        path: str,
        *,
        quota_bytes: int | None = None,
        schema: Mapping[str, CollectionSpec] = SCHEMA,
    ) -> None:
        self._path = path
        self._quota_bytes = quota_bytes
        self._schema = dict(schema)
        self._conn: sqlite3.Connection | None = None
        self._executor: ThreadPoolExecutor | None = None
        self.schema_version: int | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PersistentStore:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def collections(self) -> tuple[str, ...]:
        return tuple(self._schema)

    async def open(self) -> None:
        """Open the database and run the additive schema upgrade."""
        if self._conn is not None:
            return
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="transportjf-store")
        try:
            self._conn = await self._submit(self._open_sync)
        except BaseException:
            self._executor.shutdown(wait=False)
            self._executor = None
            raise
        _logger.debug("Store opened path=%s schema_version=%s", self._path, self.schema_version)

    async def close(self) -> None:
        conn = self._conn
        executor = self._executor
        if conn is None or executor is None:
            return
        try:
            await self._submit(conn.close)
        finally:
            self._conn = None
            self._executor = None
            executor.shutdown(wait=True)
        _logger.debug("Store closed path=%s", self._path)

    def _open_sync(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._path, check_same_thread=False, isolation_level=None)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open durable store at {self._path!r}: {exc}") from exc
        try:
            self._upgrade_schema(conn)
            if self._quota_bytes is not None:
                page_size = int(conn.execute("PRAGMA page_size").fetchone()[0])
                max_pages = max(self._quota_bytes // page_size, 1)
                # SQLite clamps the limit to the current size if it is lower.
                conn.execute(f"PRAGMA max_page_count = {max_pages}")
        except sqlite3.Error as exc:
            conn.close()
            if _is_storage_full(exc):
                raise StorageFullError("Durable storage is full; cannot create the schema") from exc
            raise StorageError(f"Schema upgrade failed: {exc}") from exc
        except StorageError:
            conn.close()
            raise
        return conn

    def _upgrade_schema(self, conn: sqlite3.Connection) -> None:
        """Create missing tables, columns and indexes; never drops anything."""
        with conn:
            conn.execute("BEGIN")
            conn.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            row = conn.execute("SELECT value FROM meta WHERE key = 'schema_version'").fetchone()
            stored = int(row[0]) if row is not None else 0
            if stored > SCHEMA_VERSION:
                raise StorageError(
                    f"Durable store schema version {stored} is newer than supported version {SCHEMA_VERSION}"
                )
            for spec in self._schema.values():
                conn.execute(
                    f'CREATE TABLE IF NOT EXISTS "{spec.name}" ('
                    "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
                    "id TEXT NOT NULL UNIQUE, "
                    "doc TEXT NOT NULL)"
                )
                existing = {r[1] for r in conn.execute(f'PRAGMA table_info("{spec.name}")')}
                for column in spec.columns:
                    if column not in existing:
                        conn.execute(f'ALTER TABLE "{spec.name}" ADD COLUMN "{column}"')
                for column in spec.unique:
                    conn.execute(
                        f'CREATE UNIQUE INDEX IF NOT EXISTS "{spec.index_name(column)}" '
                        f'ON "{spec.name}" ("{column}")'
                    )
                for column in spec.indexes:
                    conn.execute(
                        f'CREATE INDEX IF NOT EXISTS "{spec.index_name(column)}" ON "{spec.name}" ("{column}")'
                    )
            conn.execute(
                "INSERT INTO meta (key, value) VALUES ('schema_version', ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (str(SCHEMA_VERSION),),
            )
        if stored != SCHEMA_VERSION:
            _logger.info("Durable store schema upgraded from version %s to %s", stored, SCHEMA_VERSION)
        self.schema_version = SCHEMA_VERSION

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _submit(self, fn: Callable[[], T]) -> T:
        if self._executor is None:
            raise StorageError("Store not open. Use 'async with PersistentStore(...) as store:'")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Store not open. Use 'async with PersistentStore(...) as store:'")
        return self._conn

    def _spec(self, collection: str) -> CollectionSpec:
        spec = self._schema.get(collection)
        if spec is None:
            raise StorageError(f"Unknown collection {collection!r}", collection=collection)
        return spec

    @staticmethod
    def _decode(rows: Iterable[tuple[Any, ...]]) -> list[Record]:
        return [json.loads(row[0]) for row in rows]

    def _query(self, collection: str, sql: str, params: tuple[Any, ...] = ()) -> list[Record]:
        conn = self._require_conn()
        try:
            return self._decode(conn.execute(sql, params).fetchall())
        except sqlite3.Error as exc:
            raise StorageError(f"Read from {collection!r} failed: {exc}", collection=collection) from exc

    def _put_sync(self, spec: CollectionSpec, record: Mapping[str, Any], *, written: int = 0, total: int = 1) -> None:
        conn = self._require_conn()
        record_id = record.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise ValueError(f"record for {spec.name!r} needs a non-empty string 'id'")
        try:
            doc = json.dumps(record, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"record {record_id!r} is not JSON serializable: {exc}") from exc

        columns = ("id", "doc", *spec.columns)
        values = (record_id, doc, *(_index_value(record.get(c)) for c in spec.columns))
        column_sql = ", ".join(f'"{c}"' for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f'"{c}" = excluded."{c}"' for c in columns[1:])
        sql = (
            f'INSERT INTO "{spec.name}" ({column_sql}) VALUES ({placeholders}) '
            f"ON CONFLICT(id) DO UPDATE SET {updates}"
        )
        try:
            with conn:
                conn.execute("BEGIN")
                conn.execute(sql, values)
        except sqlite3.IntegrityError as exc:
            for column in spec.unique:
                value = record.get(column)
                if value is None:
                    continue
                row = conn.execute(
                    f'SELECT id FROM "{spec.name}" WHERE "{column}" = ? AND id != ?',
                    (_index_value(value), record_id),
                ).fetchone()
                if row is not None:
                    raise DuplicateKeyError(
                        collection=spec.name,
                        field=column,
                        value=str(value),
                        existing_id=row[0],
                        record_id=record_id,
                        written=written,
                        total=total,
                    ) from exc
            raise StorageError(f"Write to {spec.name!r} failed: {exc}", collection=spec.name) from exc
        except sqlite3.Error as exc:
            if _is_storage_full(exc):
                raise StorageFullError(collection=spec.name, written=written, total=total) from exc
            raise StorageError(f"Write to {spec.name!r} failed: {exc}", collection=spec.name) from exc

    def _execute_write(self, collection: str, sql: str, params: tuple[Any, ...] = ()) -> int:
        conn = self._require_conn()
        try:
            with conn:
                conn.execute("BEGIN")
                return conn.execute(sql, params).rowcount
        except sqlite3.Error as exc:
            if _is_storage_full(exc):
                raise StorageFullError(collection=collection, written=0, total=1) from exc
            raise StorageError(f"Write to {collection!r} failed: {exc}", collection=collection) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all(self, collection: str) -> list[Record]:
        """Return every record of *collection* in insertion order."""
        spec = self._spec(collection)
        return await self._submit(
            lambda: self._query(collection, f'SELECT doc FROM "{spec.name}" ORDER BY seq')
        )

    async def get_by_id(self, collection: str, record_id: str) -> Record | None:
        spec = self._spec(collection)
        rows = await self._submit(
            lambda: self._query(collection, f'SELECT doc FROM "{spec.name}" WHERE id = ?', (record_id,))
        )
        return rows[0] if rows else None

    async def find(self, collection: str, index: str, value: Any) -> list[Record]:
        """Return records whose indexed *index* field equals *value*."""
        spec = self._spec(collection)
        if not spec.has_index(index):
            raise StorageError(f"{collection!r} has no index on {index!r}", collection=collection)
        return await self._submit(
            lambda: self._query(
                collection,
                f'SELECT doc FROM "{spec.name}" WHERE "{index}" = ? ORDER BY seq',
                (_index_value(value),),
            )
        )

    async def find_range(
        self,
        collection: str,
        index: str,
        lower: Any = None,
        upper: Any = None,
    ) -> list[Record]:
        """Return records with ``lower <= record[index] <= upper``, ordered by the index.

        Either bound may be ``None`` for an open-ended range.
        """
        spec = self._spec(collection)
        if not spec.has_index(index):
            raise StorageError(f"{collection!r} has no index on {index!r}", collection=collection)
        clauses = [f'"{index}" IS NOT NULL']
        params: list[Any] = []
        if lower is not None:
            clauses.append(f'"{index}" >= ?')
            params.append(_index_value(lower))
        if upper is not None:
            clauses.append(f'"{index}" <= ?')
            params.append(_index_value(upper))
        sql = f'SELECT doc FROM "{spec.name}" WHERE {" AND ".join(clauses)} ORDER BY "{index}", seq'
        return await self._submit(lambda: self._query(collection, sql, tuple(params)))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, collection: str, record: Mapping[str, Any]) -> None:
        """Insert or replace *record* by ``id``.

        Raises
        ------
        DuplicateKeyError
            Another record of the collection already owns the unique key.
        StorageFullError
            The durable storage quota is exhausted; nothing was written.
        """
        spec = self._spec(collection)
        payload = dict(record)
        await self._submit(lambda: self._put_sync(spec, payload))
        _logger.debug("put %s %s", collection, redact_for_log(payload))

    async def put_all(self, collection: str, records: Iterable[Mapping[str, Any]]) -> int:
        """Put every record, committing each one on its own.

        Not atomic: on failure the records before the failing one stay
        written and the raised error reports ``written`` of ``total``.
        Returns the number of records written.
        """
        spec = self._spec(collection)
        payloads = [dict(r) for r in records]
        if not payloads:
            return 0

        def _run() -> int:
            total = len(payloads)
            for index, payload in enumerate(payloads):
                self._put_sync(spec, payload, written=index, total=total)
            return total

        written = await self._submit(_run)
        _logger.debug("put_all %s %s", collection, summarize_records(payloads))
        return written

    async def delete(self, collection: str, record_id: str) -> bool:
        """Delete a record by id; returns whether a record was removed."""
        spec = self._spec(collection)
        removed = await self._submit(
            lambda: self._execute_write(collection, f'DELETE FROM "{spec.name}" WHERE id = ?', (record_id,))
        )
        _logger.debug("delete %s id=%s removed=%s", collection, record_id, removed)
        return removed > 0

    async def clear(self, collection: str) -> None:
        spec = self._spec(collection)
        removed = await self._submit(lambda: self._execute_write(collection, f'DELETE FROM "{spec.name}"'))
        _logger.debug("clear %s removed=%s", collection, removed)

    async def clear_all(self) -> None:
        for collection in self._schema:
            await self.clear(collection)
