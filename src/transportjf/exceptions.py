"""Custom exception hierarchy for transportjf."""

from __future__ import annotations


class TransportError(Exception):
    """Base exception for all transportjf errors."""


class TransportConfigError(TransportError):
    """Invalid or missing configuration."""


class StorageError(TransportError):
    """Durable store failure (I/O, schema, unknown collection)."""

    def __init__(self, message: str, *, collection: str = "") -> None:
        self.collection = collection
        super().__init__(message)


class StorageFullError(StorageError):
    """Durable storage quota exhausted.

    Raised instead of dropping data.  For batch writes ``written`` and
    ``total`` tell the caller how far the batch got before the quota was
    hit; every record counted in ``written`` is durably stored.
    """

    def __init__(
        self,
        message: str = "",
        *,
        collection: str = "",
        written: int = 0,
        total: int = 1,
    ) -> None:
        self.written = written
        self.total = total
        if not message:
            message = (
                f"Durable storage is full (disk quota exhausted, not memory): "
                f"wrote {written} of {total} record(s) to {collection!r}"
            )
        super().__init__(message, collection=collection)


class DuplicateKeyError(StorageError):
    """A uniqueness constraint (``cedula``) was violated on put."""

    def __init__(
        self,
        *,
        collection: str,
        field: str,
        value: str,
        existing_id: str | None = None,
        record_id: str | None = None,
        written: int = 0,
        total: int = 1,
    ) -> None:
        self.field = field
        self.value = value
        self.existing_id = existing_id
        self.record_id = record_id
        self.written = written
        self.total = total
        owner = f" by record {existing_id!r}" if existing_id else ""
        super().__init__(
            f"{field} {value!r} is already registered in {collection!r}{owner}; record {record_id!r} was not saved",
            collection=collection,
        )


class RecordNotFoundError(TransportError):
    """Lookup by id (or cedula) missed."""

    def __init__(self, message: str, *, collection: str = "", key: str = "") -> None:
        self.collection = collection
        self.key = key
        super().__init__(message)


class TripStateError(TransportError):
    """Trip state machine rejected an operation."""


class CapacityExceededError(TripStateError):
    """Group seat limit reached at trip creation."""

    def __init__(self, *, group_id: str, capacity: int) -> None:
        self.group_id = group_id
        self.capacity = capacity
        super().__init__(f"Maximum capacity reached ({capacity} passengers in group {group_id!r})")


class InvalidStateError(TripStateError):
    """Operation attempted without its precondition, or a forbidden transition."""


class MigrationError(TransportError):
    """Legacy data migration failed.

    Never propagates out of :meth:`MigrationManager.migrate`; it is logged
    and the migration is retried on the next start.
    """


class InvalidPayloadError(TransportError):
    """Scanned identity payload could not be decoded."""
