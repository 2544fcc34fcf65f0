"""Base model and timestamp handling for logbook records.

Every record model inherits from :class:`RecordModel` which provides:

* ``alias_generator=to_camel`` so the camelCase keys stored in the
  durable store map automatically to snake_case fields.
* ``extra="allow"`` so keys this library does not model (for example
  ``originalCedula`` on seeded conductors) survive a load/save cycle.
* :meth:`RecordModel.to_record` producing the exact mapping that is
  written to the store.

Timestamps are stored as ISO-8601 UTC strings with millisecond precision
(``2026-01-01T08:30:00.000Z``) so that lexicographic order equals
chronological order for index range queries.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce an ISO string, epoch number (seconds **or** milliseconds) or datetime to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise ValueError(f"unsupported timestamp value: {value!r}")


def format_timestamp(value: datetime) -> str:
    """Render *value* as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


Timestamp = Annotated[
    datetime,
    BeforeValidator(parse_timestamp),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]
"""Annotated type storing aware UTC datetimes as ISO-8601 ``...Z`` strings."""

OptionalTimestamp = Annotated[
    datetime | None,
    BeforeValidator(parse_timestamp),
    PlainSerializer(lambda v: format_timestamp(v) if v is not None else None, when_used="json"),
]


class RecordModel(BaseModel):
    """Base for records kept in a named collection."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )

    id: str = Field(..., min_length=1)
    created_at: Timestamp = Field(default_factory=utcnow)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Self:
        """Build a model from a stored mapping."""
        return cls.model_validate(record)

    def to_record(self) -> dict[str, Any]:
        """Return the mapping written to the durable store."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
