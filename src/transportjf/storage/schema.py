"""Declared collections and their secondary indexes.

The durable store creates one table per collection.  Besides the ``id``
primary key and the JSON document, every declared index field gets its own
column so SQLite can enforce uniqueness and answer group/range queries.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from transportjf._constants import (
    CONDUCTOR_CREDENTIALS,
    CONDUCTORS,
    PASSENGERS,
    SIGNATURES,
    TRIPS,
    USERS,
)

_SAFE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def assert_safe_identifier(value: str, label: str) -> str:
    if not _SAFE_IDENTIFIER.match(value):
        raise ValueError(f"unsafe SQL identifier for {label}: {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class CollectionSpec:
    """Shape of one named collection."""

    name: str
    unique: tuple[str, ...] = ()
    indexes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        assert_safe_identifier(self.name, "collection")
        for column in self.columns:
            assert_safe_identifier(column, "index")

    @property
    def columns(self) -> tuple[str, ...]:
        return self.unique + self.indexes

    def index_name(self, column: str) -> str:
        return f"idx_{self.name}_{column}"

    def has_index(self, column: str) -> bool:
        return column in self.columns


SCHEMA: dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CollectionSpec(USERS, unique=("cedula",)),
        CollectionSpec(PASSENGERS, unique=("cedula",)),
        CollectionSpec(CONDUCTORS, unique=("cedula",)),
        CollectionSpec(TRIPS, indexes=("conductorId", "passengerId", "groupId", "startTime")),
        CollectionSpec(SIGNATURES),
        CollectionSpec(CONDUCTOR_CREDENTIALS, indexes=("conductorId",)),
    )
}
