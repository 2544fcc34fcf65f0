"""Per-collection read authority.

Some collections are read on every render and need a non-suspending read
path; those are mirrored into the sync cache on every durable write.  The
rest are read from the durable store only.  The table below is the single
place that decides which is which.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

from transportjf._constants import (
    CONDUCTOR_CREDENTIALS,
    CONDUCTORS,
    PASSENGERS,
    SIGNATURES,
    TRIPS,
    USERS,
)


class ReadAuthority(StrEnum):
    MIRRORED = "mirrored"
    """Durable store is the system of record; the sync cache mirrors it and
    answers synchronous reads (and async reads until the store answers)."""
    STORE_ONLY = "store_only"
    """Only the durable store is consulted; no synchronous read path."""


DEFAULT_POLICY: Mapping[str, ReadAuthority] = {
    USERS: ReadAuthority.MIRRORED,
    TRIPS: ReadAuthority.MIRRORED,
    SIGNATURES: ReadAuthority.MIRRORED,
    PASSENGERS: ReadAuthority.STORE_ONLY,
    CONDUCTORS: ReadAuthority.STORE_ONLY,
    CONDUCTOR_CREDENTIALS: ReadAuthority.STORE_ONLY,
}


def is_mirrored(policy: Mapping[str, ReadAuthority], collection: str) -> bool:
    return policy.get(collection, ReadAuthority.STORE_ONLY) == ReadAuthority.MIRRORED


def mirrored_collections(policy: Mapping[str, ReadAuthority]) -> tuple[str, ...]:
    return tuple(c for c, authority in policy.items() if authority == ReadAuthority.MIRRORED)
