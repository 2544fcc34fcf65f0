"""Default records written on first start."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from transportjf._constants import CONDUCTORS, USERS
from transportjf.exceptions import TransportConfigError
from transportjf.models import Conductor, User, UserRole
from transportjf.storage.facade import StorageFacade

_logger = logging.getLogger(__name__)


def default_admin() -> User:
    return User(id="1", name="Administrador", cedula="12345678", role=UserRole.ADMIN)


def disambiguate_cedulas(records: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Suffix repeated cedulas (``-1``, ``-2``, ...) so a seed batch never collides.

    The first occurrence keeps its cedula; later ones keep the original
    under ``originalCedula``.
    """
    counts: dict[str, int] = {}
    result: list[dict[str, Any]] = []
    for record in records:
        item = dict(record)
        cedula = str(item.get("cedula", ""))
        if cedula in counts:
            counts[cedula] += 1
            item["originalCedula"] = cedula
            item["cedula"] = f"{cedula}-{counts[cedula]}"
        else:
            counts[cedula] = 0
        result.append(item)
    return result


def load_conductor_roster(path: str | Path) -> list[dict[str, Any]]:
    """Read a JSON array of conductors; entries without ``id`` get ``cond-<n>``.

    Raises
    ------
    TransportConfigError
        The file is unreadable, is not a JSON array, or an entry is not a
        valid conductor.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise TransportConfigError(f"cannot read conductor roster {str(path)!r}: {exc}") from exc
    if not isinstance(raw, list):
        raise TransportConfigError(f"conductor roster {str(path)!r} must be a JSON array")

    roster: list[dict[str, Any]] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise TransportConfigError(f"conductor roster entry {index} is not an object")
        try:
            conductor = Conductor.from_record({"id": f"cond-{index + 1}"} | entry)
        except ValidationError as exc:
            raise TransportConfigError(f"conductor roster entry {index} is invalid: {exc.error_count()} error(s)") from exc
        roster.append(conductor.to_record())
    return roster


async def seed_defaults(facade: StorageFacade, *, conductors: Iterable[Mapping[str, Any]] = ()) -> bool:
    """Write the default administrator when no user exists yet.

    A non-empty *conductors* roster is loaded into an empty conductors
    collection as well.  Returns whether the administrator was written.
    """
    seeded = False
    if not await facade.get_all(USERS):
        await facade.put(USERS, default_admin())
        _logger.info("Seeded default administrator user")
        seeded = True
    roster = list(conductors)
    if roster:
        count = await seed_collection(facade, CONDUCTORS, roster)
        if count:
            _logger.info("Seeded %d default conductor(s)", count)
    return seeded


async def seed_collection(facade: StorageFacade, collection: str, records: Iterable[Mapping[str, Any]]) -> int:
    """Load a seed list into an empty collection; no-op when it already has records."""
    existing = await facade.get_all(collection)
    if existing:
        _logger.debug("%s already holds %d record(s); skipping seed", collection, len(existing))
        return 0
    return await facade.put_all(collection, disambiguate_cedulas(records))
