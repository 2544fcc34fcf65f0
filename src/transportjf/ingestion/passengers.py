"""Passenger import pipeline.

:func:`passengers_from_rows` is a pure mapping from tabular rows (dicts
keyed by column header) to candidate passenger records; it does no I/O so
it can be tested on its own.  :func:`import_passengers` wires it to the
storage facade.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from transportjf._constants import PASSENGERS
from transportjf.identity import IdentityPayload, encode_identity
from transportjf.ingestion.normalize import first_present, normalize_cedula
from transportjf.models import Passenger
from transportjf.storage.facade import StorageFacade

_logger = logging.getLogger(__name__)

NAME_COLUMNS: tuple[str, ...] = ("Nombres y Apellidos", "Nombre", "nombre", "NOMBRE", "Name", "name")
CEDULA_COLUMNS: tuple[str, ...] = ("Cedula", "Cédula", "cedula", "CEDULA", "ID", "id")
GERENCIA_COLUMNS: tuple[str, ...] = ("Gerencia", "gerencia", "GERENCIA", "Department", "department")


@dataclass(slots=True)
class ImportSummary:
    """What happened to each row of an import batch."""

    imported: list[Passenger] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    """Cedulas skipped because they were already registered or repeated in the batch."""
    skipped_rows: list[int] = field(default_factory=list)
    """Zero-based indexes of rows missing a name or cedula."""

    @property
    def imported_count(self) -> int:
        return len(self.imported)


def _new_id() -> str:
    return str(uuid.uuid4())


def passengers_from_rows(
    rows: Iterable[Mapping[str, Any]],
    existing_cedulas: Iterable[str] = (),
    *,
    now: datetime | None = None,
    id_factory: Callable[[], str] = _new_id,
) -> ImportSummary:
    """Map rows to new passengers, skipping incomplete rows and known cedulas."""
    created_at = now or datetime.now(UTC)
    seen = set(existing_cedulas)
    summary = ImportSummary()
    for index, row in enumerate(rows):
        name = first_present(row, NAME_COLUMNS)
        cedula = normalize_cedula(first_present(row, CEDULA_COLUMNS))
        if not name or not cedula:
            summary.skipped_rows.append(index)
            continue
        if cedula in seen:
            summary.duplicates.append(cedula)
            continue
        gerencia = first_present(row, GERENCIA_COLUMNS) or ""
        payload = IdentityPayload(cedula=cedula, name=name, gerencia=gerencia, timestamp=created_at)
        summary.imported.append(
            Passenger(
                id=id_factory(),
                name=name,
                cedula=cedula,
                gerencia=gerencia,
                qr_code=encode_identity(payload),
                created_at=created_at,
            )
        )
        seen.add(cedula)
    return summary


async def import_passengers(
    facade: StorageFacade,
    rows: Iterable[Mapping[str, Any]],
    *,
    now: datetime | None = None,
) -> ImportSummary:
    """De-duplicate *rows* against stored passengers and save the new ones.

    Storage errors (:class:`~transportjf.exceptions.StorageFullError`,
    :class:`~transportjf.exceptions.DuplicateKeyError`) propagate with the
    number of records written before the failure.
    """
    existing = await facade.get_all(PASSENGERS)
    summary = passengers_from_rows(rows, (str(p.get("cedula", "")) for p in existing), now=now)
    if summary.imported:
        await facade.put_all(PASSENGERS, summary.imported)
    _logger.info(
        "Imported %d passenger(s); %d duplicate(s), %d incomplete row(s)",
        summary.imported_count,
        len(summary.duplicates),
        len(summary.skipped_rows),
    )
    return summary
