"""Trip record and its state enums."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from transportjf.models._base import OptionalTimestamp, RecordModel, Timestamp, utcnow


class Shift(StrEnum):
    """Time-of-day period a boarding group belongs to."""

    MORNING = "mañana"
    NIGHT = "noche"


class TripStatus(StrEnum):
    ACTIVE = "en_curso"
    FINALIZED = "finalizado"


class Trip(RecordModel):
    """One passenger riding with one conductor.

    Passenger and conductor names are copied at creation so historical
    reports stay correct when the referenced records change later.
    """

    group_id: str | None = None
    shift: Shift | None = None
    passenger_id: str
    passenger_name: str
    passenger_cedula: str
    passenger_gerencia: str | None = None
    conductor_id: str
    conductor_name: str
    ruta: str
    start_time: Timestamp = Field(default_factory=utcnow)
    end_time: OptionalTimestamp = None
    status: TripStatus = TripStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == TripStatus.ACTIVE

    def finalized(self, at: datetime) -> Trip:
        """Return the finalized copy of this trip (``end_time`` = *at*)."""
        return self.model_copy(update={"status": TripStatus.FINALIZED, "end_time": at})
