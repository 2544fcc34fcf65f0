"""Record models for the logbook collections."""

from transportjf.models._base import (
    OptionalTimestamp,
    RecordModel,
    Timestamp,
    format_timestamp,
    parse_timestamp,
    utcnow,
)
from transportjf.models.admin import ConductorCredential, Signature, SignatureType
from transportjf.models.people import Conductor, Passenger, User, UserRole
from transportjf.models.trip import Shift, Trip, TripStatus

__all__ = [
    "Conductor",
    "ConductorCredential",
    "OptionalTimestamp",
    "Passenger",
    "RecordModel",
    "Shift",
    "Signature",
    "SignatureType",
    "Timestamp",
    "Trip",
    "TripStatus",
    "User",
    "UserRole",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
