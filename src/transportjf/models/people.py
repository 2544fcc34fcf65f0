"""Passenger, conductor and user records."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from transportjf.models._base import RecordModel


class UserRole(StrEnum):
    ROOT = "root"
    ADMIN = "admin"
    CONDUCTOR = "conductor"


class Passenger(RecordModel):
    """A registered passenger.

    ``qr_code`` references the identity payload rendered by the QR
    collaborator; the core never interprets it.
    """

    name: str = Field(..., min_length=1)
    cedula: str = Field(..., min_length=1)
    gerencia: str = ""
    """Department tag."""
    qr_code: str = ""


class Conductor(RecordModel):
    """A conductor (driver) and the unit/route assigned to them."""

    name: str = Field(..., min_length=1)
    cedula: str = Field(..., min_length=1)
    placa: str = ""
    """Assigned unit number."""
    area: str | None = None
    ruta: str = ""
    """Route description."""
    avatar_url: str | None = None
    cover_url: str | None = None


class User(RecordModel):
    """An account able to use the logbook."""

    name: str = Field(..., min_length=1)
    cedula: str = Field(..., min_length=1)
    role: UserRole = UserRole.CONDUCTOR
