"""Passenger identity payload carried by QR codes.

Only the payload is handled here; rendering it as an image and scanning
it back are done by the QR collaborator, which passes the decoded text to
:func:`decode_identity`.
"""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from transportjf.exceptions import InvalidPayloadError
from transportjf.models import Passenger, Timestamp, utcnow


class IdentityPayload(BaseModel):
    """Fields a scanner needs to identify a passenger."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True, coerce_numbers_to_str=True)

    cedula: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    gerencia: str = ""
    timestamp: Timestamp = Field(default_factory=utcnow)

    @classmethod
    def for_passenger(cls, passenger: Passenger) -> IdentityPayload:
        return cls(cedula=passenger.cedula, name=passenger.name, gerencia=passenger.gerencia)


def encode_identity(payload: IdentityPayload) -> str:
    """Serialize *payload* to the compact JSON text embedded in a QR code."""
    return payload.model_dump_json()


def decode_identity(blob: str | bytes) -> IdentityPayload:
    """Parse scanned text back into an :class:`IdentityPayload`.

    Raises
    ------
    InvalidPayloadError
        The text is not a JSON object with at least ``cedula`` and ``name``.
    """
    if isinstance(blob, bytes):
        try:
            blob = blob.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidPayloadError("Identity payload is not UTF-8 text") from exc
    text = blob.strip()
    if not text:
        raise InvalidPayloadError("Identity payload is empty")
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise InvalidPayloadError("Identity payload is not valid JSON") from exc
    if not isinstance(data, dict):
        raise InvalidPayloadError("Identity payload must be a JSON object")
    try:
        return IdentityPayload.model_validate(data)
    except ValidationError as exc:
        raise InvalidPayloadError(f"Identity payload is missing required fields: {exc.error_count()} error(s)") from exc
