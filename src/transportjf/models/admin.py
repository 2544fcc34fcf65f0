"""Report signatures and conductor login credentials (CRUD only)."""

from __future__ import annotations

from enum import StrEnum

from transportjf.models._base import RecordModel


class SignatureType(StrEnum):
    CONTRACTOR = "contratista"
    CORPORATION = "corporacion"


class Signature(RecordModel):
    """Verifier identity block printed on reports."""

    type: SignatureType
    name: str
    ci: str
    cargo: str = ""


class ConductorCredential(RecordModel):
    conductor_id: str
    username: str
    password: str
    is_active: bool = True
