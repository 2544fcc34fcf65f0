from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from transportjf.models import ConductorCredential, Passenger, Trip, TripStatus
from transportjf.models._base import format_timestamp, parse_timestamp


def test_parse_timestamp_accepts_iso_and_epoch() -> None:
    expected = datetime(2026, 2, 12, 19, 14, 7, tzinfo=UTC)
    assert parse_timestamp("2026-02-12T19:14:07.000Z") == expected
    assert parse_timestamp(1_770_923_647) == expected
    assert parse_timestamp(1_770_923_647_000) == expected
    assert parse_timestamp(None) is None


def test_format_timestamp_sorts_like_time() -> None:
    early = format_timestamp(datetime(2026, 1, 1, 8, 0, tzinfo=UTC))
    late = format_timestamp(datetime(2026, 1, 1, 8, 0, 0, 5000, tzinfo=UTC))
    assert early == "2026-01-01T08:00:00.000Z"
    assert late == "2026-01-01T08:00:00.005Z"
    assert early < late


def test_records_use_camel_case_keys_and_keep_unknown_fields() -> None:
    passenger = Passenger.from_record(
        {"id": "p1", "name": "Ana", "cedula": 12345678, "qrCode": "{}", "originalCedula": "12345678"}
    )

    record = passenger.to_record()
    assert passenger.cedula == "12345678"
    assert record["qrCode"] == "{}"
    assert record["originalCedula"] == "12345678"
    assert record["createdAt"].endswith("Z")


def test_trip_finalized_copy() -> None:
    trip = Trip(
        id="t1",
        passenger_id="p1",
        passenger_name="Ana",
        passenger_cedula="111",
        conductor_id="c1",
        conductor_name="Pedro",
        ruta="R",
    )
    end = datetime(2026, 1, 1, 9, tzinfo=UTC)

    done = trip.finalized(end)

    assert trip.is_active
    assert not done.is_active
    assert done.status == TripStatus.FINALIZED
    assert done.to_record()["endTime"] == "2026-01-01T09:00:00.000Z"
    assert "endTime" not in trip.to_record()


def test_required_fields_are_enforced() -> None:
    with pytest.raises(ValidationError):
        Passenger(id="", name="Ana", cedula="1")
    with pytest.raises(ValidationError):
        ConductorCredential(id="x", username="pedro", password="pw")
