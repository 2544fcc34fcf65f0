from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from transportjf.models import Shift
from transportjf.storage.cache import SyncCache
from transportjf.trips.groups import TripGroupRegistry


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_key_for_is_a_pure_composition() -> None:
    key = TripGroupRegistry.key_for("c1", "R", Shift.MORNING, date(2026, 1, 1))
    assert key == "transport_current_group_c1_R_mañana_2026-01-01"
    assert TripGroupRegistry.key_for("c1", "", None, date(2026, 1, 1)) == (
        "transport_current_group_c1_sin_ruta_sin_turno_2026-01-01"
    )


def test_ensure_group_is_stable_within_a_day_and_shift() -> None:
    registry = TripGroupRegistry(SyncCache(), clock=_Clock(datetime(2026, 1, 1, 8, tzinfo=UTC)))

    first = registry.ensure_group("c1", "R", "mañana")
    assert registry.ensure_group("c1", "R", Shift.MORNING) == first
    assert registry.current_group("c1", "R", "mañana") == first
    assert first.startswith("c1-")

    night = registry.ensure_group("c1", "R", "noche")
    assert night != first
    assert registry.ensure_group("c1", "S", "mañana") != first


def test_new_day_gets_a_new_group() -> None:
    clock = _Clock(datetime(2026, 1, 1, 8, tzinfo=UTC))
    registry = TripGroupRegistry(SyncCache(), clock=clock)
    monday = registry.ensure_group("c1", "R", "mañana")

    clock.now += timedelta(days=1)
    assert registry.current_group("c1", "R", "mañana") is None
    assert registry.ensure_group("c1", "R", "mañana") != monday


def test_clear_group_forces_a_fresh_id() -> None:
    registry = TripGroupRegistry(SyncCache(), clock=_Clock(datetime(2026, 1, 1, 8, tzinfo=UTC)))
    old = registry.ensure_group("c1", "R", "mañana")

    registry.clear_group("c1", "R", "mañana")
    assert registry.current_group("c1", "R", "mañana") is None

    fresh = registry.ensure_group("c1", "R", "mañana")
    assert fresh != old


def test_calendar_day_follows_configured_time_zone() -> None:
    # 02:00 UTC on Jan 2 is still Jan 1 in Caracas (UTC-4)
    clock = _Clock(datetime(2026, 1, 2, 2, tzinfo=UTC))
    registry = TripGroupRegistry(SyncCache(), clock=clock, tz=ZoneInfo("America/Caracas"))
    assert registry.today() == date(2026, 1, 1)


def test_bindings_survive_a_restart(tmp_path) -> None:
    clock = _Clock(datetime(2026, 1, 1, 8, tzinfo=UTC))
    path = tmp_path / "cache.json"
    group = TripGroupRegistry(SyncCache(path), clock=clock).ensure_group("c1", "R", "noche")

    assert TripGroupRegistry(SyncCache(path), clock=clock).current_group("c1", "R", "noche") == group


def test_prune_drops_old_bindings() -> None:
    clock = _Clock(datetime(2026, 1, 1, 8, tzinfo=UTC))
    registry = TripGroupRegistry(SyncCache(), clock=clock)
    registry.ensure_group("c1", "R", "mañana")
    clock.now += timedelta(days=2)
    today = registry.ensure_group("c1", "R", "mañana")

    assert registry.prune() == 1
    assert list(registry.bindings().values()) == [today]


def test_key_for_joins_parts_without_escaping() -> None:
    day = date(2026, 1, 1)
    assert TripGroupRegistry.key_for("a_b", "c", None, day) == TripGroupRegistry.key_for("a", "b_c", None, day)


def test_clear_group_for_an_earlier_day() -> None:
    clock = _Clock(datetime(2026, 1, 1, 23, 30, tzinfo=UTC))
    registry = TripGroupRegistry(SyncCache(), clock=clock)
    registry.ensure_group("c1", "R", "noche")
    started = clock.now

    clock.now += timedelta(hours=1)
    assert registry.day_of(started) == date(2026, 1, 1)
    assert registry.today() == date(2026, 1, 2)

    registry.clear_group("c1", "R", "noche")
    assert len(registry.bindings()) == 1
    registry.clear_group("c1", "R", "noche", registry.day_of(started))
    assert registry.bindings() == {}
