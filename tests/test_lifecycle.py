from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from transportjf.exceptions import (
    CapacityExceededError,
    InvalidPayloadError,
    InvalidStateError,
    RecordNotFoundError,
    StorageFullError,
)
from transportjf.identity import IdentityPayload, encode_identity
from transportjf.models import Conductor, Passenger, Shift, Trip, TripStatus
from transportjf.storage.cache import SyncCache
from transportjf.storage.facade import StorageFacade
from transportjf.storage.persistent import PersistentStore
from transportjf.trips.groups import TripGroupRegistry
from transportjf.trips.lifecycle import IdentifyAction, TripLifecycle


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@dataclass
class _Env:
    facade: StorageFacade
    registry: TripGroupRegistry
    trips: TripLifecycle
    conductor: Conductor


@asynccontextmanager
async def _env(tmp_path: Path) -> AsyncIterator[_Env]:
    clock = _Clock()
    async with PersistentStore(str(tmp_path / "db.sqlite3")) as store:
        cache = SyncCache()
        facade = StorageFacade(store, cache)
        registry = TripGroupRegistry(cache, clock=clock)
        conductor = Conductor(id="c1", name="Pedro", cedula="900", placa="U-12", ruta="R")
        await facade.put("conductors", conductor)
        yield _Env(facade, registry, TripLifecycle(facade, registry, clock=clock), conductor)


async def _passengers(facade: StorageFacade, count: int, prefix: str = "p") -> list[Passenger]:
    people = [
        Passenger(id=f"{prefix}{i}", name=f"Passenger {i}", cedula=f"{prefix}-{1000 + i}", gerencia="Ops")
        for i in range(count)
    ]
    await facade.put_all("passengers", people)
    return people


@pytest.mark.asyncio
async def test_start_requires_a_shift(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)

        with pytest.raises(InvalidStateError, match="select shift first"):
            await env.trips.start(passenger, env.conductor, "R", None)
        with pytest.raises(InvalidStateError):
            await env.trips.start(passenger, env.conductor, "R", "tarde")
        assert await env.facade.get_all("trips") == []


@pytest.mark.asyncio
async def test_start_snapshots_passenger_and_conductor(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)

        trip = await env.trips.start(passenger, env.conductor, "R", "mañana")

        assert trip.status == TripStatus.ACTIVE
        assert trip.shift == Shift.MORNING
        assert trip.group_id == env.registry.current_group("c1", "R", "mañana")
        assert (trip.passenger_name, trip.passenger_cedula, trip.passenger_gerencia) == ("Passenger 0", "p-1000", "Ops")
        assert trip.conductor_name == "Pedro"
        assert trip.end_time is None
        stored = await env.facade.require("trips", trip.id)
        assert stored["status"] == "en_curso"
        assert stored["startTime"].endswith("Z")


@pytest.mark.asyncio
async def test_empty_route_falls_back_to_conductor_route(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)
        trip = await env.trips.start(passenger, env.conductor, "", "noche")
        assert trip.ruta == "R"


@pytest.mark.asyncio
async def test_capacity_is_enforced_per_group(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        people = await _passengers(env.facade, 20)

        started = [await env.trips.start(p, env.conductor, "R", "mañana") for p in people[:18]]
        assert len({t.group_id for t in started}) == 1

        with pytest.raises(CapacityExceededError) as excinfo:
            await env.trips.start(people[18], env.conductor, "R", "mañana")
        assert excinfo.value.capacity == 18
        assert excinfo.value.group_id == started[0].group_id
        assert len(await env.facade.get_all("trips")) == 18

        # another shift is another group
        await env.trips.start(people[18], env.conductor, "R", "noche")


@pytest.mark.asyncio
async def test_finalized_trips_free_their_seat(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        people = await _passengers(env.facade, 19)
        started = [await env.trips.start(p, env.conductor, "R", "mañana") for p in people[:18]]

        await env.trips.finalize_one(started[0].id)
        trip = await env.trips.start(people[18], env.conductor, "R", "mañana")
        assert trip.group_id == started[0].group_id


@pytest.mark.asyncio
async def test_finalize_one(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)
        trip = await env.trips.start(passenger, env.conductor, "R", "mañana")

        done = await env.trips.finalize_one(trip.id)
        assert done.status == TripStatus.FINALIZED
        assert done.end_time is not None

        again = await env.trips.finalize_one(trip.id)
        assert again.end_time == done.end_time

        with pytest.raises(RecordNotFoundError):
            await env.trips.finalize_one("missing")


@pytest.mark.asyncio
async def test_finalize_route_only_touches_that_route_and_clears_group(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        people = await _passengers(env.facade, 7)
        on_r = [await env.trips.start(p, env.conductor, "R", "mañana") for p in people[:5]]
        on_s = [await env.trips.start(p, env.conductor, "S", "mañana") for p in people[5:]]
        old_group = on_r[0].group_id

        finalized = await env.trips.finalize_route("R")

        assert {t.id for t in finalized} == {t.id for t in on_r}
        trips = [Trip.from_record(r) for r in await env.facade.get_all("trips")]
        done = [t for t in trips if t.status == TripStatus.FINALIZED]
        assert len(done) == 5
        assert all(t.end_time is not None and t.ruta == "R" for t in done)
        assert {t.id for t in trips if t.is_active} == {t.id for t in on_s}

        assert env.registry.current_group("c1", "R", "mañana") is None
        assert env.registry.current_group("c1", "S", "mañana") == on_s[0].group_id
        assert env.registry.ensure_group("c1", "R", "mañana") != old_group


@pytest.mark.asyncio
async def test_finalize_route_keeps_binding_when_batch_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async with _env(tmp_path) as env:
        people = await _passengers(env.facade, 2)
        started = [await env.trips.start(p, env.conductor, "R", "mañana") for p in people]

        async def _full(*_args: object, **_kwargs: object) -> int:
            raise StorageFullError(collection="trips", written=0, total=2)

        monkeypatch.setattr(env.facade, "put_all", _full)
        with pytest.raises(StorageFullError):
            await env.trips.finalize_route("R")

        assert env.registry.current_group("c1", "R", "mañana") == started[0].group_id
        monkeypatch.undo()

        assert len(await env.trips.finalize_route("R")) == 2
        assert env.registry.current_group("c1", "R", "mañana") is None


@pytest.mark.asyncio
async def test_finalize_route_clears_explicit_binding_without_trips(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        env.registry.ensure_group("c1", "R", "noche")
        assert await env.trips.finalize_route("R", conductor_id="c1", shift="noche") == []
        assert env.registry.current_group("c1", "R", "noche") is None


@pytest.mark.asyncio
async def test_identify_toggles_between_start_and_finalize(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)

        first = await env.trips.identify(passenger, env.conductor, "R", "mañana")
        assert first.action == IdentifyAction.STARTED
        assert first.message == "Trip started for Passenger 0"

        second = await env.trips.identify_cedula(" p-1000 ", env.conductor, "R", "mañana")
        assert second.action == IdentifyAction.FINALIZED
        assert second.trip.id == first.trip.id
        assert await env.trips.active_trip_for(passenger.id) is None


@pytest.mark.asyncio
async def test_identify_by_payload_and_unknown_cedula(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)
        blob = encode_identity(IdentityPayload.for_passenger(passenger))

        result = await env.trips.identify_payload(blob, env.conductor, "R", "noche")
        assert result.action == IdentifyAction.STARTED

        with pytest.raises(InvalidPayloadError):
            await env.trips.identify_payload("not a qr", env.conductor, "R", "noche")
        with pytest.raises(RecordNotFoundError, match="4242"):
            await env.trips.identify_cedula("4242", env.conductor, "R", "noche")


@pytest.mark.asyncio
async def test_no_operation_reactivates_a_finalized_trip(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)
        trip = await env.trips.start(passenger, env.conductor, "R", "mañana")
        await env.trips.finalize_one(trip.id)
        await env.trips.finalize_route("R")
        await env.trips.finalize_one(trip.id)

        with pytest.raises(InvalidStateError):
            await env.facade.put("trips", trip)
        stored = Trip.from_record(await env.facade.require("trips", trip.id))
        assert stored.status == TripStatus.FINALIZED

        # a new identification starts a separate trip
        result = await env.trips.identify(passenger, env.conductor, "R", "mañana")
        assert result.action == IdentifyAction.STARTED
        assert result.trip.id != trip.id


@pytest.mark.asyncio
async def test_concurrent_starts_never_exceed_capacity(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        people = await _passengers(env.facade, 5)
        trips = TripLifecycle(env.facade, env.registry, capacity=2, clock=_Clock())

        results = await asyncio.gather(
            *(trips.start(p, env.conductor, "R", "mañana") for p in people),
            return_exceptions=True,
        )

        started = [r for r in results if isinstance(r, Trip)]
        refused = [r for r in results if isinstance(r, CapacityExceededError)]
        assert (len(started), len(refused)) == (2, 3)
        assert await trips.seats_taken(started[0].group_id) == 2


@pytest.mark.asyncio
async def test_concurrent_identifications_of_one_passenger_start_one_trip(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)

        first, second = await asyncio.gather(
            env.trips.identify(passenger, env.conductor, "R", "mañana"),
            env.trips.identify(passenger, env.conductor, "R", "mañana"),
        )

        assert (first.action, second.action) == (IdentifyAction.STARTED, IdentifyAction.FINALIZED)
        assert len(await env.facade.get_all("trips")) == 1


class _WallClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.mark.asyncio
async def test_finalize_route_after_midnight_clears_previous_day_binding(tmp_path: Path) -> None:
    async with _env(tmp_path) as env:
        (passenger,) = await _passengers(env.facade, 1)
        clock = _WallClock(datetime(2026, 1, 1, 23, 30, tzinfo=UTC))
        registry = TripGroupRegistry(env.facade.cache, clock=clock)
        trips = TripLifecycle(env.facade, registry, clock=clock)
        await trips.start(passenger, env.conductor, "R", "noche")

        clock.now = datetime(2026, 1, 2, 0, 30, tzinfo=UTC)
        await trips.finalize_route("R")

        assert registry.bindings() == {}
