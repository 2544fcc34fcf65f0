"""Trip state machine.

``active`` (``en_curso``) is the initial state and ``finalized``
(``finalizado``) the terminal one.  Starting a trip places it in the
boarding group of its conductor/route/shift/day; a group holds at most
``capacity`` active trips.

Starts and identifications run one at a time per lifecycle, so the seat
count read before a write is still current when the trip is stored.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from transportjf._constants import DEFAULT_ROUTE, DEFAULT_SEAT_CAPACITY, PASSENGERS, TRIPS
from transportjf.exceptions import CapacityExceededError, InvalidStateError, RecordNotFoundError
from transportjf.identity import decode_identity
from transportjf.models import Conductor, Passenger, Shift, Trip, TripStatus
from transportjf.storage.facade import StorageFacade
from transportjf.trips.groups import TripGroupRegistry

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_shift(shift: Shift | str | None) -> Shift:
    if not shift:
        raise InvalidStateError("select shift first")
    try:
        return Shift(shift)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in Shift)
        raise InvalidStateError(f"unknown shift {shift!r}; expected one of: {allowed}") from exc


class IdentifyAction(StrEnum):
    STARTED = "started"
    FINALIZED = "finalized"


@dataclass(frozen=True, slots=True)
class IdentifyResult:
    """Outcome of identifying a passenger at the door."""

    action: IdentifyAction
    trip: Trip
    passenger: Passenger

    @property
    def message(self) -> str:
        verb = "started" if self.action == IdentifyAction.STARTED else "finalized"
        return f"Trip {verb} for {self.passenger.name}"


class TripLifecycle:
    """Start and finalize trips through the storage facade."""

    def __init__(
        self,
        facade: StorageFacade,
        registry: TripGroupRegistry,
        *,
        capacity: int = DEFAULT_SEAT_CAPACITY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._facade = facade
        self._registry = registry
        self._capacity = capacity
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def active_trips(self) -> list[Trip]:
        return [t for t in await self._facade.load(TRIPS, Trip) if t.is_active]

    async def group_trips(self, group_id: str) -> list[Trip]:
        return [Trip.from_record(r) for r in await self._facade.find(TRIPS, "groupId", group_id)]

    async def active_trip_for(self, passenger_id: str) -> Trip | None:
        """Linear scan of active trips for *passenger_id*."""
        for trip in await self.active_trips():
            if trip.passenger_id == passenger_id:
                return trip
        return None

    async def seats_taken(self, group_id: str) -> int:
        return sum(1 for t in await self.group_trips(group_id) if t.is_active)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(
        self,
        passenger: Passenger,
        conductor: Conductor,
        route: str | None,
        shift: Shift | str | None,
    ) -> Trip:
        """Create an active trip in the conductor's current boarding group.

        Raises
        ------
        InvalidStateError
            No (or an unknown) shift was given.
        CapacityExceededError
            The group already holds ``capacity`` active trips; nothing is
            written.
        """
        async with self._lock:
            return await self._start(passenger, conductor, route, shift)

    async def _start(
        self,
        passenger: Passenger,
        conductor: Conductor,
        route: str | None,
        shift: Shift | str | None,
    ) -> Trip:
        selected = _parse_shift(shift)
        ruta = route or conductor.ruta or DEFAULT_ROUTE
        group_id = self._registry.ensure_group(conductor.id, ruta, selected)

        taken = await self.seats_taken(group_id)
        if taken >= self._capacity:
            _logger.info("Group %s is full (%d/%d); refusing %s", group_id, taken, self._capacity, passenger.cedula)
            raise CapacityExceededError(group_id=group_id, capacity=self._capacity)

        now = self._clock()
        trip = Trip(
            id=uuid.uuid4().hex,
            group_id=group_id,
            shift=selected,
            passenger_id=passenger.id,
            passenger_name=passenger.name,
            passenger_cedula=passenger.cedula,
            passenger_gerencia=passenger.gerencia or None,
            conductor_id=conductor.id,
            conductor_name=conductor.name,
            ruta=ruta,
            start_time=now,
            status=TripStatus.ACTIVE,
            created_at=now,
        )
        await self._facade.put(TRIPS, trip)
        _logger.debug("Started trip %s group=%s seat=%d/%d", trip.id, group_id, taken + 1, self._capacity)
        return trip

    async def finalize_one(self, trip_id: str) -> Trip:
        """Finalize a single trip; finalizing a finalized trip is a no-op."""
        trip = Trip.from_record(await self._facade.require(TRIPS, trip_id))
        if not trip.is_active:
            return trip
        finalized = trip.finalized(self._clock())
        await self._facade.put(TRIPS, finalized)
        _logger.debug("Finalized trip %s", trip_id)
        return finalized

    async def finalize_route(
        self,
        route: str,
        *,
        conductor_id: str | None = None,
        shift: Shift | str | None = None,
    ) -> list[Trip]:
        """Finalize every active trip on *route* and clear its group bindings.

        Bindings are cleared for each (conductor, shift, start day) found
        among the finalized trips, so a night shift that crossed midnight
        loses yesterday's binding too, plus today's binding of the session
        given explicitly.  If writing the batch fails, no binding is cleared
        and the error propagates, so the call can simply be retried.
        """
        async with self._lock:
            now = self._clock()
            finalized = [t.finalized(now) for t in await self.active_trips() if t.ruta == route]
            if finalized:
                await self._facade.put_all(TRIPS, finalized)

            sessions = {(t.conductor_id, t.shift, self._registry.day_of(t.start_time)) for t in finalized}
            if conductor_id is not None:
                sessions.add((conductor_id, _parse_shift(shift) if shift else None, self._registry.today()))
            for session_conductor, session_shift, day in sessions:
                self._registry.clear_group(session_conductor, route, session_shift, day)

        _logger.info("Finalized %d trip(s) on route %r", len(finalized), route)
        return finalized

    # ------------------------------------------------------------------
    # Identification (scan or manual entry)
    # ------------------------------------------------------------------

    async def identify(
        self,
        passenger: Passenger,
        conductor: Conductor,
        route: str | None,
        shift: Shift | str | None,
    ) -> IdentifyResult:
        """Finalize the passenger's active trip, or start one if there is none."""
        async with self._lock:
            existing = await self.active_trip_for(passenger.id)
            if existing is not None:
                trip = await self.finalize_one(existing.id)
                return IdentifyResult(IdentifyAction.FINALIZED, trip, passenger)
            trip = await self._start(passenger, conductor, route, shift)
        return IdentifyResult(IdentifyAction.STARTED, trip, passenger)

    async def identify_cedula(
        self,
        cedula: str,
        conductor: Conductor,
        route: str | None,
        shift: Shift | str | None,
    ) -> IdentifyResult:
        cedula = cedula.strip()
        if not cedula:
            raise InvalidStateError("enter a valid cedula")
        record = await self._facade.find_by_cedula(PASSENGERS, cedula)
        if record is None:
            raise RecordNotFoundError(
                f"Passenger with cedula {cedula} is not registered",
                collection=PASSENGERS,
                key=cedula,
            )
        return await self.identify(Passenger.from_record(record), conductor, route, shift)

    async def identify_payload(
        self,
        blob: str | bytes,
        conductor: Conductor,
        route: str | None,
        shift: Shift | str | None,
    ) -> IdentifyResult:
        payload = decode_identity(blob)
        return await self.identify_cedula(payload.cedula, conductor, route, shift)
