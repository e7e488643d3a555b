# flightlog/store.py
"""
Record store interface and the in-memory reference store.

The engine only ever sees snapshots fetched from a RecordStore, so two
submissions racing for the same slot can both pass the pre-check. A store must
therefore guard overlaps itself at commit time; the in-memory store re-runs
the conflict check under its write lock and raises StaleDataRace when it
loses the race.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
import asyncio
import datetime
import logging
import uuid

from .conflicts import detect_conflicts
from .exceptions import FlightNotFound, StaleDataRace
from .models import Aircraft, FlightRecord, Pilot, PilotCategory

log = logging.getLogger("uvicorn.error")


class RecordStore(ABC):

    @abstractmethod
    async def fetch_flights_for_date_range(
        self,
        start_date: datetime.date,
        end_date: datetime.date,
        pilot_id: Optional[str] = None,
        aircraft_id: Optional[str] = None,
    ) -> List[FlightRecord]:
        """Flights dated within [start_date, end_date], optionally for one person or aircraft."""

    @abstractmethod
    async def fetch_flight(self, flight_id: str) -> Optional[FlightRecord]:
        ...

    @abstractmethod
    async def fetch_pilot(self, pilot_id: str) -> Optional[Pilot]:
        ...

    @abstractmethod
    async def fetch_aircraft(self, aircraft_id: str) -> Optional[Aircraft]:
        ...

    @abstractmethod
    async def fetch_categories(self) -> Dict[str, PilotCategory]:
        ...

    @abstractmethod
    async def commit_many(self, records: List[FlightRecord]) -> List[str]:
        """Persist all records or none. New records get an id; records with an id replace it."""

    @abstractmethod
    async def delete(self, flight_id: str) -> bool:
        ...

    async def commit(self, record: FlightRecord) -> str:
        ids = await self.commit_many([record])
        return ids[0]

    async def fetch_pilots(self, pilot_ids: Iterable[str]) -> Dict[str, Pilot]:
        ids = sorted(set(pilot_ids))
        found = await asyncio.gather(*(self.fetch_pilot(pid) for pid in ids))
        return {p.id: p for p in found if p is not None}

    async def fetch_aircraft_many(self, aircraft_ids: Iterable[str]) -> Dict[str, Aircraft]:
        ids = sorted(set(aircraft_ids))
        found = await asyncio.gather(*(self.fetch_aircraft(aid) for aid in ids))
        return {a.id: a for a in found if a is not None}


class InMemoryRecordStore(RecordStore):
    """Process-local store used by the HTTP app and the tests."""

    def __init__(
        self,
        pilots: Iterable[Pilot] = (),
        aircraft: Iterable[Aircraft] = (),
        categories: Iterable[PilotCategory] = (),
        flights: Iterable[FlightRecord] = (),
    ):
        self._pilots: Dict[str, Pilot] = {p.id: p for p in pilots}
        self._aircraft: Dict[str, Aircraft] = {a.id: a for a in aircraft}
        self._categories: Dict[str, PilotCategory] = {c.id: c for c in categories}
        self._flights: Dict[str, FlightRecord] = {}
        self._lock = asyncio.Lock()
        for f in flights:
            fid = f.id or uuid.uuid4().hex
            self._flights[fid] = f.model_copy(update={"id": fid})

    async def fetch_flights_for_date_range(self, start_date, end_date, pilot_id=None, aircraft_id=None):
        out = []
        for f in self._flights.values():
            if not (start_date <= f.date <= end_date):
                continue
            if pilot_id is not None and pilot_id not in f.people():
                continue
            if aircraft_id is not None and f.aircraft_id != aircraft_id:
                continue
            out.append(f.model_copy())
        out.sort(key=lambda f: (f.date, f.start_time, f.id))
        return out

    async def fetch_flight(self, flight_id):
        f = self._flights.get(flight_id)
        return f.model_copy() if f is not None else None

    async def fetch_pilot(self, pilot_id):
        return self._pilots.get(pilot_id)

    async def fetch_aircraft(self, aircraft_id):
        return self._aircraft.get(aircraft_id)

    async def fetch_categories(self):
        return dict(self._categories)

    async def commit_many(self, records):
        async with self._lock:
            staged = dict(self._flights)
            batch: List[FlightRecord] = []
            for rec in records:
                if rec.id is not None and rec.id not in staged:
                    raise FlightNotFound(f"Flight {rec.id} does not exist", {"subject": rec.id})
                stored = rec if rec.id is not None else rec.model_copy(update={"id": uuid.uuid4().hex})
                staged[stored.id] = stored
                batch.append(stored)
            # every record is checked against the fully staged batch
            for stored in batch:
                same_day = [f for f in staged.values() if f.date == stored.date]
                conflicts = detect_conflicts(stored, same_day)
                if conflicts:
                    log.warning("Commit rejected for %s on %s: %s", stored.aircraft_id, stored.date, [c.rule for c in conflicts])
                    raise StaleDataRace(conflicts)
            self._flights = staged
            return [stored.id for stored in batch]

    async def delete(self, flight_id):
        async with self._lock:
            return self._flights.pop(flight_id, None) is not None
