# flightlog/billing.py
"""
Flight duration, billable minutes and the per-pilot billing statement.

Durations are computed on integer minutes and rounded UP to the next tenth of
an hour (61 min -> 1.1 h). Tenths are kept as integers wherever they are
summed so totals carry no float drift.
"""

from typing import Iterable, List, Optional
import datetime

from pydantic import BaseModel

from .intervals import to_minutes
from .models import PURPOSE_LABELS, FlightRecord, LogbookType, Purpose, PURPOSE_TRAITS


def duration_minutes(start: datetime.time, end: datetime.time) -> int:
    return to_minutes(end) - to_minutes(start)


def duration_tenths(minutes: int) -> int:
    """Tenths of an hour, rounded up: one tenth is six minutes."""
    if minutes <= 0:
        return 0
    return -(-minutes // 6)


def duration_hours(minutes: int) -> float:
    return duration_tenths(minutes) / 10


def billable_minutes(purpose: Purpose, minutes: int) -> Optional[int]:
    if PURPOSE_TRAITS[purpose].is_tow:
        return None
    return minutes if minutes > 0 else None


def normalize_tows_count(purpose: Purpose, tows_count: Optional[int]) -> int:
    """Towing flights default to one tow but keep a user-entered count; every other purpose logs none."""
    if not PURPOSE_TRAITS[purpose].is_tow:
        return 0
    if tows_count is None:
        return 1
    return max(0, int(tows_count))


def apply_billing(record: FlightRecord) -> FlightRecord:
    """Copy of `record` with duration_hours, billable_minutes and tows_count derived."""
    minutes = duration_minutes(record.start_time, record.end_time)
    return record.model_copy(update={
        "duration_hours": duration_hours(minutes),
        "billable_minutes": billable_minutes(record.purpose, minutes),
        "tows_count": normalize_tows_count(record.purpose, record.tows_count),
    })


def record_tenths(record: FlightRecord) -> int:
    return duration_tenths(duration_minutes(record.start_time, record.end_time))


# ---------- Billing statement ----------
class BillingItem(BaseModel):
    record_id: Optional[str] = None
    date: datetime.date
    start_time: datetime.time
    logbook_type: LogbookType
    purpose: Purpose
    description: str
    aircraft_id: str
    duration_hours: float
    billable_minutes: Optional[int] = None
    tows: int = 0
    billable: bool = True


class BillingStatement(BaseModel):
    pilot_id: str
    start_date: datetime.date
    end_date: datetime.date
    items: List[BillingItem]
    total_billable_minutes: int
    total_launches: int
    no_flights: bool = False


def billing_statement(
    records: Iterable[FlightRecord],
    pilot_id: str,
    start_date: datetime.date,
    end_date: datetime.date,
) -> BillingStatement:
    """
    What the club charges one pilot over a period.

    Only records where the pilot is the logbook owner (pilot_id) are charged.
    Instruction given is listed but never charged to the instructor; towing
    flights are listed with their tow count but their minutes are not billed;
    each glider flight is one glider launch (tow) charged to its pilot.
    """
    items: List[BillingItem] = []
    total_minutes = 0
    total_launches = 0

    owned = [r for r in records if r.pilot_id == pilot_id and start_date <= r.date <= end_date]
    owned.sort(key=lambda r: (r.date, r.start_time, r.id or ""))

    for r in owned:
        minutes = duration_minutes(r.start_time, r.end_time)
        traits = r.traits
        item = BillingItem(
            record_id=r.id,
            date=r.date,
            start_time=r.start_time,
            logbook_type=r.logbook_type,
            purpose=r.purpose,
            description=PURPOSE_LABELS[r.purpose],
            aircraft_id=r.aircraft_id,
            duration_hours=duration_hours(minutes),
        )
        if r.purpose == Purpose.INSTRUCTION_GIVEN:
            item.billable = False
            item.description += " (not billed to the instructor)"
        elif r.logbook_type == LogbookType.ENGINE:
            item.billable = traits.billable
            if traits.is_tow:
                # tows flown are a service to the club, shown but not charged
                item.tows = normalize_tows_count(r.purpose, r.tows_count)
            else:
                mins = r.billable_minutes if r.billable_minutes is not None else billable_minutes(r.purpose, minutes)
                item.billable_minutes = mins
                total_minutes += mins or 0
        else:
            item.tows = 1
            total_launches += 1
        items.append(item)

    return BillingStatement(
        pilot_id=pilot_id,
        start_date=start_date,
        end_date=end_date,
        items=items,
        total_billable_minutes=total_minutes,
        total_launches=total_launches,
        no_flights=not items,
    )
