# flightlog/reports.py
"""
Activity report aggregation.

Flights are grouped per day and walked in start-time order. The two halves of
an instruction flight collapse into one line and their duration is counted
once; an instruction record whose counterpart is missing is reported on its
own. This counterpart walk is the only deduplication applied to totals.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Set
import datetime
import logging

from pydantic import BaseModel, Field

from .billing import duration_minutes, normalize_tows_count, record_tenths
from .models import PURPOSE_LABELS, PURPOSE_TRAITS, REPORT_CATEGORIES, FlightRecord, LogbookType, Purpose
from .pairing import find_counterpart, instruction_roles

log = logging.getLogger("uvicorn.error")

NO_FLIGHTS_MESSAGE = "No flights recorded in this period."


class ReportLine(BaseModel):
    record_ids: List[Optional[str]]
    date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    logbook_type: LogbookType
    purpose: Purpose
    credited_as: Purpose
    category: str
    aircraft_id: str
    pilot_id: str
    instructor_id: Optional[str] = None
    paired: bool = False
    duration_hours: float
    tows: int = 0
    description: str


class DayReport(BaseModel):
    date: datetime.date
    lines: List[ReportLine]


class CategoryTotals(BaseModel):
    flights: int = 0
    hours: float = 0.0


class ReportTotals(BaseModel):
    flights: int = 0
    glider_hours: float = 0.0
    engine_hours: float = 0.0
    billable_engine_minutes: int = 0
    tows: int = 0
    # logbook type -> purpose category -> totals
    by_category: Dict[str, Dict[str, CategoryTotals]] = Field(default_factory=dict)


class ActivityReport(BaseModel):
    start_date: datetime.date
    end_date: datetime.date
    pilot_id: Optional[str] = None
    days: List[DayReport]
    totals: ReportTotals
    no_flights: bool = False
    message: Optional[str] = None


def _name(names: Optional[Mapping[str, str]], key: Optional[str]) -> str:
    if key is None:
        return "N/A"
    if names and key in names:
        return names[key]
    return key


def _people_text(record: FlightRecord, paired: bool, names: Optional[Mapping[str, str]]) -> str:
    if record.traits.is_instruction or paired:
        student_id, instructor_id = instruction_roles(record)
        return f"Student: {_name(names, student_id)}, Instructor: {_name(names, instructor_id)}"
    text = f"Pilot: {_name(names, record.pilot_id)}"
    if record.instructor_id:
        text += f", Instructor: {_name(names, record.instructor_id)}"
    return text


def credited_purpose(shown: FlightRecord, pilot_id: Optional[str] = None) -> Purpose:
    """
    Purpose a line is credited under. Club-wide a pair counts as the student's
    instruction received; a pilot's own view credits whichever seat they held.
    """
    if pilot_id is None or not shown.traits.is_instruction:
        return shown.purpose
    _, instructor_id = instruction_roles(shown)
    return Purpose.INSTRUCTION_GIVEN if pilot_id == instructor_id else Purpose.INSTRUCTION_RECEIVED


def _make_line(
    record: FlightRecord,
    counterpart: Optional[FlightRecord],
    pilot_id: Optional[str],
    names: Optional[Mapping[str, str]],
    aircraft_labels: Optional[Mapping[str, str]],
) -> ReportLine:
    paired = counterpart is not None
    # a pair is reported from the student's side
    shown = record
    if paired and record.purpose == Purpose.INSTRUCTION_GIVEN and counterpart.purpose != Purpose.INSTRUCTION_GIVEN:
        shown = counterpart
    ids = [record.id, counterpart.id] if paired else [record.id]
    credited = credited_purpose(shown, pilot_id)
    hours = record_tenths(record) / 10
    tows = normalize_tows_count(record.purpose, record.tows_count)
    description = (
        f"{record.start_time.strftime('%H:%M')}: {PURPOSE_LABELS[shown.purpose]} on "
        f"{_name(aircraft_labels, record.aircraft_id)} ({hours:.1f}h) - {_people_text(shown, paired, names)}"
    )
    return ReportLine(
        record_ids=ids,
        date=record.date,
        start_time=record.start_time,
        end_time=record.end_time,
        logbook_type=record.logbook_type,
        purpose=shown.purpose,
        credited_as=credited,
        category=PURPOSE_TRAITS[credited].category,
        aircraft_id=record.aircraft_id,
        pilot_id=shown.pilot_id,
        instructor_id=shown.instructor_id,
        paired=paired,
        duration_hours=hours,
        tows=tows,
        description=description,
    )


def aggregate_activity(
    records: Iterable[FlightRecord],
    start_date: datetime.date,
    end_date: datetime.date,
    pilot_id: Optional[str] = None,
    names: Optional[Mapping[str, str]] = None,
    aircraft_labels: Optional[Mapping[str, str]] = None,
) -> ActivityReport:
    """
    Group flights in [start_date, end_date] by day and total them per logbook.

    With `pilot_id`, only flights where that person is pilot or instructor are
    included. Totals: glider and engine hours (summed in tenths), hours and
    flights per logbook and purpose category, billable engine minutes (only
    purposes billable in this view), and tows flown (sum of tows_count).
    """
    selected = [
        r for r in records
        if start_date <= r.date <= end_date and (pilot_id is None or pilot_id in r.people())
    ]

    by_day: Dict[datetime.date, List[FlightRecord]] = {}
    for r in selected:
        by_day.setdefault(r.date, []).append(r)

    tenths = {LogbookType.GLIDER: 0, LogbookType.ENGINE: 0}
    cat_tenths = {lt.value: {c: 0 for c in REPORT_CATEGORIES} for lt in LogbookType}
    cat_flights = {lt.value: {c: 0 for c in REPORT_CATEGORIES} for lt in LogbookType}
    totals = ReportTotals()
    days: List[DayReport] = []

    for day in sorted(by_day):
        flights = sorted(by_day[day], key=lambda r: (r.start_time, r.id or ""))
        consumed: Set[int] = set()
        lines: List[ReportLine] = []
        for r in flights:
            if id(r) in consumed:
                continue
            consumed.add(id(r))
            counterpart = None
            if r.traits.is_instruction:
                remaining = [o for o in flights if id(o) not in consumed]
                counterpart = find_counterpart(r, remaining)
                if counterpart is not None:
                    consumed.add(id(counterpart))
            line = _make_line(r, counterpart, pilot_id, names, aircraft_labels)
            lines.append(line)

            flight_tenths = record_tenths(r)
            tenths[r.logbook_type] += flight_tenths
            cat_tenths[r.logbook_type.value][line.category] += flight_tenths
            cat_flights[r.logbook_type.value][line.category] += 1
            totals.flights += 1
            totals.tows += line.tows
            if r.logbook_type == LogbookType.ENGINE and PURPOSE_TRAITS[line.credited_as].billable:
                totals.billable_engine_minutes += duration_minutes(r.start_time, r.end_time)
        days.append(DayReport(date=day, lines=lines))

    totals.glider_hours = tenths[LogbookType.GLIDER] / 10
    totals.engine_hours = tenths[LogbookType.ENGINE] / 10
    totals.by_category = {
        lt: {
            c: CategoryTotals(flights=cat_flights[lt][c], hours=cat_tenths[lt][c] / 10)
            for c in REPORT_CATEGORIES
        }
        for lt in cat_tenths
    }

    if not days:
        return ActivityReport(
            start_date=start_date,
            end_date=end_date,
            pilot_id=pilot_id,
            days=[],
            totals=totals,
            no_flights=True,
            message=NO_FLIGHTS_MESSAGE,
        )

    log.debug("Activity report %s..%s: %d flights over %d days", start_date, end_date, totals.flights, len(days))
    return ActivityReport(
        start_date=start_date,
        end_date=end_date,
        pilot_id=pilot_id,
        days=days,
        totals=totals,
    )
