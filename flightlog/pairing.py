# flightlog/pairing.py
"""
Instruction-pair matching.

A dual-instruction flight is stored twice: once in the student's logbook
(instruction_received) and once in the instructor's (instruction_given). Both
halves share date, times and aircraft, and each names the other person.
"""

from typing import Iterable, Optional, Tuple
import datetime

from .models import FlightRecord, LogbookType, Purpose


def is_counterpart(a: FlightRecord, b: FlightRecord) -> bool:
    """Symmetric counterpart predicate. A record is never its own counterpart."""
    if a is b or (a.id is not None and a.id == b.id):
        return False
    if (a.date, a.start_time, a.end_time, a.aircraft_id) != (b.date, b.start_time, b.end_time, b.aircraft_id):
        return False
    if b.instructor_id is not None and a.pilot_id == b.instructor_id:
        return True
    return a.instructor_id is not None and a.instructor_id == b.pilot_id


def find_counterpart(record: FlightRecord, candidates: Iterable[FlightRecord]) -> Optional[FlightRecord]:
    """First counterpart in `candidates`, or None when the record is orphaned."""
    for other in candidates:
        if is_counterpart(record, other):
            return other
    return None


def instruction_roles(record: FlightRecord) -> Tuple[str, Optional[str]]:
    """(student_id, instructor_id) as seen from either half of a pair."""
    if record.purpose == Purpose.INSTRUCTION_GIVEN:
        return record.instructor_id, record.pilot_id
    return record.pilot_id, record.instructor_id


def build_instruction_pair(
    date: datetime.date,
    start_time: datetime.time,
    end_time: datetime.time,
    student_id: str,
    instructor_id: str,
    aircraft_id: str,
    logbook_type: LogbookType,
    schedule_entry_id: Optional[str] = None,
    tow_pilot_id: Optional[str] = None,
    tow_aircraft_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> Tuple[FlightRecord, FlightRecord]:
    """
    Both halves of one instruction flight: (student record, instructor record).
    """
    shared = dict(
        date=date,
        start_time=start_time,
        end_time=end_time,
        aircraft_id=aircraft_id,
        logbook_type=logbook_type,
        schedule_entry_id=schedule_entry_id,
        tow_pilot_id=tow_pilot_id,
        tow_aircraft_id=tow_aircraft_id,
        notes=notes,
    )
    student = FlightRecord(
        pilot_id=student_id,
        instructor_id=instructor_id,
        purpose=Purpose.INSTRUCTION_RECEIVED,
        **shared,
    )
    instructor = FlightRecord(
        pilot_id=instructor_id,
        instructor_id=student_id,
        purpose=Purpose.INSTRUCTION_GIVEN,
        **shared,
    )
    return student, instructor


# fields both halves must agree on to stay matched
SHARED_FIELDS = ("date", "start_time", "end_time", "aircraft_id")


def align_counterpart(counterpart: FlightRecord, edited: FlightRecord) -> FlightRecord:
    """Copy of `counterpart` moved to the date, times and aircraft of its edited other half."""
    return counterpart.model_copy(update={f: getattr(edited, f) for f in SHARED_FIELDS})
