# flightlog/submission.py
"""
Submission pipeline: eligibility -> conflicts -> billing -> commit.

Every step before the final commit works on a snapshot and has no side
effects, so a caller may abandon a submission at any point before commit.
"""

from typing import Collection, List, Optional, Tuple
import datetime
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

from .billing import apply_billing
from .conflicts import detect_conflicts
from .eligibility import has_blocking, validate_eligibility
from .exceptions import EligibilityBlocked, FlightNotFound, SchedulingConflict, StaleDataRace
from .load_rules import QualificationTable
from .models import Conflict, Finding, FlightRecord, LogbookType, Severity, pilot_names
from .intervals import parse_clock, parse_day
from .pairing import align_counterpart, build_instruction_pair, find_counterpart
from .store import RecordStore

log = logging.getLogger("uvicorn.error")


class CheckOutcome(BaseModel):
    committable: bool
    record: FlightRecord
    findings: List[Finding] = Field(default_factory=list)
    conflicts: List[Conflict] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    record_ids: List[str]
    records: List[FlightRecord]
    warnings: List[Finding] = Field(default_factory=list)


class InstructionFlight(BaseModel):
    """One dual-instruction flight as entered once on the form."""
    date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    student_id: str
    instructor_id: str
    aircraft_id: str
    logbook_type: LogbookType
    schedule_entry_id: Optional[str] = None
    tow_pilot_id: Optional[str] = None
    tow_aircraft_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_day(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_time(cls, v):
        return parse_clock(v)

    @model_validator(mode="after")
    def _check_flight(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time; flights do not cross midnight")
        if self.student_id == self.instructor_id:
            raise ValueError("student and instructor must be different people")
        return self

    def to_records(self) -> Tuple[FlightRecord, FlightRecord]:
        return build_instruction_pair(**self.model_dump())


async def evaluate(
    store: RecordStore,
    candidate: FlightRecord,
    qualifications: QualificationTable,
    admin_override: bool = False,
    exclude_ids: Collection[str] = (),
) -> CheckOutcome:
    """Dry-run the whole pipeline for one candidate against a fresh snapshot."""
    people = [pid for pid in (candidate.pilot_id, candidate.instructor_id, candidate.tow_pilot_id) if pid]
    aircraft_ids = [aid for aid in (candidate.aircraft_id, candidate.tow_aircraft_id) if aid]

    day_records = await store.fetch_flights_for_date_range(candidate.date, candidate.date)
    for r in day_records:
        people.extend(r.people())
        aircraft_ids.append(r.aircraft_id)

    pilots = await store.fetch_pilots(people)
    aircraft = await store.fetch_aircraft_many(aircraft_ids)
    categories = await store.fetch_categories()

    findings = validate_eligibility(candidate, pilots, aircraft, qualifications, categories, admin_override)
    conflicts = detect_conflicts(
        candidate,
        day_records,
        names=pilot_names(pilots.values()),
        aircraft_labels={a.id: a.label for a in aircraft.values()},
        exclude_ids=exclude_ids,
    )
    return CheckOutcome(
        committable=not has_blocking(findings) and not conflicts,
        record=apply_billing(candidate),
        findings=findings,
        conflicts=conflicts,
    )


def _raise_for(conflicts: List[Conflict], findings: List[Finding]) -> None:
    # conflicts first: they can never be overridden
    if conflicts:
        raise SchedulingConflict(conflicts)
    if has_blocking(findings):
        raise EligibilityBlocked(findings)


def _warnings(findings: List[Finding]) -> List[Finding]:
    seen = set()
    out: List[Finding] = []
    for f in findings:
        key = (f.rule, f.subject, f.message)
        if f.severity == Severity.WARNING and key not in seen:
            seen.add(key)
            out.append(f)
    return out


async def counterpart_to_move(store: RecordStore, candidate: FlightRecord) -> Optional[FlightRecord]:
    """
    For an edit of one instruction half: the stored other half, matched against
    the stored prior version and moved to the candidate's date, times and aircraft.

    Raises FlightNotFound when the edited id does not exist.
    """
    if candidate.id is None:
        return None
    prior = await store.fetch_flight(candidate.id)
    if prior is None:
        raise FlightNotFound(f"Flight {candidate.id} does not exist", {"subject": candidate.id})
    if not (prior.traits.is_instruction and candidate.traits.is_instruction):
        return None
    prior_day = await store.fetch_flights_for_date_range(prior.date, prior.date)
    counterpart = find_counterpart(prior, prior_day)
    if counterpart is None:
        return None
    return apply_billing(align_counterpart(counterpart, candidate))


async def check_flight(
    store: RecordStore,
    candidate: FlightRecord,
    qualifications: QualificationTable,
    admin_override: bool = False,
) -> CheckOutcome:
    moved = await counterpart_to_move(store, candidate)
    exclude = [moved.id] if moved is not None else []
    return await evaluate(store, candidate, qualifications, admin_override, exclude)


async def submit_flight(
    store: RecordStore,
    candidate: FlightRecord,
    qualifications: QualificationTable,
    admin_override: bool = False,
) -> SubmissionResult:
    """
    Validate and commit a new flight, or an edit when `candidate.id` is set.

    Editing one half of an instruction flight moves its counterpart along, so
    the pair stays matched; both are committed together.

    Raises SchedulingConflict, EligibilityBlocked, StaleDataRace or FlightNotFound.
    """
    moved = await counterpart_to_move(store, candidate)
    exclude = [moved.id] if moved is not None else []

    outcome = await evaluate(store, candidate, qualifications, admin_override, exclude)
    try:
        _raise_for(outcome.conflicts, outcome.findings)
    except (SchedulingConflict, EligibilityBlocked) as e:
        log.info("Flight rejected (%s) for %s on %s: %s", e.rule, candidate.pilot_id, candidate.date, e.message)
        raise

    records = [outcome.record] if moved is None else [outcome.record, moved]
    try:
        ids = await store.commit_many(records)
    except StaleDataRace:
        log.warning("Stale snapshot: %s on %s lost the slot at commit", candidate.aircraft_id, candidate.date)
        raise

    stored = [r.model_copy(update={"id": rid}) for r, rid in zip(records, ids)]
    log.info("Flight %s committed (%s, %s %s)", ids[0], stored[0].purpose.value, stored[0].date, stored[0].slot)
    if moved is not None:
        log.info("Counterpart %s moved to %s %s", moved.id, moved.date, moved.slot)
    return SubmissionResult(record_ids=ids, records=stored, warnings=_warnings(outcome.findings))


async def submit_instruction(
    store: RecordStore,
    flight: InstructionFlight,
    qualifications: QualificationTable,
    admin_override: bool = False,
) -> SubmissionResult:
    """Validate both halves of an instruction flight and commit them together."""
    student, instructor = flight.to_records()
    outcomes = [
        await evaluate(store, student, qualifications, admin_override),
        await evaluate(store, instructor, qualifications, admin_override),
    ]

    conflicts: List[Conflict] = []
    findings: List[Finding] = []
    for o in outcomes:
        for c in o.conflicts:
            if c not in conflicts:
                conflicts.append(c)
        for f in o.findings:
            if f not in findings:
                findings.append(f)
    try:
        _raise_for(conflicts, findings)
    except (SchedulingConflict, EligibilityBlocked) as e:
        log.info("Instruction flight rejected (%s) for %s/%s on %s: %s",
                 e.rule, flight.student_id, flight.instructor_id, flight.date, e.message)
        raise

    records = [o.record for o in outcomes]
    try:
        ids = await store.commit_many(records)
    except StaleDataRace:
        log.warning("Stale snapshot: instruction flight on %s %s lost the slot at commit", flight.aircraft_id, flight.date)
        raise

    stored = [r.model_copy(update={"id": rid}) for r, rid in zip(records, ids)]
    log.info("Instruction flight committed as %s", ids)
    return SubmissionResult(record_ids=ids, records=stored, warnings=_warnings(findings))


async def delete_flight(store: RecordStore, flight_id: str) -> None:
    """Remove one record. Its counterpart, if any, stays and is reported as orphaned."""
    if not await store.delete(flight_id):
        raise FlightNotFound(f"Flight {flight_id} does not exist", {"subject": flight_id})
    log.info("Flight %s deleted", flight_id)
