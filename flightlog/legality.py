# flightlog/legality.py
"""
HTTP endpoints for flight legality checks, submissions and reports.

- POST   /check                 -> dry run: findings, conflicts, derived billing fields
- POST   /flights               -> validate and record a flight
- POST   /flights/instruction   -> validate and record both halves of an instruction flight
- PUT    /flights/{id}          -> re-validate and replace an existing flight
- DELETE /flights/{id}          -> remove one flight (its counterpart becomes orphaned)
- POST   /reports/activity      -> deduplicated activity report
- POST   /reports/billing       -> billing statement for one pilot

Domain errors are rendered by the handlers installed with
install_exception_handlers(): 409 for conflicts and blocked eligibility,
404 for unknown flights, 422 for references to unknown entities.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
import datetime
import logging

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator, model_validator

from .billing import BillingStatement, billing_statement, duration_minutes
from .exceptions import (
    EligibilityBlocked,
    FlightLogError,
    FlightNotFound,
    InvalidFlight,
    SchedulingConflict,
    StaleDataRace,
)
from .intervals import minutes_to_hhmm, parse_day
from .load_rules import QualificationTable, RULES_DIR, load_rules_from_folder
from .models import Aircraft, Conflict, Finding, FlightRecord, Pilot, pilot_names
from .reports import ActivityReport, aggregate_activity
from .store import InMemoryRecordStore, RecordStore
from .submission import (
    InstructionFlight,
    SubmissionResult,
    check_flight,
    delete_flight,
    submit_flight,
    submit_instruction,
)

log = logging.getLogger("uvicorn.error")
router = APIRouter()


# ---------- Request / Response Models ----------
class CheckRequest(BaseModel):
    record: FlightRecord
    admin_override: bool = False


class CheckResult(BaseModel):
    committable: bool
    findings: List[Finding]
    conflicts: List[Conflict]
    derived: Dict[str, Any]


class InstructionRequest(BaseModel):
    flight: InstructionFlight
    admin_override: bool = False


class ReportRequest(BaseModel):
    start_date: datetime.date
    end_date: datetime.date
    pilot_id: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, v):
        return parse_day(v)

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class BillingRequest(ReportRequest):
    pilot_id: str


# ---------- App state access ----------
def get_store(request: Request) -> RecordStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        log.warning("No record store configured; starting an empty in-memory store")
        store = InMemoryRecordStore()
        request.app.state.store = store
    return store


def get_qualifications(request: Request) -> QualificationTable:
    table = getattr(request.app.state, "qualifications", None)
    if table is None:
        try:
            table, invalid = load_rules_from_folder(RULES_DIR)
        except Exception as e:
            log.exception("Failed to load qualification rules: %s", e)
            raise HTTPException(status_code=500, detail="Server internal error while loading rules")
        request.app.state.qualifications = table
        request.app.state.invalid_rules = invalid
    return table


async def _labels(store: RecordStore, records: Iterable[FlightRecord]) -> Tuple[Dict[str, str], Dict[str, str]]:
    people = set()
    aircraft_ids = set()
    for r in records:
        people |= r.people()
        aircraft_ids.add(r.aircraft_id)
    pilots: Dict[str, Pilot] = await store.fetch_pilots(people)
    aircraft: Dict[str, Aircraft] = await store.fetch_aircraft_many(aircraft_ids)
    return pilot_names(pilots.values()), {a.id: a.label for a in aircraft.values()}


# ---------- Flights ----------
@router.post("/check", response_model=CheckResult)
async def check_endpoint(payload: CheckRequest, request: Request):
    store = get_store(request)
    outcome = await check_flight(store, payload.record, get_qualifications(request), payload.admin_override)
    rec = outcome.record
    return CheckResult(
        committable=outcome.committable,
        findings=outcome.findings,
        conflicts=outcome.conflicts,
        derived={
            "duration": minutes_to_hhmm(duration_minutes(rec.start_time, rec.end_time)),
            "duration_hours": rec.duration_hours,
            "billable_minutes": rec.billable_minutes,
            "tows_count": rec.tows_count,
        },
    )


@router.post("/flights", response_model=SubmissionResult, status_code=201)
async def create_flight(payload: CheckRequest, request: Request):
    if payload.record.id is not None:
        raise HTTPException(status_code=422, detail="New flights must not carry an id; use PUT /flights/{id} to edit")
    return await submit_flight(get_store(request), payload.record, get_qualifications(request), payload.admin_override)


@router.post("/flights/instruction", response_model=SubmissionResult, status_code=201)
async def create_instruction_flight(payload: InstructionRequest, request: Request):
    return await submit_instruction(get_store(request), payload.flight, get_qualifications(request), payload.admin_override)


@router.put("/flights/{flight_id}", response_model=SubmissionResult)
async def update_flight(flight_id: str, payload: CheckRequest, request: Request):
    record = payload.record.model_copy(update={"id": flight_id})
    return await submit_flight(get_store(request), record, get_qualifications(request), payload.admin_override)


@router.delete("/flights/{flight_id}", status_code=204)
async def remove_flight(flight_id: str, request: Request):
    await delete_flight(get_store(request), flight_id)
    return Response(status_code=204)


# ---------- Reports ----------
@router.post("/reports/activity", response_model=ActivityReport)
async def activity_report(payload: ReportRequest, request: Request):
    store = get_store(request)
    records = await store.fetch_flights_for_date_range(payload.start_date, payload.end_date, pilot_id=payload.pilot_id)
    names, aircraft_labels = await _labels(store, records)
    return aggregate_activity(
        records,
        payload.start_date,
        payload.end_date,
        pilot_id=payload.pilot_id,
        names=names,
        aircraft_labels=aircraft_labels,
    )


@router.post("/reports/billing", response_model=BillingStatement)
async def billing_report(payload: BillingRequest, request: Request):
    store = get_store(request)
    records = await store.fetch_flights_for_date_range(payload.start_date, payload.end_date, pilot_id=payload.pilot_id)
    return billing_statement(records, payload.pilot_id, payload.start_date, payload.end_date)


# ---------- Error rendering ----------
_ERROR_STATUS = (
    (StaleDataRace, 409),
    (SchedulingConflict, 409),
    (EligibilityBlocked, 409),
    (FlightNotFound, 404),
    (InvalidFlight, 422),
)


async def _flightlog_error_handler(request: Request, exc: FlightLogError):
    status = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status, content=exc.to_dict())


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FlightLogError, _flightlog_error_handler)
