# flightlog/models.py
"""
Domain models for the club flight log.

Flight purposes are a closed enum with an explicit traits table; nothing
downstream inspects display labels to decide whether a flight is instruction,
a tow, or billable.
"""

from enum import Enum
from typing import Dict, Iterable, NamedTuple, Optional, Set
import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from .intervals import Interval, format_slot, parse_clock, parse_day


class LogbookType(str, Enum):
    GLIDER = "glider"
    ENGINE = "engine"


class Purpose(str, Enum):
    INSTRUCTION_RECEIVED = "instruction_received"
    INSTRUCTION_GIVEN = "instruction_given"
    TOW = "tow"
    LOCAL = "local"
    TRIP = "trip"
    SPORT = "sport"
    TRAINING = "training"
    READAPTATION = "readaptation"


class PurposeTraits(NamedTuple):
    is_instruction: bool
    is_tow: bool
    billable: bool
    # bucket for report totals
    category: str = "other"


REPORT_CATEGORIES = ("instruction_received", "instruction_given", "tow", "other")

PURPOSE_TRAITS: Dict[Purpose, PurposeTraits] = {
    Purpose.INSTRUCTION_RECEIVED: PurposeTraits(is_instruction=True, is_tow=False, billable=True,
                                                 category="instruction_received"),
    Purpose.INSTRUCTION_GIVEN: PurposeTraits(is_instruction=True, is_tow=False, billable=False,
                                              category="instruction_given"),
    Purpose.TOW: PurposeTraits(is_instruction=False, is_tow=True, billable=False, category="tow"),
    Purpose.LOCAL: PurposeTraits(is_instruction=False, is_tow=False, billable=True),
    Purpose.TRIP: PurposeTraits(is_instruction=False, is_tow=False, billable=True),
    Purpose.SPORT: PurposeTraits(is_instruction=False, is_tow=False, billable=True),
    Purpose.TRAINING: PurposeTraits(is_instruction=False, is_tow=False, billable=True),
    Purpose.READAPTATION: PurposeTraits(is_instruction=False, is_tow=False, billable=True),
}

PURPOSE_LABELS: Dict[Purpose, str] = {
    Purpose.INSTRUCTION_RECEIVED: "Instrucción (Recibida)",
    Purpose.INSTRUCTION_GIVEN: "Instrucción (Impartida)",
    Purpose.TOW: "Remolque",
    Purpose.LOCAL: "Local",
    Purpose.TRIP: "Travesía",
    Purpose.SPORT: "Deportivo",
    Purpose.TRAINING: "Entrenamiento",
    Purpose.READAPTATION: "Readaptación",
}


class AircraftType(str, Enum):
    GLIDER = "glider"
    TOW_PLANE = "tow_plane"
    POWERED = "powered"


class Severity(str, Enum):
    BLOCKING = "blocking"
    WARNING = "warning"


def _blank_to_none(v):
    if isinstance(v, str) and v.strip() == "":
        return None
    return v


# ---------- Entities ----------
class FlightRecord(BaseModel):
    id: Optional[str] = None
    date: datetime.date
    start_time: datetime.time
    end_time: datetime.time
    pilot_id: str
    instructor_id: Optional[str] = None
    aircraft_id: str
    logbook_type: LogbookType
    purpose: Purpose
    duration_hours: Optional[float] = None
    billable_minutes: Optional[int] = None
    tows_count: Optional[int] = Field(default=None, ge=0)
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

    @field_validator("pilot_id", "aircraft_id")
    @classmethod
    def _id_not_empty(cls, v):
        if not v or v.strip() == "":
            raise ValueError("identifier must be a non-empty string")
        return v

    @field_validator("id", "instructor_id", "schedule_entry_id", "tow_pilot_id", "tow_aircraft_id", mode="before")
    @classmethod
    def _optional_ids(cls, v):
        return _blank_to_none(v)

    @model_validator(mode="after")
    def _check_record(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time; flights do not cross midnight")
        if self.instructor_id is not None and self.instructor_id == self.pilot_id:
            raise ValueError("instructor_id must differ from pilot_id")
        if self.logbook_type == LogbookType.ENGINE and (self.tow_pilot_id or self.tow_aircraft_id):
            raise ValueError("tow pilot and tow aircraft only apply to glider flights")
        if self.logbook_type == LogbookType.GLIDER and self.purpose == Purpose.TOW:
            raise ValueError("towing flights are logged in the engine logbook")
        return self

    @property
    def interval(self) -> Interval:
        return Interval.from_times(self.start_time, self.end_time)

    @property
    def traits(self) -> PurposeTraits:
        return PURPOSE_TRAITS[self.purpose]

    @property
    def slot(self) -> str:
        return format_slot(self.start_time, self.end_time)

    def people(self) -> Set[str]:
        return {p for p in (self.pilot_id, self.instructor_id) if p}


class PilotCategory(BaseModel):
    id: str
    name: str


class Pilot(BaseModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    category_ids: Set[str] = Field(default_factory=set)
    medical_expiry: Optional[datetime.date] = None

    @field_validator("medical_expiry", mode="before")
    @classmethod
    def _parse_expiry(cls, v):
        v = _blank_to_none(v)
        return None if v is None else parse_day(v)

    @property
    def display_name(self) -> str:
        if not self.last_name:
            return self.first_name or self.id
        if not self.first_name:
            return self.last_name
        return f"{self.first_name[0]}. {self.last_name}"


class Aircraft(BaseModel):
    id: str
    name: str = ""
    type: AircraftType
    out_of_service: bool = False
    out_of_service_reason: Optional[str] = None
    insurance_expiry_date: Optional[datetime.date] = None

    @field_validator("insurance_expiry_date", mode="before")
    @classmethod
    def _parse_insurance(cls, v):
        v = _blank_to_none(v)
        return None if v is None else parse_day(v)

    @property
    def label(self) -> str:
        return self.name or self.id


# ---------- Results ----------
class Finding(BaseModel):
    severity: Severity
    subject: str
    rule: str
    message: str


class Conflict(BaseModel):
    rule: str
    subject: str
    conflicting_record_id: Optional[str] = None
    slot: str
    message: str


def pilot_names(pilots: Iterable[Pilot]) -> Dict[str, str]:
    return {p.id: p.display_name for p in pilots}
