# flightlog/eligibility.py
"""
Eligibility checks run before a flight may be recorded:
 - medical currency of every person on board (and the tow pilot)
 - category qualification for the seat each person occupies
 - airworthiness of the aircraft (and the tow plane)

Everything is returned as a flat list of Findings; the caller decides whether
to halt. Category findings downgrade to warnings under admin override, the
other rules never do.
"""

from typing import Iterable, List, Mapping, Optional, Tuple
import datetime
import logging
import unicodedata

from .exceptions import InvalidFlight
from .load_rules import QualificationTable
from .models import (
    Aircraft,
    AircraftType,
    Finding,
    FlightRecord,
    LogbookType,
    Pilot,
    PilotCategory,
    Purpose,
    Severity,
)

log = logging.getLogger("uvicorn.error")

# aircraft types allowed in each seat
_MAIN_AIRCRAFT_TYPES = {
    LogbookType.GLIDER: {AircraftType.GLIDER},
    LogbookType.ENGINE: {AircraftType.TOW_PLANE, AircraftType.POWERED},
}
_TOW_AIRCRAFT_TYPES = {AircraftType.TOW_PLANE}


def normalize_text(value: Optional[str]) -> str:
    """Lower-case, strip diacritics and collapse whitespace ("Avión " -> "avion")."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def assign_roles(record: FlightRecord) -> List[Tuple[str, str]]:
    """
    (person_id, role) for everyone the record puts on board.
    Instruction records name the student and instructor from the record
    owner's point of view, so the seats swap between the two halves.
    """
    if record.purpose == Purpose.INSTRUCTION_RECEIVED:
        seats = [(record.pilot_id, "student"), (record.instructor_id, "instructor")]
    elif record.purpose == Purpose.INSTRUCTION_GIVEN:
        seats = [(record.pilot_id, "instructor"), (record.instructor_id, "student")]
    elif record.traits.is_tow:
        seats = [(record.pilot_id, "tow_pilot"), (record.instructor_id, "instructor")]
    else:
        seats = [(record.pilot_id, "pilot"), (record.instructor_id, "instructor")]
    if record.tow_pilot_id:
        seats.append((record.tow_pilot_id, "tow_pilot"))
    return [(pid, role) for pid, role in seats if pid]


def check_medical(pilot: Pilot, flight_date: datetime.date, warning_days: int) -> Optional[Finding]:
    expiry = pilot.medical_expiry
    if expiry is None:
        return None
    if expiry < flight_date:
        return Finding(
            severity=Severity.BLOCKING,
            subject=pilot.id,
            rule="medical_expired",
            message=f"{pilot.display_name}: medical expired on {expiry.isoformat()}",
        )
    days_left = (expiry - flight_date).days
    if days_left <= warning_days:
        return Finding(
            severity=Severity.WARNING,
            subject=pilot.id,
            rule="medical_expiring",
            message=f"{pilot.display_name}: medical expires on {expiry.isoformat()} (in {days_left} days)",
        )
    return None


def holds_qualification(category_names: Iterable[str], keyword_groups: List[List[str]]) -> bool:
    normalized = [normalize_text(n) for n in category_names]
    for group in keyword_groups:
        keywords = [normalize_text(k) for k in group]
        if any(all(k in name for k in keywords) for name in normalized):
            return True
    return False


def check_category(
    pilot: Pilot,
    role: str,
    logbook_type: LogbookType,
    qualifications: QualificationTable,
    categories: Mapping[str, PilotCategory],
    admin_override: bool = False,
) -> Optional[Finding]:
    rule = qualifications.lookup(logbook_type, role)
    if rule is None:
        return None
    names = [categories[cid].name for cid in sorted(pilot.category_ids) if cid in categories]
    if holds_qualification(names, rule.keyword_groups):
        return None
    seat = rule.title or rule.id
    if admin_override:
        return Finding(
            severity=Severity.WARNING,
            subject=pilot.id,
            rule="category_missing",
            message=f"{pilot.display_name} holds no category for '{seat}' (accepted under admin override)",
        )
    return Finding(
        severity=Severity.BLOCKING,
        subject=pilot.id,
        rule="category_missing",
        message=f"{pilot.display_name} holds no category for '{seat}'",
    )


def check_airworthiness(aircraft: Aircraft, flight_date: datetime.date, allowed_types) -> List[Finding]:
    findings: List[Finding] = []
    if aircraft.type not in allowed_types:
        findings.append(Finding(
            severity=Severity.BLOCKING,
            subject=aircraft.id,
            rule="aircraft_type_mismatch",
            message=f"Aircraft {aircraft.label} ({aircraft.type.value}) cannot be used in this seat",
        ))
    if aircraft.out_of_service:
        reason = f": {aircraft.out_of_service_reason}" if aircraft.out_of_service_reason else ""
        findings.append(Finding(
            severity=Severity.BLOCKING,
            subject=aircraft.id,
            rule="aircraft_out_of_service",
            message=f"Aircraft {aircraft.label} is out of service{reason}",
        ))
    if aircraft.insurance_expiry_date is not None and aircraft.insurance_expiry_date < flight_date:
        findings.append(Finding(
            severity=Severity.BLOCKING,
            subject=aircraft.id,
            rule="insurance_expired",
            message=f"Aircraft {aircraft.label}: insurance expired on {aircraft.insurance_expiry_date.isoformat()}",
        ))
    return findings


def validate_eligibility(
    record: FlightRecord,
    pilots: Mapping[str, Pilot],
    aircraft: Mapping[str, Aircraft],
    qualifications: QualificationTable,
    categories: Mapping[str, PilotCategory],
    admin_override: bool = False,
) -> List[Finding]:
    """
    Run every eligibility rule for a candidate record.

    `pilots` and `aircraft` must hold every id the record references; a missing
    entity raises InvalidFlight since no rule can be evaluated without it.
    """
    findings: List[Finding] = []
    medical_checked = set()

    for person_id, role in assign_roles(record):
        pilot = pilots.get(person_id)
        if pilot is None:
            raise InvalidFlight(f"Unknown pilot id: {person_id}", {"subject": person_id})
        # one medical finding per person even if they fill two seats
        if person_id not in medical_checked:
            medical = check_medical(pilot, record.date, qualifications.medical_warning_days)
            if medical is not None:
                findings.append(medical)
            medical_checked.add(person_id)
        cat = check_category(pilot, role, record.logbook_type, qualifications, categories, admin_override)
        if cat is not None:
            findings.append(cat)

    main = aircraft.get(record.aircraft_id)
    if main is None:
        raise InvalidFlight(f"Unknown aircraft id: {record.aircraft_id}", {"subject": record.aircraft_id})
    findings.extend(check_airworthiness(main, record.date, _MAIN_AIRCRAFT_TYPES[record.logbook_type]))

    if record.tow_aircraft_id:
        tow = aircraft.get(record.tow_aircraft_id)
        if tow is None:
            raise InvalidFlight(f"Unknown aircraft id: {record.tow_aircraft_id}", {"subject": record.tow_aircraft_id})
        findings.extend(check_airworthiness(tow, record.date, _TOW_AIRCRAFT_TYPES))

    if findings:
        log.debug("Eligibility findings for %s on %s: %s", record.pilot_id, record.date, [f.rule for f in findings])
    return findings


def has_blocking(findings: Iterable[Finding]) -> bool:
    return any(f.severity == Severity.BLOCKING for f in findings)
