# flightlog/conflicts.py
"""
Pre-commit scheduling conflict detection.

A candidate record is compared with every other record of its date. The
record's own previous version (edits) and, for instruction flights, its
matched counterpart are left out: they describe the same physical flight.
Everything else that shares the aircraft or a person over an overlapping
interval is a conflict. Nothing here mutates state.
"""

from typing import Collection, Iterable, List, Mapping, Optional

from .exceptions import SchedulingConflict
from .intervals import overlaps
from .models import Conflict, FlightRecord
from .pairing import find_counterpart


def _label(names: Optional[Mapping[str, str]], key: Optional[str]) -> str:
    if key is None:
        return "unknown"
    if names and key in names:
        return names[key]
    return key


def comparison_set(
    candidate: FlightRecord,
    records: Iterable[FlightRecord],
    exclude_ids: Collection[str] = (),
) -> List[FlightRecord]:
    """
    Same-day records the candidate must not overlap. `exclude_ids` names stored
    records the candidate replaces, such as the counterpart an edit moves along.
    """
    others = [
        r for r in records
        if r is not candidate
        and r.date == candidate.date
        and not (candidate.id is not None and r.id == candidate.id)
        and r.id not in exclude_ids
    ]
    others.sort(key=lambda r: (r.start_time, r.id or ""))
    if candidate.traits.is_instruction:
        counterpart = find_counterpart(candidate, others)
        if counterpart is not None:
            others = [r for r in others if r is not counterpart]
    return others


def find_aircraft_conflict(
    candidate: FlightRecord,
    others: Iterable[FlightRecord],
    names: Optional[Mapping[str, str]] = None,
    aircraft_labels: Optional[Mapping[str, str]] = None,
) -> Optional[Conflict]:
    span = candidate.interval
    for r in others:
        if r.aircraft_id == candidate.aircraft_id and overlaps(span, r.interval):
            return Conflict(
                rule="aircraft_conflict",
                subject=candidate.aircraft_id,
                conflicting_record_id=r.id,
                slot=r.slot,
                message=(
                    f"Aircraft {_label(aircraft_labels, r.aircraft_id)} is already flown "
                    f"{r.slot} by {_label(names, r.pilot_id)}"
                ),
            )
    return None


def find_person_conflicts(
    candidate: FlightRecord,
    others: List[FlightRecord],
    names: Optional[Mapping[str, str]] = None,
    aircraft_labels: Optional[Mapping[str, str]] = None,
) -> List[Conflict]:
    span = candidate.interval
    conflicts: List[Conflict] = []
    checked = set()
    for person_id in (candidate.pilot_id, candidate.instructor_id):
        if person_id is None or person_id in checked:
            continue
        checked.add(person_id)
        for r in others:
            if person_id in r.people() and overlaps(span, r.interval):
                conflicts.append(Conflict(
                    rule="person_conflict",
                    subject=person_id,
                    conflicting_record_id=r.id,
                    slot=r.slot,
                    message=(
                        f"{_label(names, person_id)} is already logged {r.slot} "
                        f"on {_label(aircraft_labels, r.aircraft_id)} ({r.logbook_type.value} logbook)"
                    ),
                ))
                break
    return conflicts


def detect_conflicts(
    candidate: FlightRecord,
    same_day_records: Iterable[FlightRecord],
    names: Optional[Mapping[str, str]] = None,
    aircraft_labels: Optional[Mapping[str, str]] = None,
    exclude_ids: Collection[str] = (),
) -> List[Conflict]:
    """
    All scheduling conflicts for `candidate`: at most one aircraft conflict and
    at most one conflict per person on board. Empty list means committable.
    """
    others = comparison_set(candidate, same_day_records, exclude_ids)
    conflicts: List[Conflict] = []
    aircraft_conflict = find_aircraft_conflict(candidate, others, names, aircraft_labels)
    if aircraft_conflict is not None:
        conflicts.append(aircraft_conflict)
    conflicts.extend(find_person_conflicts(candidate, others, names, aircraft_labels))
    return conflicts


def ensure_no_conflicts(
    candidate: FlightRecord,
    same_day_records: Iterable[FlightRecord],
    names: Optional[Mapping[str, str]] = None,
    aircraft_labels: Optional[Mapping[str, str]] = None,
) -> None:
    conflicts = detect_conflicts(candidate, same_day_records, names, aircraft_labels)
    if conflicts:
        raise SchedulingConflict(conflicts)
