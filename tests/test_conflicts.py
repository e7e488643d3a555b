# tests/test_conflicts.py
import pytest

from flightlog.conflicts import comparison_set, detect_conflicts, ensure_no_conflicts
from flightlog.exceptions import SchedulingConflict


def test_aircraft_conflict_names_the_other_pilot(flight):
    existing = flight(id="f1", pilot_id="P1", aircraft_id="G1", start_time="10:00", end_time="11:00")
    candidate = flight(pilot_id="E1", aircraft_id="G1", start_time="10:30", end_time="11:30")
    conflicts = detect_conflicts(candidate, [existing], names={"P1": "A. Garcia"}, aircraft_labels={"G1": "EC-GLD"})
    assert [c.rule for c in conflicts] == ["aircraft_conflict"]
    c = conflicts[0]
    assert c.subject == "G1"
    assert c.conflicting_record_id == "f1"
    assert c.slot == "10:00-11:00"
    assert "A. Garcia" in c.message
    assert "EC-GLD" in c.message


def test_back_to_back_flights_do_not_conflict(flight):
    existing = flight(id="f1", start_time="10:00", end_time="11:00")
    candidate = flight(start_time="11:00", end_time="12:00")
    assert detect_conflicts(candidate, [existing]) == []


def test_person_conflict_across_logbooks(flight):
    existing = flight(id="f1", pilot_id="I1", logbook_type="engine", aircraft_id="A1",
                      start_time="10:00", end_time="11:00")
    candidate = flight(purpose="instruction_received", pilot_id="S1", instructor_id="I1",
                       aircraft_id="G1", start_time="10:30", end_time="11:30")
    conflicts = detect_conflicts(candidate, [existing])
    assert [(c.rule, c.subject) for c in conflicts] == [("person_conflict", "I1")]


def test_one_conflict_per_person_and_aircraft(flight):
    first = flight(id="f1", start_time="10:00", end_time="10:40")
    second = flight(id="f2", start_time="10:40", end_time="11:20")
    candidate = flight(start_time="10:30", end_time="11:00")
    conflicts = detect_conflicts(candidate, [second, first])
    assert [(c.rule, c.subject, c.conflicting_record_id) for c in conflicts] == [
        ("aircraft_conflict", "G1", "f1"),
        ("person_conflict", "P1", "f1"),
    ]


def test_other_days_are_ignored(flight):
    existing = flight(id="f1", date="2025-06-15")
    assert detect_conflicts(flight(), [existing]) == []


def test_edit_ignores_previous_version_of_itself(flight):
    stored = flight(id="f1", start_time="10:00", end_time="11:00")
    edited = flight(id="f1", start_time="10:15", end_time="11:15")
    assert detect_conflicts(edited, [stored]) == []


def test_instruction_pair_edit_skips_counterpart_only(flight):
    student = flight(id="s", purpose="instruction_received", pilot_id="S1", instructor_id="I1",
                     start_time="09:00", end_time="09:30")
    instructor = flight(id="i", purpose="instruction_given", pilot_id="I1", instructor_id="S1",
                        start_time="09:00", end_time="09:30")
    day = [student, instructor]

    # editing either half (notes only) sees no conflict with its own counterpart
    assert detect_conflicts(student.model_copy(update={"notes": "edited"}), day) == []
    assert detect_conflicts(instructor.model_copy(update={"notes": "edited"}), day) == []
    assert comparison_set(student, day) == []

    # an unrelated flight on the same glider is still rejected
    third = flight(pilot_id="P1", start_time="09:15", end_time="09:45")
    conflicts = detect_conflicts(third, day)
    assert [c.rule for c in conflicts] == ["aircraft_conflict"]


def test_ensure_no_conflicts_raises(flight):
    existing = flight(id="f1")
    with pytest.raises(SchedulingConflict) as exc:
        ensure_no_conflicts(flight(pilot_id="E1"), [existing])
    assert exc.value.rule == "scheduling_conflict"
    assert exc.value.to_dict()["conflicts"][0]["rule"] == "aircraft_conflict"
