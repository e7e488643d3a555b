# tests/test_eligibility.py
import datetime

import pytest

from conftest import DAY
from flightlog.eligibility import (
    assign_roles,
    check_medical,
    has_blocking,
    normalize_text,
    validate_eligibility,
)
from flightlog.exceptions import InvalidFlight
from flightlog.models import Severity


def rules_of(findings):
    return sorted(f.rule for f in findings)


def run(record, pilots, aircraft, qualifications, categories, admin_override=False):
    return validate_eligibility(record, pilots, aircraft, qualifications, categories, admin_override)


def test_clean_glider_flight_has_no_findings(flight, pilots, aircraft, qualifications, categories):
    assert run(flight(), pilots, aircraft, qualifications, categories) == []


def test_medical_expired_yesterday_blocks(pilots):
    p = pilots["P1"].model_copy(update={"medical_expiry": DAY - datetime.timedelta(days=1)})
    f = check_medical(p, DAY, 30)
    assert f.severity == Severity.BLOCKING
    assert f.rule == "medical_expired"
    assert f.subject == "P1"


def test_medical_expiring_in_ten_days_warns(pilots):
    p = pilots["P1"].model_copy(update={"medical_expiry": DAY + datetime.timedelta(days=10)})
    f = check_medical(p, DAY, 30)
    assert f.severity == Severity.WARNING
    assert f.rule == "medical_expiring"


def test_medical_valid_for_ninety_days_is_clean(pilots):
    p = pilots["P1"].model_copy(update={"medical_expiry": DAY + datetime.timedelta(days=90)})
    assert check_medical(p, DAY, 30) is None


def test_medical_expiring_on_flight_day_is_still_valid(pilots):
    p = pilots["P1"].model_copy(update={"medical_expiry": DAY})
    assert check_medical(p, DAY, 30).severity == Severity.WARNING


def test_medical_finding_flows_through_validator(flight, pilots, aircraft, qualifications, categories):
    pilots["I1"] = pilots["I1"].model_copy(update={"medical_expiry": DAY - datetime.timedelta(days=1)})
    r = flight(purpose="instruction_received", pilot_id="S1", instructor_id="I1")
    findings = run(r, pilots, aircraft, qualifications, categories)
    assert rules_of(findings) == ["medical_expired"]
    assert findings[0].subject == "I1"
    assert has_blocking(findings)


def test_missing_category_blocks(flight, pilots, aircraft, qualifications, categories):
    findings = run(flight(pilot_id="N1"), pilots, aircraft, qualifications, categories)
    assert rules_of(findings) == ["category_missing"]
    assert findings[0].severity == Severity.BLOCKING


def test_missing_category_is_warning_under_admin_override(flight, pilots, aircraft, qualifications, categories):
    findings = run(flight(pilot_id="N1"), pilots, aircraft, qualifications, categories, admin_override=True)
    assert rules_of(findings) == ["category_missing"]
    assert findings[0].severity == Severity.WARNING
    assert not has_blocking(findings)


def test_student_cannot_fly_solo_without_pilot_category(flight, pilots, aircraft, qualifications, categories):
    findings = run(flight(pilot_id="S1"), pilots, aircraft, qualifications, categories)
    assert rules_of(findings) == ["category_missing"]


def test_both_instruction_halves_are_eligible(flight, pilots, aircraft, qualifications, categories):
    received = flight(purpose="instruction_received", pilot_id="S1", instructor_id="I1")
    given = flight(purpose="instruction_given", pilot_id="I1", instructor_id="S1")
    assert run(received, pilots, aircraft, qualifications, categories) == []
    assert run(given, pilots, aircraft, qualifications, categories) == []


def test_instruction_seats_swap_between_halves(flight):
    received = flight(purpose="instruction_received", pilot_id="S1", instructor_id="I1")
    given = flight(purpose="instruction_given", pilot_id="I1", instructor_id="S1")
    assert assign_roles(received) == [("S1", "student"), ("I1", "instructor")]
    assert assign_roles(given) == [("I1", "instructor"), ("S1", "student")]


def test_instructor_without_instructor_category_blocks(flight, pilots, aircraft, qualifications, categories):
    r = flight(purpose="instruction_received", pilot_id="S1", instructor_id="P1")
    findings = run(r, pilots, aircraft, qualifications, categories)
    assert rules_of(findings) == ["category_missing"]
    assert findings[0].subject == "P1"


def test_engine_tow_flight_needs_tow_pilot_category(flight, pilots, aircraft, qualifications, categories):
    ok = flight(logbook_type="engine", aircraft_id="R1", purpose="tow", pilot_id="T1")
    bad = flight(logbook_type="engine", aircraft_id="R1", purpose="tow", pilot_id="E1")
    assert run(ok, pilots, aircraft, qualifications, categories) == []
    assert rules_of(run(bad, pilots, aircraft, qualifications, categories)) == ["category_missing"]


def test_out_of_service_aircraft_blocks_with_reason(flight, pilots, aircraft, qualifications, categories):
    findings = run(flight(aircraft_id="X1"), pilots, aircraft, qualifications, categories, admin_override=True)
    assert rules_of(findings) == ["aircraft_out_of_service"]
    assert findings[0].severity == Severity.BLOCKING
    assert "annual inspection" in findings[0].message


def test_expired_insurance_blocks(flight, pilots, aircraft, qualifications, categories):
    findings = run(flight(aircraft_id="Y1"), pilots, aircraft, qualifications, categories)
    assert rules_of(findings) == ["insurance_expired"]


def test_aircraft_type_must_match_logbook(flight, pilots, aircraft, qualifications, categories):
    findings = run(flight(aircraft_id="R1"), pilots, aircraft, qualifications, categories)
    assert rules_of(findings) == ["aircraft_type_mismatch"]


def test_tow_pilot_and_tow_plane_are_checked(flight, pilots, aircraft, qualifications, categories):
    ok = flight(tow_pilot_id="T1", tow_aircraft_id="R1")
    assert run(ok, pilots, aircraft, qualifications, categories) == []

    bad = flight(tow_pilot_id="E1", tow_aircraft_id="A1")
    findings = run(bad, pilots, aircraft, qualifications, categories)
    assert rules_of(findings) == ["aircraft_type_mismatch", "category_missing"]


@pytest.mark.parametrize("overrides", [
    {"pilot_id": "ZZ"},
    {"aircraft_id": "ZZ"},
    {"tow_pilot_id": "ZZ"},
    {"tow_aircraft_id": "ZZ"},
])
def test_unknown_reference_raises(flight, pilots, aircraft, qualifications, categories, overrides):
    with pytest.raises(InvalidFlight):
        run(flight(**overrides), pilots, aircraft, qualifications, categories)


def test_normalize_text():
    assert normalize_text("  Piloto de  Avión ") == "piloto de avion"
    assert normalize_text(None) == ""
