# tests/conftest.py
# Ensure project root is on sys.path so `import flightlog` works reliably in pytest.
import datetime
import sys
from pathlib import Path

import pytest

# Resolve project root as the parent of the tests folder
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    # put project root at front so local packages take precedence
    sys.path.insert(0, str(ROOT))

from flightlog.load_rules import RULES_DIR, load_rules_from_folder  # noqa: E402
from flightlog.models import Aircraft, AircraftType, FlightRecord, Pilot, PilotCategory  # noqa: E402
from flightlog.store import InMemoryRecordStore  # noqa: E402

DAY = datetime.date(2025, 6, 14)
MEDICAL_OK = datetime.date(2030, 1, 1)

CATEGORIES = [
    PilotCategory(id="c_gp", name="Piloto de planeador"),
    PilotCategory(id="c_gs", name="Alumno de planeador"),
    PilotCategory(id="c_gi", name="Instructor de planeador"),
    PilotCategory(id="c_tow", name="Piloto remolcador"),
    PilotCategory(id="c_ep", name="Piloto de avión"),
    PilotCategory(id="c_es", name="Alumno de avión"),
    PilotCategory(id="c_ei", name="Instructor de avión"),
]

PILOTS = [
    Pilot(id="P1", first_name="Ana", last_name="Garcia", category_ids={"c_gp"}, medical_expiry=MEDICAL_OK),
    Pilot(id="S1", first_name="Luis", last_name="Perez", category_ids={"c_gs"}, medical_expiry=MEDICAL_OK),
    Pilot(id="I1", first_name="Marta", last_name="Lopez", category_ids={"c_gi", "c_ei"}, medical_expiry=MEDICAL_OK),
    Pilot(id="T1", first_name="Juan", last_name="Ruiz", category_ids={"c_tow"}, medical_expiry=MEDICAL_OK),
    Pilot(id="E1", first_name="Eva", last_name="Diaz", category_ids={"c_ep"}, medical_expiry=MEDICAL_OK),
    Pilot(id="N1", first_name="Nico", last_name="Sanz", category_ids=set(), medical_expiry=MEDICAL_OK),
]

AIRCRAFT = [
    Aircraft(id="G1", name="EC-GLD", type=AircraftType.GLIDER),
    Aircraft(id="G2", name="EC-GL2", type=AircraftType.GLIDER),
    Aircraft(id="R1", name="EC-TOW", type=AircraftType.TOW_PLANE),
    Aircraft(id="A1", name="EC-AVN", type=AircraftType.POWERED),
    Aircraft(id="X1", name="EC-OUT", type=AircraftType.GLIDER, out_of_service=True,
             out_of_service_reason="annual inspection"),
    Aircraft(id="Y1", name="EC-INS", type=AircraftType.GLIDER, insurance_expiry_date=datetime.date(2024, 12, 31)),
]


def make_flight(**overrides) -> FlightRecord:
    data = dict(
        date=DAY,
        start_time="10:00",
        end_time="11:00",
        pilot_id="P1",
        aircraft_id="G1",
        logbook_type="glider",
        purpose="local",
    )
    data.update(overrides)
    return FlightRecord(**data)


@pytest.fixture
def flight():
    """Factory for a glider local flight on DAY, 10:00-11:00, P1 on G1."""
    return make_flight


@pytest.fixture
def qualifications():
    table, invalid = load_rules_from_folder(RULES_DIR)
    assert invalid == []
    return table


@pytest.fixture
def pilots():
    return {p.id: p for p in PILOTS}


@pytest.fixture
def aircraft():
    return {a.id: a for a in AIRCRAFT}


@pytest.fixture
def categories():
    return {c.id: c for c in CATEGORIES}


@pytest.fixture
def store():
    return InMemoryRecordStore(pilots=PILOTS, aircraft=AIRCRAFT, categories=CATEGORIES)
