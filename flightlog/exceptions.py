# flightlog/exceptions.py
"""
Error taxonomy for flight submission.

Field-level malformed input is rejected by pydantic before any of this runs.
These errors cover what only the engine can decide; each one carries the rule
name and the structured findings/conflicts so callers can render them as-is.
"""

from typing import Any, Dict, List, Optional

from .models import Conflict, Finding, Severity


class FlightLogError(Exception):
    rule = "flightlog_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        out = {"error": self.rule, "message": self.message}
        out.update(self.details)
        return out


class InvalidFlight(FlightLogError):
    """Input that passed field validation but references unknown or missing entities."""
    rule = "invalid_flight"


class FlightNotFound(FlightLogError):
    rule = "flight_not_found"


class EligibilityBlocked(FlightLogError):
    rule = "eligibility_blocked"

    def __init__(self, findings: List[Finding]):
        blocking = [f.message for f in findings if f.severity == Severity.BLOCKING]
        super().__init__(
            "Flight cannot be recorded: " + "; ".join(blocking),
            {"findings": [f.model_dump(mode="json") for f in findings]},
        )
        self.findings = findings


class SchedulingConflict(FlightLogError):
    """Aircraft or person double-booked. Never overridable."""
    rule = "scheduling_conflict"

    def __init__(self, conflicts: List[Conflict], message: Optional[str] = None):
        super().__init__(
            message or "; ".join(c.message for c in conflicts),
            {"conflicts": [c.model_dump(mode="json") for c in conflicts]},
        )
        self.conflicts = conflicts


class StaleDataRace(SchedulingConflict):
    """The store rejected a commit that passed the pre-check against an older snapshot."""
    rule = "stale_data_race"

    def __init__(self, conflicts: List[Conflict]):
        super().__init__(
            conflicts,
            "Slot was taken by a concurrent submission: " + "; ".join(c.message for c in conflicts),
        )
