# flightlog/load_rules.py
"""
Loader for the pilot qualification table.

Which pilot categories qualify a person for which seat is club configuration,
not code. Each rule maps a (logbook_type, role) pair to keyword groups; a
category name qualifies when it contains every keyword of at least one group.

Provides:
 - QualificationRule: one validated rule
 - QualificationTable: rules + table meta, handed to the eligibility validator
 - load_rules_from_folder(): read every *.json in a folder into a table
"""
from pathlib import Path
import json
import logging
from typing import List, Dict, Any, Tuple, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .models import LogbookType

log = logging.getLogger("rule_loader")
log.setLevel(logging.INFO)

DEFAULT_MEDICAL_WARNING_DAYS = 30
ROLES = ("pilot", "student", "instructor", "tow_pilot")


# ---------------------------------------------------------
# Rule models
# ---------------------------------------------------------
class QualificationRule(BaseModel):
    id: str
    logbook_type: LogbookType
    role: str
    keyword_groups: List[List[str]]
    title: Optional[str] = None
    enabled: bool = True
    notes: Optional[str] = None

    @field_validator("id")
    @classmethod
    def _id_not_empty(cls, v):
        if not v or v.strip() == "":
            raise ValueError("id must be non-empty string")
        return v

    @field_validator("role")
    @classmethod
    def _known_role(cls, v):
        if v not in ROLES:
            raise ValueError(f"role must be one of {', '.join(ROLES)}")
        return v

    @field_validator("keyword_groups")
    @classmethod
    def _groups_not_empty(cls, v):
        if not v or any(not group for group in v):
            raise ValueError("keyword_groups must hold at least one non-empty group")
        return v


class QualificationTable(BaseModel):
    version: Optional[str] = None
    medical_warning_days: int = Field(default=DEFAULT_MEDICAL_WARNING_DAYS, ge=0)
    rules: Dict[str, QualificationRule] = Field(default_factory=dict)
    source_files: List[str] = Field(default_factory=list)

    def lookup(self, logbook_type: LogbookType, role: str) -> Optional[QualificationRule]:
        # deterministic: lowest id wins if a club configures the same seat twice
        for rid in sorted(self.rules):
            r = self.rules[rid]
            if r.enabled and r.logbook_type == logbook_type and r.role == role:
                return r
        return None


# ---------------------------------------------------------
# Helper: Extract rule objects from mixed JSON formats
# ---------------------------------------------------------
def _iter_rule_objects_from_raw(raw: Any) -> List[Dict[str, Any]]:
    if raw is None:
        return []

    # List of rules
    if isinstance(raw, list):
        return raw

    if isinstance(raw, dict):
        # wrapper { "meta": {...}, "rules": [ ... ] }
        if "rules" in raw and isinstance(raw["rules"], list):
            return raw["rules"]

        # dict-of-rule-objects keyed by id
        values = [v for k, v in raw.items() if k != "meta"]
        if values and all(isinstance(v, dict) for v in values) and any("keyword_groups" in v for v in values):
            out = []
            for k, v in raw.items():
                if k == "meta":
                    continue
                vr = dict(v)
                vr.setdefault("id", k)
                out.append(vr)
            return out

        # Single rule
        if "keyword_groups" in raw:
            return [raw]

    return []


def _apply_meta(table: QualificationTable, meta: Any, fname: str, invalid: List[Dict[str, Any]]) -> None:
    if not isinstance(meta, dict):
        return
    if meta.get("version") is not None:
        table.version = str(meta["version"])
    if meta.get("medical_warning_days") is not None:
        try:
            days = int(meta["medical_warning_days"])
            if days < 0:
                raise ValueError("negative")
            table.medical_warning_days = days
        except (TypeError, ValueError):
            invalid.append({"file": fname, "error": f"invalid medical_warning_days: {meta['medical_warning_days']!r}"})


# ---------------------------------------------------------
# Main Loader
# ---------------------------------------------------------
def load_rules_from_folder(folder: Path) -> Tuple[QualificationTable, List[Dict[str, Any]]]:
    """
    Loads all rule JSON files from folder, in file-name order.
    Returns:
        (QualificationTable, INVALID_REPORTS)

    Unreadable files, JSON errors, rules failing validation and duplicate ids
    are reported in INVALID_REPORTS and skipped; they never abort the load.
    """
    table = QualificationTable()
    invalid: List[Dict[str, Any]] = []

    folder = Path(folder)

    if not folder.exists() or not folder.is_dir():
        log.warning(f"Rules folder does not exist: {folder}")
        return table, invalid

    for f in sorted(folder.glob("*.json")):
        fname = f.name
        try:
            text = f.read_text(encoding="utf-8")
        except OSError as e:
            invalid.append({"file": fname, "error": f"read_error: {e}"})
            log.error(f"Failed to read {fname}: {e}")
            continue

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            invalid.append({"file": fname, "error": f"json_parse_error: {e}"})
            log.error(f"JSON parse error in {fname}: {e}")
            continue

        if isinstance(parsed, dict):
            _apply_meta(table, parsed.get("meta"), fname, invalid)

        rule_objs = _iter_rule_objects_from_raw(parsed)
        if not rule_objs:
            invalid.append({"file": fname, "error": "no qualification rules found"})
            continue

        for idx, raw_rule in enumerate(rule_objs):
            try:
                r = QualificationRule.model_validate(raw_rule)
            except ValidationError as e:
                invalid.append({"file": fname, "index": idx, "error": str(e)})
                log.error(f"Validation error in {fname} (index {idx}): {e}")
                continue

            if r.id in table.rules:
                invalid.append({"file": fname, "index": idx, "error": f"duplicate rule id: {r.id}"})
                log.error(f"Duplicate rule id {r.id} in {fname}")
                continue
            table.rules[r.id] = r

        if fname not in table.source_files:
            table.source_files.append(fname)

    log.info(f"Rule loader summary: {len(table.rules)} valid rules, {len(invalid)} invalid")
    return table, invalid


RULES_DIR = Path(__file__).parent / "rules"

__all__ = [
    "load_rules_from_folder",
    "QualificationRule",
    "QualificationTable",
    "RULES_DIR",
    "DEFAULT_MEDICAL_WARNING_DAYS",
]
