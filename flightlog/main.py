# flightlog/main.py
"""
Club flight log engine - FastAPI main file.

Loads pilot qualification rules from flightlog/rules, exposes:
- GET  /               -> "Flight log ready!" + rules count
- GET  /rules          -> list qualification rule summaries
- GET  /rules/{id}     -> full rule detail
- POST /rules/reload   -> reload rules from disk
- flight and report endpoints from flightlog.legality
"""

import logging
from typing import List, Optional, Any, Dict
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .load_rules import RULES_DIR, QualificationTable, load_rules_from_folder
from .legality import install_exception_handlers, router as legality_router
from .store import InMemoryRecordStore

log = logging.getLogger("uvicorn.error")


# ---------- RESPONSE MODELS ----------
class RuleSummary(BaseModel):
    id: str
    title: Optional[str] = None
    logbook_type: str
    role: str
    enabled: bool


class RuleDetail(RuleSummary):
    keyword_groups: List[List[str]]
    notes: Optional[str] = None


def _load_into_state(app: FastAPI) -> None:
    try:
        table, invalid = load_rules_from_folder(RULES_DIR)
    except Exception as e:
        log.exception("load_rules_from_folder failed: %s", e)
        table, invalid = QualificationTable(), [{"file": "loader_exception", "error": str(e)}]
    app.state.qualifications = table
    app.state.invalid_rules = invalid
    log.info("Rule loader startup: %d valid, %d invalid", len(table.rules), len(invalid))


# ---------- LIFESPAN STARTUP ----------
@asynccontextmanager
async def _lifespan(app: FastAPI):
    _load_into_state(app)
    if getattr(app.state, "store", None) is None:
        app.state.store = InMemoryRecordStore()
    yield


app = FastAPI(title="Club Flight Log", lifespan=_lifespan)
app.include_router(legality_router)
install_exception_handlers(app)


def _rules(app: FastAPI) -> QualificationTable:
    table = getattr(app.state, "qualifications", None)
    if table is None:
        _load_into_state(app)
        table = app.state.qualifications
    return table


# ---------- ROOT ----------
@app.get("/")
def root():
    table = _rules(app)
    return {
        "message": "Flight log ready!",
        "rules_loaded": len(table.rules),
        "rules_version": table.version,
    }


# ---------- LIST RULES ----------
@app.get("/rules", response_model=List[RuleSummary])
def get_rules():
    table = _rules(app)
    return [
        RuleSummary(id=r.id, title=r.title, logbook_type=r.logbook_type.value, role=r.role, enabled=r.enabled)
        for _, r in sorted(table.rules.items())
    ]


# ---------- GET RULE DETAIL ----------
@app.get("/rules/{rule_id}", response_model=RuleDetail)
def get_rule_detail(rule_id: str):
    rule = _rules(app).rules.get(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule '{rule_id}' not found")
    return RuleDetail(
        id=rule.id,
        title=rule.title,
        logbook_type=rule.logbook_type.value,
        role=rule.role,
        enabled=rule.enabled,
        keyword_groups=rule.keyword_groups,
        notes=rule.notes,
    )


# ---------- RELOAD RULES ----------
@app.post("/rules/reload")
def reload_rules() -> Dict[str, Any]:
    _load_into_state(app)
    return {
        "loaded": len(app.state.qualifications.rules),
        "invalid": app.state.invalid_rules,
    }
