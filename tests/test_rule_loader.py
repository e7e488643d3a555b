# tests/test_rule_loader.py
import json

from flightlog.load_rules import RULES_DIR, load_rules_from_folder
from flightlog.models import LogbookType
from flightlog.validate_rules import main as validate_main


def write(folder, name, payload):
    p = folder / name
    p.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return p


def test_bundled_rules_load_cleanly():
    table, invalid = load_rules_from_folder(RULES_DIR)
    assert invalid == []
    assert table.version == "2025.1"
    assert table.medical_warning_days == 30
    assert table.lookup(LogbookType.GLIDER, "instructor").id == "glider_instructor"
    assert table.lookup(LogbookType.ENGINE, "tow_pilot").id == "engine_tow_pilot"


def test_bad_files_are_reported_not_fatal(tmp_path):
    write(tmp_path, "a.json", {"meta": {"medical_warning_days": 15}, "rules": [
        {"id": "g_pilot", "logbook_type": "glider", "role": "pilot", "keyword_groups": [["piloto"]]},
        {"id": "bad_role", "logbook_type": "glider", "role": "captain", "keyword_groups": [["x"]]},
    ]})
    write(tmp_path, "b.json", "{ not json")
    write(tmp_path, "c.json", {"g_pilot": {"logbook_type": "engine", "role": "pilot", "keyword_groups": [["y"]]}})

    table, invalid = load_rules_from_folder(tmp_path)
    assert list(table.rules) == ["g_pilot"]
    assert table.rules["g_pilot"].logbook_type == LogbookType.GLIDER
    assert table.medical_warning_days == 15
    files = sorted(i["file"] for i in invalid)
    assert files == ["a.json", "b.json", "c.json"]


def test_disabled_rule_is_not_looked_up(tmp_path):
    write(tmp_path, "rules.json", [
        {"id": "a", "logbook_type": "glider", "role": "pilot", "keyword_groups": [["x"]], "enabled": False},
        {"id": "b", "logbook_type": "glider", "role": "pilot", "keyword_groups": [["y"]]},
    ])
    table, _ = load_rules_from_folder(tmp_path)
    assert table.lookup(LogbookType.GLIDER, "pilot").id == "b"
    assert table.lookup(LogbookType.GLIDER, "student") is None


def test_missing_folder_gives_empty_table(tmp_path):
    table, invalid = load_rules_from_folder(tmp_path / "nope")
    assert table.rules == {}
    assert invalid == []


def test_validate_rules_cli(tmp_path, capsys):
    assert validate_main([str(RULES_DIR)]) == 0
    write(tmp_path, "broken.json", '{\n  "id": "x",\n  oops\n}')
    assert validate_main([str(tmp_path)]) == 2
    out = capsys.readouterr().out
    assert "JSON parse error" in out
    assert "1 INVALID" in out
