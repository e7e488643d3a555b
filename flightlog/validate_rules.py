# flightlog/validate_rules.py
# Run against the bundled rules or any other folder:
#   python -m flightlog.validate_rules [folder]
# It checks every .json in the folder: JSON syntax (with line/col context),
# then each qualification rule against the QualificationRule model.

from pathlib import Path
from typing import List, Optional
import json
import sys

from pydantic import ValidationError

from .load_rules import RULES_DIR, QualificationRule, _iter_rule_objects_from_raw


def validate_json_file(p: Path) -> bool:
    try:
        txt = p.read_text(encoding="utf-8")
    except OSError as e:
        print(f"{p.name}: ERROR reading file: {e}")
        return False
    try:
        parsed = json.loads(txt)
    except json.JSONDecodeError as e:
        print(f"{p.name}: JSON parse error: {e.msg} (line {e.lineno}, col {e.colno})")
        # show a small snippet around the error location
        lines = txt.splitlines()
        ln = e.lineno - 1
        start = max(0, ln - 2)
        end = min(len(lines), ln + 2)
        print("---- context ----")
        for i in range(start, end):
            marker = ">>" if i == ln else "  "
            print(f"{marker} {i+1:4d}: {lines[i]}")
        print("-----------------")
        return False

    rule_objs = _iter_rule_objects_from_raw(parsed)
    if not rule_objs:
        print(f"{p.name}: no qualification rules found")
        return False

    ok = True
    seen = set()
    for idx, raw in enumerate(rule_objs):
        try:
            rule = QualificationRule.model_validate(raw)
        except ValidationError as e:
            print(f"{p.name}: rule #{idx} invalid:")
            for err in e.errors():
                loc = ".".join(str(x) for x in err["loc"])
                print(f"    {loc}: {err['msg']}")
            ok = False
            continue
        if rule.id in seen:
            print(f"{p.name}: rule #{idx} duplicates id '{rule.id}'")
            ok = False
        seen.add(rule.id)
    if ok:
        print(f"{p.name}: OK ({len(rule_objs)} rules)")
    return ok


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    folder = Path(args[0]) if args else RULES_DIR
    if not folder.exists():
        print("Rules folder not found:", folder.resolve())
        return 1
    files = sorted(folder.glob("*.json"))
    if not files:
        print("No .json files found in:", folder.resolve())
        return 0
    ok_count = 0
    bad_count = 0
    for f in files:
        if validate_json_file(f):
            ok_count += 1
        else:
            bad_count += 1
    print(f"\nSummary: {ok_count} OK, {bad_count} INVALID ({len(files)} files checked)")
    return 2 if bad_count else 0


if __name__ == "__main__":
    sys.exit(main())
