"""Load parsed scripts from JSON files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, NoReturn

from branchplay.schema import validate_schema
from branchplay.script_schema import Schema, normalize_schema


def _raise_script_validation(errors: List[str]) -> NoReturn:
    raise ValueError("Invalid script:\n- " + "\n- ".join(errors))


def load_schema(path: Path | str) -> Schema:
    with open(path, "r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if not isinstance(raw, (list, dict)):
        _raise_script_validation(["Script data must be a JSON list or object."])

    errors = validate_schema(raw)
    if errors:
        _raise_script_validation(errors)

    schema, _ = normalize_schema(raw)
    return schema
