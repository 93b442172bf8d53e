#!/usr/bin/env python3
"""Validate a parsed Branchplay script for common authoring mistakes."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SCRIPT = REPO_ROOT / "story" / "script.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from branchplay.schema import validate_schema
from branchplay.script_schema import normalize_schema
from tools.list_unreachable import build_graph, unreachable_scenes


def load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate Branchplay script data.")
    parser.add_argument(
        "script_path",
        nargs="?",
        default=str(DEFAULT_SCRIPT),
        help="Path to the parsed script JSON file.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    script_path = Path(args.script_path).resolve()
    try:
        raw = load_json(script_path)
    except json.JSONDecodeError as exc:
        print(f"Failed to parse JSON from {script_path}: {exc}")
        sys.exit(1)

    errors = validate_schema(raw)
    if errors:
        print("Validation failed (path: message):")
        for err in errors:
            print(f" - {err}")
        sys.exit(1)

    schema, _ = normalize_schema(raw)
    graph, _missing = build_graph(schema)
    unreachable = unreachable_scenes(schema, graph)
    if unreachable:
        print("Reachability warnings:")
        for label in unreachable:
            print(f" - scene '{label}' cannot be reached from the start of the script.")

    print(f"Validation passed for {script_path}.")


if __name__ == "__main__":
    main(sys.argv)
