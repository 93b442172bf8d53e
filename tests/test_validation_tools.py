import json
import subprocess
import sys
from pathlib import Path

import pytest

from branchplay.loader import load_schema
from branchplay.schema import validate_schema
from branchplay.script_schema import Jump, Narrative, Option, Scene, entry_from_data, entry_to_data
from tools import list_unreachable


REPO_ROOT = Path(__file__).resolve().parents[1]


def write_script(tmp_path: Path, script) -> Path:
    path = tmp_path / "script.json"
    path.write_text(json.dumps(script))
    return path


@pytest.mark.parametrize(
    ("script", "match"),
    [
        ("nope", "JSON list or object"),
        ({"entries": "nope"}, "must be a list of entry objects"),
        ([{"type": "scene"}], "non-empty 'label'"),
        ([{"type": "dance"}], "unsupported entry type"),
        ([{"type": "goto", "target": "NOWHERE"}], "unknown scene 'NOWHERE'"),
    ],
)
def test_load_schema_rejects_invalid_scripts(tmp_path: Path, script, match: str) -> None:
    path = write_script(tmp_path, script)
    with pytest.raises(ValueError, match=match):
        load_schema(path)


def test_load_schema_accepts_jump_alias(tmp_path: Path) -> None:
    path = write_script(
        tmp_path,
        [
            {"type": "scene", "label": "A"},
            {"type": "narrative", "text": "Hello"},
            {"type": "jump", "target": "END"},
        ],
    )
    assert load_schema(path) == (Scene("A"), Narrative("Hello"), Jump("END"))


def test_validate_schema_rejects_duplicate_labels() -> None:
    errors = validate_schema([{"type": "scene", "label": "A"}, {"type": "scene", "label": "A"}])
    assert any("duplicate scene labels detected: A" in error for error in errors)


def test_validate_schema_rejects_nested_options() -> None:
    errors = validate_schema(
        [{"type": "option", "text": "outer", "then": [{"type": "option", "text": "inner"}]}]
    )
    assert any("nested option entries" in error for error in errors)


def test_validate_schema_rejects_multiple_gotos() -> None:
    errors = validate_schema(
        [
            {
                "type": "option",
                "text": "go",
                "then": [{"type": "goto", "target": "END"}, {"type": "goto", "target": "END"}],
            }
        ]
    )
    assert any("2 goto entries" in error for error in errors)


def test_validate_schema_reserves_end_label() -> None:
    errors = validate_schema([{"type": "scene", "label": "END"}])
    assert any("reserved" in error for error in errors)


def test_validate_tool_flags_unknown_target(tmp_path: Path) -> None:
    path = write_script(tmp_path, {"entries": [{"type": "goto", "target": "NOWHERE"}]})
    result = subprocess.run(
        [sys.executable, str(REPO_ROOT / "tools" / "validate.py"), str(path)],
        capture_output=True,
        text=True,
        check=False,
    )
    assert result.returncode == 1
    assert "targets unknown scene 'NOWHERE'" in result.stdout


def test_validate_tool_passes_bundled_story() -> None:
    result = subprocess.run(
        [sys.executable, str(REPO_ROOT / "tools" / "validate.py")],
        capture_output=True,
        text=True,
        check=False,
    )
    assert result.returncode == 0
    assert "Validation passed" in result.stdout
    assert "Reachability warnings" not in result.stdout


def test_list_unreachable_reports_missing_targets_and_orphans() -> None:
    schema = (
        Scene("A"),
        Option("x", then=(Jump("B"),)),
        Option("y", then=(Jump("NOPE"),)),
        Scene("B"),
        Jump("END"),
        Scene("C"),
        Narrative("orphan"),
        Jump("A"),
    )
    graph, missing_targets = list_unreachable.build_graph(schema)
    assert graph == {"A": ["B"], "B": [], "C": ["A"]}
    assert missing_targets == ["scene A -> missing scene NOPE"]
    assert list_unreachable.unreachable_scenes(schema, graph) == ["C"]


def test_list_unreachable_follows_fall_through_from_start() -> None:
    schema = (Narrative("intro"), Scene("A"), Option("x"))
    graph, missing_targets = list_unreachable.build_graph(schema)
    assert graph["START"] == ["A"]
    assert missing_targets == []
    assert list_unreachable.unreachable_scenes(schema, graph) == []


def test_entry_conversions() -> None:
    option = entry_from_data(
        {"type": "option", "text": "go", "aliases": ["leave"], "then": [{"type": "jump", "target": "END"}]}
    )
    assert option == Option("go", then=(Jump("END"),), aliases=("leave",))
    assert entry_to_data(option) == {
        "type": "option",
        "text": "go",
        "then": [{"type": "goto", "target": "END"}],
        "aliases": ["leave"],
    }
    with pytest.raises(ValueError, match="Invalid entry"):
        entry_from_data({"type": "narrative", "text": ""})
