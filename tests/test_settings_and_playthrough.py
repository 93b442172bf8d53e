import json
from pathlib import Path

import pytest

from branchplay.game import GameStatus, GameState, PlaythroughEntry
from branchplay.playthrough import (
    Playthrough,
    PlaythroughCorruptError,
    PlaythroughError,
    game_state_to_playthrough,
    load_playthrough,
    save_playthrough,
    schema_signature,
)
from branchplay.script_schema import Jump, Narrative, Option, Scene
from branchplay.settings import EngineSettings, load_settings, save_settings


def test_settings_clamp_and_coerce() -> None:
    settings = EngineSettings.from_dict(
        {
            "min_keyword_length": 99,
            "auto_select_single_option": "off",
            "free_text": "yes",
            "log_level": "chatty",
        }
    )
    assert settings.min_keyword_length == 10
    assert settings.auto_select_single_option is False
    assert settings.free_text is True
    assert settings.log_level == "WARNING"

    assert EngineSettings.from_dict({"min_keyword_length": "x"}).min_keyword_length == 1
    assert EngineSettings.from_dict(None) == EngineSettings()


def test_settings_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    saved = save_settings(EngineSettings(min_keyword_length=0, log_level="debug"), path)
    assert saved.min_keyword_length == 1
    assert saved.log_level == "DEBUG"
    assert load_settings(path) == saved


def test_settings_fall_back_to_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "missing.json") == EngineSettings()
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    assert load_settings(broken) == EngineSettings()


def test_playthrough_round_trip(tmp_path: Path) -> None:
    schema = (Scene("A"), Narrative("Hi"), Option("go", then=(Jump("END"),)))
    state = GameState(
        history=(PlaythroughEntry("Hi"), PlaythroughEntry("go", True)),
        current_line_idx=2,
        current_options=(),
        status=GameStatus.ENDED,
    )
    record = game_state_to_playthrough("demo", state, schema)
    assert record.ended
    assert record.schema_signature == schema_signature(schema)

    path = save_playthrough(record, tmp_path / "nested" / "run.json")
    assert load_playthrough(path) == record


def test_schema_signature_tracks_content() -> None:
    first = (Scene("A"), Narrative("Hi"))
    assert schema_signature(first) == schema_signature(tuple(first))
    assert schema_signature(first) != schema_signature((Scene("A"), Narrative("Hello")))


def test_playthrough_accepts_plain_string_history() -> None:
    record = Playthrough.from_dict({"position": 3, "history": ["Hi", "go"]})
    assert record.history == (PlaythroughEntry("Hi"), PlaythroughEntry("go"))
    assert not record.ended


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"history": []},
        {"position": True},
        {"position": 1, "history": "nope"},
        {"position": 1, "history": [{"is_choice": True}]},
    ],
)
def test_playthrough_rejects_malformed_records(data) -> None:
    with pytest.raises(PlaythroughCorruptError):
        Playthrough.from_dict(data)


def test_load_playthrough_errors(tmp_path: Path) -> None:
    with pytest.raises(PlaythroughError, match="missing"):
        load_playthrough(tmp_path / "nope.json")

    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{")
    with pytest.raises(PlaythroughCorruptError, match="Invalid JSON"):
        load_playthrough(corrupt)

    wrong_shape = tmp_path / "list.json"
    wrong_shape.write_text(json.dumps([1, 2]))
    with pytest.raises(PlaythroughCorruptError):
        load_playthrough(wrong_shape)
