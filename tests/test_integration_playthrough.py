import random
from pathlib import Path

import pytest

from branchplay import api
from branchplay.game import GameState
from branchplay.loader import load_schema
from branchplay.playthrough import game_state_to_playthrough, load_playthrough, save_playthrough
from branchplay.traversal import build_scene_map

REPO_ROOT = Path(__file__).resolve().parents[1]
SCRIPT_PATH = REPO_ROOT / "story" / "script.json"


def simulate_random_playthrough(schema, *, seed: int, max_steps: int = 500) -> GameState:
    rng = random.Random(seed)
    scene_map = build_scene_map(schema)
    state = api.advance(schema, 0, scene_map)
    steps = 0
    while not state.is_ended and steps < max_steps:
        steps += 1
        assert state.current_options, f"No options offered at entry {state.current_line_idx}."
        state = api.resolve(schema, scene_map, state, rng.choice(state.current_options))
        assert state.failure is None
    return state


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_random_playthroughs_reach_an_ending(seed: int) -> None:
    schema = load_schema(SCRIPT_PATH)
    state = simulate_random_playthrough(schema, seed=seed)
    assert state.is_ended
    assert state.history[0].text.startswith("You're in a room.")


def test_free_text_playthrough() -> None:
    schema = load_schema(SCRIPT_PATH)
    scene_map = build_scene_map(schema)
    state = api.advance(schema, 0, scene_map)
    for typed in ("look at desk", "take key", "try the key on the door"):
        option = api.match(typed, state.current_options)
        assert option is not None, typed
        state = api.resolve(schema, scene_map, state, option)

    assert state.is_ended
    choices = [entry.text for entry in state.history if entry.is_choice]
    assert choices == ["Examine the desk", "Take the key", "Try the key on the door"]
    assert state.history[-1].text == "The lock turns with a satisfying click."


def test_saved_playthrough_resumes_mid_story(tmp_path: Path) -> None:
    schema = load_schema(SCRIPT_PATH)
    scene_map = build_scene_map(schema)
    state = api.advance(schema, 0, scene_map)
    state = api.resolve(schema, scene_map, state, state.current_options[0])

    path = save_playthrough(game_state_to_playthrough("script", state, schema), tmp_path / "run.json")
    resumed = api.resync(schema, load_playthrough(path))
    assert resumed.history == state.history
    assert resumed.current_options == state.current_options
    assert resumed.new_entries() == ()

    finished = api.resolve(schema, scene_map, resumed, resumed.current_options[0])
    finished = api.resolve(schema, scene_map, finished, finished.current_options[0])
    assert finished.is_ended
