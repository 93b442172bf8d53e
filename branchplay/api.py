"""In-process library surface of the traversal engine."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

from branchplay.game import GameState, PlaythroughEntry, run_game_from, select_game_option
from branchplay.matcher import match_option
from branchplay.playthrough import Playthrough
from branchplay.resync import refresh_game_options, resume_playthrough
from branchplay.script_schema import Option, SchemaEntry
from branchplay.settings import EngineSettings
from branchplay.traversal import SceneMap, build_scene_map


def advance(
    schema: Sequence[SchemaEntry],
    position: int,
    scene_map: Optional[SceneMap] = None,
    history: Iterable[PlaythroughEntry] = (),
) -> GameState:
    if scene_map is None:
        scene_map = build_scene_map(schema)
    return run_game_from(schema, position, scene_map, history)


def resolve(
    schema: Sequence[SchemaEntry],
    scene_map: Optional[SceneMap],
    state: GameState,
    chosen_option: Option,
) -> GameState:
    if scene_map is None:
        scene_map = build_scene_map(schema)
    return select_game_option(schema, scene_map, state, chosen_option)


def match(
    user_input: str,
    options: Sequence[Option],
    *,
    settings: Optional[EngineSettings] = None,
) -> Optional[Option]:
    found = match_option(user_input, options, settings=settings)
    return found.option if found is not None else None


def resync(
    schema: Sequence[SchemaEntry], saved: Union[GameState, Playthrough]
) -> GameState:
    if isinstance(saved, GameState):
        return refresh_game_options(schema, saved)
    if isinstance(saved, Playthrough):
        return resume_playthrough(saved, schema)
    raise TypeError(f"Cannot resync from {type(saved).__name__}.")
