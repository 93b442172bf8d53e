"""Traversal engine and option resolver for Branchplay scripts.

Every function here is pure: it takes a schema snapshot plus a state value
and returns a new ``GameState``. Nothing is mutated in place and nothing
raises for script problems; failures degrade to an ended state that carries a
``TraversalFailure`` describing what went wrong.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

from branchplay.script_schema import END_TARGET, Jump, Narrative, Option, Scene, SchemaEntry
from branchplay.traversal import (
    SceneMap,
    build_scene_map,
    collect_options,
    current_scene_label,
    find_last_decision_point,
    process_option_then,
)

logger = logging.getLogger(__name__)


class GameStatus(Enum):
    WAITING = "waiting"
    ENDED = "ended"


class FailureKind(Enum):
    MISSING_SCENE = "missing_scene"
    MALFORMED_SELECTION = "malformed_selection"
    UNRESOLVABLE_RESUME = "unresolvable_resume"


@dataclass(frozen=True)
class TraversalFailure:
    kind: FailureKind
    target: Optional[str] = None
    position: Optional[int] = None

    def message(self) -> str:
        if self.kind is FailureKind.MISSING_SCENE:
            return f"Scene '{self.target}' not found."
        if self.kind is FailureKind.MALFORMED_SELECTION:
            return f"Option '{self.target}' is not available right now."
        return "Saved position could not be matched to the script; restarted from the beginning."


@dataclass(frozen=True)
class PlaythroughEntry:
    text: str
    is_choice: bool = False


@dataclass(frozen=True)
class GameState:
    history: Tuple[PlaythroughEntry, ...]
    current_line_idx: int
    current_options: Tuple[Option, ...]
    status: GameStatus
    animated_count: int = 0
    consumed_options: Tuple[str, ...] = ()
    failure: Optional[TraversalFailure] = None

    @property
    def is_ended(self) -> bool:
        return self.status is GameStatus.ENDED

    def new_entries(self) -> Tuple[PlaythroughEntry, ...]:
        """History entries the presentation layer has not shown yet."""
        return self.history[self.animated_count :]


def _waiting(
    schema: Sequence[SchemaEntry],
    idx: int,
    history: Iterable[PlaythroughEntry],
    animated_count: int,
    consumed_options: Tuple[str, ...],
) -> GameState:
    return GameState(
        history=tuple(history),
        current_line_idx=idx,
        current_options=collect_options(schema, idx),
        status=GameStatus.WAITING,
        animated_count=animated_count,
        consumed_options=consumed_options,
    )


def _ended(
    idx: int,
    history: Iterable[PlaythroughEntry],
    animated_count: int,
    consumed_options: Tuple[str, ...],
    failure: Optional[TraversalFailure] = None,
) -> GameState:
    return GameState(
        history=tuple(history),
        current_line_idx=idx,
        current_options=(),
        status=GameStatus.ENDED,
        animated_count=animated_count,
        consumed_options=consumed_options,
        failure=failure,
    )


def run_game_from(
    schema: Sequence[SchemaEntry],
    start_idx: int,
    scene_map: SceneMap,
    prior_history: Iterable[PlaythroughEntry] = (),
    *,
    animated_count: int = 0,
    consumed_options: Tuple[str, ...] = (),
    skip_intro: bool = False,
) -> GameState:
    """Advance from ``start_idx`` until the script offers options or ends.

    With ``skip_intro`` set, narrative lines are passed over silently until
    the first option is reached, and scene markers keep ``consumed_options``.

    Jumps are followed without cycle detection; an unconditional loop in the
    script never returns.
    """
    history = list(prior_history)
    consumed = tuple(consumed_options)
    idx = max(start_idx, 0)
    skipping = skip_intro

    while idx < len(schema):
        entry = schema[idx]

        if isinstance(entry, Narrative):
            if not skipping:
                history.append(PlaythroughEntry(entry.text))
            idx += 1
        elif isinstance(entry, Scene):
            if not skipping:
                consumed = ()
            idx += 1
        elif isinstance(entry, Option):
            return _waiting(schema, idx, history, animated_count, consumed)
        elif isinstance(entry, Jump):
            if entry.target == END_TARGET:
                return _ended(idx, history, animated_count, consumed)
            scene_idx = scene_map.get(entry.target)
            if scene_idx is None:
                logger.warning("Scene %r not found (goto at entry %d).", entry.target, idx)
                failure = TraversalFailure(FailureKind.MISSING_SCENE, entry.target, idx)
                return _ended(idx, history, animated_count, consumed, failure)
            idx = scene_idx
        else:
            idx += 1

    # No explicit ending: fall back into the last decision point.
    last_decision = find_last_decision_point(schema, len(schema))
    if last_decision is not None:
        return _waiting(schema, last_decision, history, animated_count, consumed)
    return _ended(len(schema), history, animated_count, consumed)


def create_initial_game_state(schema: Sequence[SchemaEntry]) -> GameState:
    return run_game_from(schema, 0, build_scene_map(schema), ())


def mark_history_animated(state: GameState) -> GameState:
    return replace(state, animated_count=len(state.history))


def select_game_option(
    schema: Sequence[SchemaEntry],
    scene_map: SceneMap,
    state: GameState,
    option: Option,
) -> GameState:
    """Apply a chosen option and return the next state.

    Selecting on an ended state returns it unchanged. Selecting an option that
    is not currently offered returns the state with a ``MALFORMED_SELECTION``
    failure attached.
    """
    if state.is_ended:
        return state
    if option not in state.current_options:
        logger.warning("Ignoring selection of %r: not among the offered options.", option.text)
        return replace(
            state,
            failure=TraversalFailure(
                FailureKind.MALFORMED_SELECTION, option.text, state.current_line_idx
            ),
        )

    animated_count = len(state.history)
    consumed = (*state.consumed_options, option.text)
    history = [*state.history, PlaythroughEntry(option.text, is_choice=True)]

    outcome = process_option_then(option)
    if outcome.jump_count > 1:
        logger.warning(
            "Option %r has %d goto entries; following the last one (%r).",
            option.text,
            outcome.jump_count,
            outcome.jump_target,
        )
    history.extend(PlaythroughEntry(line.text) for line in outcome.narratives)

    target = outcome.jump_target
    if target == END_TARGET:
        return _ended(state.current_line_idx, history, animated_count, consumed)

    if target is not None:
        scene_idx = scene_map.get(target)
        if scene_idx is None:
            logger.warning("Scene %r not found (option %r).", target, option.text)
            failure = TraversalFailure(FailureKind.MISSING_SCENE, target, state.current_line_idx)
            return _ended(state.current_line_idx, history, animated_count, consumed, failure)
        if current_scene_label(schema, state.current_line_idx) == target:
            # Re-entering the current scene: step past its marker so the
            # consumed options survive, and do not replay the intro.
            return run_game_from(
                schema,
                scene_idx + 1,
                scene_map,
                history,
                animated_count=animated_count,
                consumed_options=consumed,
                skip_intro=bool(consumed),
            )
        return run_game_from(schema, scene_idx, scene_map, history, animated_count=animated_count)

    # No goto: stay on the same menu.
    return GameState(
        history=tuple(history),
        current_line_idx=state.current_line_idx,
        current_options=state.current_options,
        status=GameStatus.WAITING,
        animated_count=animated_count,
        consumed_options=consumed,
    )


def find_option_by_text(schema: Sequence[SchemaEntry], text: str) -> Optional[int]:
    """Index of the first option run containing an option with ``text``."""
    idx = 0
    while idx < len(schema):
        if isinstance(schema[idx], Option):
            options = collect_options(schema, idx)
            if any(option.text == text for option in options):
                return idx
            idx += len(options)
            continue
        idx += 1
    return None


def jump_back_to_choice(
    schema: Sequence[SchemaEntry],
    state: GameState,
    choice_history_index: int,
) -> GameState:
    """Rewind to the menu where the choice at ``choice_history_index`` was made."""
    if not 0 <= choice_history_index < len(state.history):
        return state
    choice = state.history[choice_history_index]
    if not choice.is_choice:
        return state

    options_idx = find_option_by_text(schema, choice.text)
    if options_idx is None:
        return state

    history = state.history[:choice_history_index]
    return GameState(
        history=history,
        current_line_idx=options_idx,
        current_options=collect_options(schema, options_idx),
        status=GameStatus.WAITING,
        animated_count=len(history),
        consumed_options=(),
    )
