"""Reconcile stored positions against a schema that may have changed."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from branchplay.game import (
    FailureKind,
    GameState,
    GameStatus,
    TraversalFailure,
    create_initial_game_state,
    run_game_from,
)
from branchplay.playthrough import Playthrough, schema_signature
from branchplay.script_schema import Option, Scene, SchemaEntry
from branchplay.traversal import (
    build_scene_map,
    collect_options,
    current_scene_label,
    find_nearby_options,
    find_scene_start,
)

logger = logging.getLogger(__name__)


def refresh_game_options(schema: Sequence[SchemaEntry], state: GameState) -> GameState:
    """Rebuild a live session after the script was edited.

    Ended sessions restart from scratch. Otherwise the nearest option run is
    located in the edited script and its scene is replayed with empty history:
    lines already shown in this scene are regenerated from the current script
    and history from earlier scenes is dropped.
    """
    if state.is_ended:
        return create_initial_game_state(schema)

    options_idx = find_nearby_options(schema, state.current_line_idx)
    if options_idx is None:
        logger.info("No options left in the edited script; restarting.")
        return replace(
            create_initial_game_state(schema),
            failure=TraversalFailure(
                FailureKind.UNRESOLVABLE_RESUME, position=state.current_line_idx
            ),
        )

    scene_start = find_scene_start(schema, options_idx)
    consumed = ()
    if current_scene_label(schema, options_idx) == current_scene_label(
        schema, state.current_line_idx
    ):
        consumed = state.consumed_options
        if isinstance(schema[scene_start], Scene):
            # Step past the marker so the consumed options carry over.
            scene_start += 1
    refreshed = run_game_from(
        schema,
        scene_start,
        build_scene_map(schema),
        (),
        consumed_options=consumed,
    )
    return replace(
        refreshed, animated_count=min(state.animated_count, len(refreshed.history))
    )


def resume_playthrough(playthrough: Playthrough, schema: Sequence[SchemaEntry]) -> GameState:
    """Turn a stored playthrough back into a live state.

    When the stored position no longer lands on an option the script is
    replayed from that position with the stored history as prefix; if the
    script changed upstream the replay can repeat or diverge from what the
    player actually saw.
    """
    history = tuple(playthrough.history)
    signature = schema_signature(schema)
    if playthrough.schema_signature and signature and playthrough.schema_signature != signature:
        logger.info(
            "Playthrough %s was recorded against a different script; resuming with safety checks.",
            playthrough.id,
        )

    position = min(max(playthrough.position, 0), len(schema))

    if playthrough.ended:
        return GameState(
            history=history,
            current_line_idx=position,
            current_options=(),
            status=GameStatus.ENDED,
            animated_count=len(history),
        )

    if position < len(schema) and isinstance(schema[position], Option):
        return GameState(
            history=history,
            current_line_idx=position,
            current_options=collect_options(schema, position),
            status=GameStatus.WAITING,
            animated_count=len(history),
        )

    return run_game_from(
        schema,
        position,
        build_scene_map(schema),
        history,
        animated_count=len(history),
    )
