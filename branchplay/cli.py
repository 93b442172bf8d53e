#!/usr/bin/env python3
"""
Branchplay terminal player.
- Numbered choices, or free text matched against the options on offer.
- Reload the script mid-session with R; the session is resynced to the edit.
- Optional playthrough file, written after every step and resumed on start.
Usage: python3 -m branchplay.cli script.json [--playthrough run.json]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from branchplay.game import (
    GameState,
    create_initial_game_state,
    jump_back_to_choice,
    mark_history_animated,
    select_game_option,
)
from branchplay.loader import load_schema
from branchplay.matcher import match_option
from branchplay.playthrough import (
    PlaythroughError,
    game_state_to_playthrough,
    load_playthrough,
    save_playthrough,
)
from branchplay.resync import refresh_game_options, resume_playthrough
from branchplay.script_schema import Schema
from branchplay.settings import SETTINGS_PATH, EngineSettings, load_settings, save_settings
from branchplay.traversal import build_scene_map

DEFAULT_SCRIPT_PATH = "story/script.json"
COMMANDS_LINE = "  H. History    B. Back    R. Reload script    T. Toggle free text    Q. Quit"


def emit_print(*args, **kwargs) -> None:
    print(*args, **kwargs)


async def read_input(prompt: str = "") -> str:
    return await asyncio.to_thread(input, prompt)


def render_state(state: GameState, *, free_text: bool) -> None:
    for entry in state.new_entries():
        if entry.is_choice:
            emit_print(f"\n> {entry.text}\n")
        else:
            emit_print(entry.text)
    if state.failure is not None:
        emit_print(f"[!] {state.failure.message()}")
    if state.is_ended:
        return
    emit_print("")
    for idx, option in enumerate(state.current_options, start=1):
        marker = "*" if option.text in state.consumed_options else " "
        emit_print(f" {marker}{idx}. {option.text}")
    if free_text:
        emit_print("  (free text: type what you want to do)")
    emit_print(COMMANDS_LINE)


def show_history(state: GameState) -> None:
    if not state.history:
        emit_print("No history yet.")
        return
    for idx, entry in enumerate(state.history):
        prefix = ">" if entry.is_choice else " "
        emit_print(f"{idx:>3} {prefix} {entry.text}")


def previous_choice_index(state: GameState) -> Optional[int]:
    for idx in range(len(state.history) - 1, -1, -1):
        if state.history[idx].is_choice:
            return idx
    return None


def persist(state: GameState, schema: Schema, path: Optional[Path], game_id: str) -> None:
    if path is None:
        return
    try:
        save_playthrough(game_state_to_playthrough(game_id, state, schema), path)
    except PlaythroughError as exc:
        emit_print(f"[!] {exc}")


def initial_state(schema: Schema, playthrough_path: Optional[Path]) -> GameState:
    if playthrough_path is None or not playthrough_path.exists():
        return create_initial_game_state(schema)
    try:
        playthrough = load_playthrough(playthrough_path)
    except PlaythroughError as exc:
        emit_print(f"[!] Could not resume {playthrough_path}: {exc}. Starting over.")
        return create_initial_game_state(schema)
    emit_print(f"[Loaded] Playthrough from {playthrough_path}.")
    return resume_playthrough(playthrough, schema)


def parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play a Branchplay script in the terminal.")
    parser.add_argument("script", nargs="?", default=DEFAULT_SCRIPT_PATH)
    parser.add_argument("--settings", default=str(SETTINGS_PATH), help="Settings JSON file.")
    parser.add_argument("--playthrough", help="Playthrough file to resume and keep updated.")
    parser.add_argument(
        "--free-text", action="store_true", help="Start in free-text input mode."
    )
    return parser.parse_args(argv)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings: EngineSettings = load_settings(args.settings)
    logging.basicConfig(level=settings.log_level, format="[%(levelname)s] %(name)s: %(message)s")

    script_path = Path(args.script)
    try:
        schema = load_schema(script_path)
    except (OSError, ValueError) as exc:
        emit_print(f"[!] Failed to load {script_path}: {exc}")
        return 1

    game_id = script_path.stem
    playthrough_path = Path(args.playthrough) if args.playthrough else None
    free_text = args.free_text or settings.free_text
    scene_map = build_scene_map(schema)
    state = initial_state(schema, playthrough_path)

    while True:
        render_state(state, free_text=free_text)
        state = mark_history_animated(state)
        persist(state, schema, playthrough_path, game_id)
        if state.is_ended:
            emit_print("\n*** The End ***")
            return 0

        raw_choice = (await read_input("> ")).strip()
        choice = raw_choice.lower()
        if choice == "q":
            return 0
        if choice == "h":
            show_history(state)
            continue
        if choice == "t":
            free_text = not free_text
            emit_print(f"[#] Free-text mode {'on' if free_text else 'off'}.")
            settings.free_text = free_text
            settings = save_settings(settings, args.settings)
            continue
        if choice == "b":
            choice_idx = previous_choice_index(state)
            if choice_idx is None:
                emit_print("[!] No earlier choice to go back to.")
                continue
            state = jump_back_to_choice(schema, state, choice_idx)
            continue
        if choice == "r":
            try:
                schema = load_schema(script_path)
            except (OSError, ValueError) as exc:
                emit_print(f"[!] Reload failed, keeping the current script: {exc}")
                continue
            scene_map = build_scene_map(schema)
            state = refresh_game_options(schema, state)
            emit_print(f"[Reloaded] {script_path}")
            continue

        if choice.isdigit():
            idx = int(choice)
            if not (1 <= idx <= len(state.current_options)):
                emit_print("Pick a valid choice number.")
                continue
            option = state.current_options[idx - 1]
        elif free_text and raw_choice:
            found = match_option(raw_choice, state.current_options, settings=settings)
            if found is None:
                emit_print("Nothing here matches that. Try other words.")
                continue
            option = found.option
        else:
            emit_print("Enter a number or H/B/R/T/Q.")
            continue

        state = select_game_option(schema, scene_map, state, option)


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        emit_print("\n[Interrupted] Bye.")


if __name__ == "__main__":
    run()
