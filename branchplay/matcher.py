"""Free-text play: match typed input against the options on offer.

Scoring is a plain keyword overlap. Input and option text are lowercased and
split on whitespace and common punctuation; an option's score is the number of
distinct words it shares with the input (the best of its text and aliases).
The highest strictly-greater score wins, so ties go to the earlier option, and
a best score of zero is no match at all. A lone option is picked regardless of
the text typed.

The functions here never touch a ``GameState``: ``handle_input`` reports the
new scene-relative position and the caller decides what to store.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence, Set, Tuple

from branchplay.script_schema import END_TARGET, Jump, Narrative, Option, Scene, SchemaEntry
from branchplay.settings import EngineSettings
from branchplay.traversal import (
    SceneMap,
    collect_options,
    process_option_then,
    scene_entry_index,
)

KEYWORD_SPLIT_PATTERN = re.compile(r"[\s,.!?;:'\"()-]+")


@dataclass(frozen=True)
class OptionMatch:
    option: Option
    score: int
    matched_alias: Optional[str] = None


@dataclass(frozen=True)
class InputResult:
    matched: bool
    scene_id: Optional[str] = None
    line_idx: Optional[int] = None
    option_text: Optional[str] = None
    narratives: Tuple[Narrative, ...] = ()
    matched_alias: Optional[str] = None

    @property
    def ended(self) -> bool:
        return self.matched and self.scene_id == END_TARGET


def extract_keywords(text: str) -> Set[str]:
    return {word for word in KEYWORD_SPLIT_PATTERN.split(text.lower()) if word}


def count_matching_keywords(user_input: str, option_text: str, *, min_length: int = 1) -> int:
    option_keywords = extract_keywords(option_text)
    return sum(
        1
        for keyword in extract_keywords(user_input)
        if len(keyword) >= min_length and keyword in option_keywords
    )


def score_option(
    user_input: str, option: Option, *, min_length: int = 1
) -> Tuple[int, Optional[str]]:
    best_score = count_matching_keywords(user_input, option.text, min_length=min_length)
    matched_alias = None
    for alias in option.aliases:
        alias_score = count_matching_keywords(user_input, alias, min_length=min_length)
        if alias_score > best_score:
            best_score = alias_score
            matched_alias = alias
    return best_score, matched_alias


def match_option(
    user_input: str,
    options: Sequence[Option],
    *,
    settings: Optional[EngineSettings] = None,
) -> Optional[OptionMatch]:
    settings = settings or EngineSettings()
    if not options:
        return None
    if len(options) == 1 and settings.auto_select_single_option:
        return OptionMatch(options[0], 0)

    best: Optional[OptionMatch] = None
    best_score = 0
    for option in options:
        score, alias = score_option(user_input, option, min_length=settings.min_keyword_length)
        if score > best_score:
            best_score = score
            best = OptionMatch(option, score, alias)
    return best


def options_at_position(
    schema: Sequence[SchemaEntry],
    scene_map: SceneMap,
    scene_id: str,
    line_idx: int,
) -> Tuple[Option, ...]:
    """Options on offer after ``line_idx`` narrative lines of ``scene_id``.

    The walk stays inside the scene. A goto reached before any qualifying
    option means the scene moves on without a choice, so nothing is offered.
    Past the last narrative line of the scene, every option in the scene is
    offered again.
    """
    scene_start = scene_entry_index(scene_map, scene_id)
    if scene_start is None or scene_start >= len(schema):
        return ()
    scan_start = scene_start + 1 if isinstance(schema[scene_start], Scene) else scene_start

    narrative_count = 0
    scene_options = []
    for idx in range(scan_start, len(schema)):
        entry = schema[idx]
        if isinstance(entry, Scene):
            break
        if isinstance(entry, Narrative):
            narrative_count += 1
        elif isinstance(entry, Option):
            if narrative_count >= line_idx:
                return collect_options(schema, idx)
            scene_options.append(entry)
        elif isinstance(entry, Jump) and narrative_count >= line_idx:
            return ()

    if line_idx > narrative_count and scene_options:
        return tuple(scene_options)
    return ()


def handle_input(
    user_input: str,
    schema: Sequence[SchemaEntry],
    scene_map: SceneMap,
    scene_id: str,
    line_idx: int,
    *,
    settings: Optional[EngineSettings] = None,
) -> InputResult:
    options = options_at_position(schema, scene_map, scene_id, line_idx)
    if not options:
        return InputResult(matched=False)

    found = match_option(user_input, options, settings=settings)
    if found is None:
        return InputResult(matched=False)

    outcome = process_option_then(found.option)
    target = outcome.jump_target
    if target is not None:
        # A goto restarts the count at the top of its scene ("END" included).
        scene_id, line_idx = target, 0
    return InputResult(
        matched=True,
        scene_id=scene_id,
        line_idx=line_idx,
        option_text=found.option.text,
        narratives=outcome.narratives,
        matched_alias=found.matched_alias,
    )
