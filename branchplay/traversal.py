"""Position primitives shared by the play, resync and free-text paths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

from branchplay.script_schema import (
    START_SCENE,
    Jump,
    Narrative,
    Option,
    Scene,
    SchemaEntry,
)

SceneMap = Dict[str, int]


@dataclass(frozen=True)
class OptionOutcome:
    narratives: Tuple[Narrative, ...]
    jump_target: Optional[str]
    jump_count: int = 0


def build_scene_map(schema: Sequence[SchemaEntry]) -> SceneMap:
    """Map scene labels to their entry index.

    Duplicate labels are an authoring error (see ``validate_schema``); when one
    slips through, the first scene with the label wins.
    """
    scene_map: SceneMap = {}
    for idx, entry in enumerate(schema):
        if isinstance(entry, Scene):
            scene_map.setdefault(entry.label, idx)
    return scene_map


def scene_entry_index(scene_map: Mapping[str, int], scene_id: str) -> Optional[int]:
    if scene_id in scene_map:
        return scene_map[scene_id]
    if scene_id == START_SCENE:
        return 0
    return None


def collect_options(schema: Sequence[SchemaEntry], start_idx: int) -> Tuple[Option, ...]:
    """Return the contiguous run of options beginning at ``start_idx``."""
    options = []
    idx = max(start_idx, 0)
    while idx < len(schema) and isinstance(schema[idx], Option):
        options.append(schema[idx])
        idx += 1
    return tuple(options)


def find_last_decision_point(schema: Sequence[SchemaEntry], before_idx: int) -> Optional[int]:
    """Start of the nearest option run strictly before ``before_idx``."""
    for idx in range(min(before_idx, len(schema)) - 1, -1, -1):
        if isinstance(schema[idx], Option):
            start = idx
            while start > 0 and isinstance(schema[start - 1], Option):
                start -= 1
            return start
    return None


def find_scene_start(schema: Sequence[SchemaEntry], before_idx: int) -> int:
    for idx in range(min(before_idx, len(schema)) - 1, -1, -1):
        if isinstance(schema[idx], Scene):
            return idx
    return 0


def current_scene_label(schema: Sequence[SchemaEntry], before_idx: int) -> Optional[str]:
    for idx in range(min(before_idx, len(schema)) - 1, -1, -1):
        entry = schema[idx]
        if isinstance(entry, Scene):
            return entry.label
    return None


def find_nearby_options(schema: Sequence[SchemaEntry], from_idx: int) -> Optional[int]:
    for idx in range(max(from_idx, 0), len(schema)):
        if isinstance(schema[idx], Option):
            return idx
    for idx in range(min(from_idx, len(schema) - 1), -1, -1):
        if isinstance(schema[idx], Option):
            return idx
    return None


def process_option_then(option: Option) -> OptionOutcome:
    narratives = []
    jump_target: Optional[str] = None
    jump_count = 0
    for entry in option.then:
        if isinstance(entry, Narrative):
            narratives.append(entry)
        elif isinstance(entry, Jump):
            # Last goto wins; validation rejects scripts with more than one.
            jump_target = entry.target
            jump_count += 1
    return OptionOutcome(tuple(narratives), jump_target, jump_count)
