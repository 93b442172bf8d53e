"""Shared schema validation utilities for Branchplay scripts."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, List, Mapping, Sequence, Set

from branchplay.script_schema import (
    END_TARGET,
    ENTRY_JUMP,
    ENTRY_OPTION,
    ENTRY_SCENE,
    entry_type,
    format_validation_message,
    is_non_empty_str,
    normalize_schema,
    path,
)


class ValidationContext:
    """Utility container for accumulating validation errors."""

    def __init__(self) -> None:
        self.errors: List[str] = []

    def add(self, context: str, path_str: str, message: str) -> None:
        self.errors.append(format_validation_message(path_str, context, message))

    def extend(self, messages: Iterable[str]) -> None:
        self.errors.extend(messages)


def require(condition: bool, context: str, path_str: str, message: str, ctx: ValidationContext) -> None:
    if not condition:
        ctx.add(context, path_str, message)


def _raw_entries(raw: Any) -> List[Any]:
    if isinstance(raw, Mapping) and "entries" in raw:
        raw = raw.get("entries")
    return raw if isinstance(raw, list) else []


def collect_labels(raw_entries: Sequence[Any]) -> List[str]:
    labels: List[str] = []
    for raw in raw_entries:
        if isinstance(raw, Mapping) and entry_type(raw) == ENTRY_SCENE:
            label = raw.get("label")
            if is_non_empty_str(label):
                labels.append(label.strip())
    return labels


def validate_jump(
    raw: Mapping[str, Any],
    context: str,
    labels: Set[str],
    path_parts: Sequence[object],
    ctx: ValidationContext,
) -> None:
    target = raw.get("target")
    if not is_non_empty_str(target):
        # Shape problems are reported by normalize_schema.
        return
    target = target.strip()
    if target != END_TARGET and target not in labels:
        ctx.add(context, path(*path_parts, "target"), f"targets unknown scene '{target}'.")


def validate_option(
    raw: Mapping[str, Any],
    index: int,
    labels: Set[str],
    path_parts: Sequence[object],
    ctx: ValidationContext,
) -> None:
    context = f"Option {index}"
    then = raw.get("then")
    if not isinstance(then, list):
        return
    jump_paths = []
    for child_idx, child in enumerate(then):
        if not isinstance(child, Mapping) or entry_type(child) != ENTRY_JUMP:
            continue
        child_path = (*path_parts, "then", child_idx)
        jump_paths.append(path(*child_path))
        validate_jump(child, context, labels, child_path, ctx)
    if len(jump_paths) > 1:
        ctx.add(
            context,
            path(*path_parts, "then"),
            f"has {len(jump_paths)} goto entries; only one is allowed ({', '.join(jump_paths)}).",
        )


def validate_schema(raw: Any) -> List[str]:
    """Return every authoring error found in parser output.

    Structural problems come from ``normalize_schema``; the checks here cover
    cross-entry rules such as label uniqueness and jump targets.
    """
    ctx = ValidationContext()
    _entries, structure_errors = normalize_schema(raw)
    ctx.extend(structure_errors)

    raw_entries = _raw_entries(raw)
    labels = collect_labels(raw_entries)
    duplicates = [label for label, count in Counter(labels).items() if count > 1]
    if duplicates:
        ctx.add(
            "Scenes",
            "entries",
            f"duplicate scene labels detected: {', '.join(sorted(duplicates))}.",
        )
    label_set = set(labels)

    scene_index = 0
    option_index = 0
    for idx, entry in enumerate(raw_entries):
        if not isinstance(entry, Mapping):
            continue
        kind = entry_type(entry)
        if kind == ENTRY_SCENE:
            scene_index += 1
            label = entry.get("label")
            require(
                not (is_non_empty_str(label) and label.strip() == END_TARGET),
                f"Scene {scene_index}",
                path(idx, "label"),
                f"'{END_TARGET}' is reserved and cannot label a scene.",
                ctx,
            )
        elif kind == ENTRY_JUMP:
            validate_jump(entry, "Goto", label_set, (idx,), ctx)
        elif kind == ENTRY_OPTION:
            option_index += 1
            validate_option(entry, option_index, label_set, (idx,), ctx)

    return ctx.errors
