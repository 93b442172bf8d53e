"""Entry types and raw-data normalization for Branchplay scripts."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

END_TARGET = "END"
START_SCENE = "START"

ENTRY_NARRATIVE = "narrative"
ENTRY_SCENE = "scene"
ENTRY_JUMP = "goto"
ENTRY_OPTION = "option"

# "jump" is accepted on input; "goto" is what gets written back out.
ENTRY_TYPE_ALIASES = {"jump": ENTRY_JUMP}


def path(*parts: object) -> str:
    path_str = ""
    for part in parts:
        if isinstance(part, int):
            path_str = f"{path_str}[{part}]"
            continue
        if not isinstance(part, str):
            part = str(part)
        if part.isidentifier():
            path_str = f"{path_str}.{part}" if path_str else part
        else:
            path_str = f'{path_str}[{json.dumps(part)}]'
    return path_str


def format_validation_message(path_str: str, context: str, message: str) -> str:
    if context:
        return f"{path_str}: {context}: {message}"
    return f"{path_str}: {message}"


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


@dataclass(frozen=True)
class Narrative:
    text: str


@dataclass(frozen=True)
class Scene:
    label: str


@dataclass(frozen=True)
class Jump:
    target: str

    @property
    def ends_game(self) -> bool:
        return self.target == END_TARGET


@dataclass(frozen=True)
class Option:
    """A presented choice.

    ``then`` is an owned tuple of follow-up entries. Only ``Narrative`` and
    ``Jump`` entries may appear there; nested options and scenes are rejected
    at construction time.
    """

    text: str
    then: Tuple[Union[Narrative, Jump], ...] = ()
    aliases: Tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "then", tuple(self.then))
        object.__setattr__(self, "aliases", tuple(self.aliases))
        for child in self.then:
            if not isinstance(child, (Narrative, Jump)):
                raise ValueError(
                    f"option '{self.text}' may only contain narrative and goto entries, "
                    f"got {type(child).__name__}."
                )


SchemaEntry = Union[Narrative, Scene, Jump, Option]
Schema = Tuple[SchemaEntry, ...]


def entry_type(raw: Mapping[str, Any]) -> Optional[str]:
    kind = raw.get("type")
    if not isinstance(kind, str):
        return None
    kind = kind.strip().lower()
    return ENTRY_TYPE_ALIASES.get(kind, kind)


def _convert_then(
    raw_then: Any, path_parts: Sequence[object], errors: List[str]
) -> Tuple[Union[Narrative, Jump], ...]:
    if raw_then is None:
        return ()
    if not isinstance(raw_then, list):
        errors.append(
            format_validation_message(
                path(*path_parts), "Option", "'then' must be a list of entries if present."
            )
        )
        return ()
    children: List[Union[Narrative, Jump]] = []
    for idx, raw_child in enumerate(raw_then):
        child_path = (*path_parts, idx)
        child = _convert_entry(raw_child, child_path, errors, nested=True)
        if child is None:
            continue
        if isinstance(child, (Option, Scene)):
            errors.append(
                format_validation_message(
                    path(*child_path),
                    "Option",
                    f"nested {entry_type(raw_child)} entries are not supported inside 'then'.",
                )
            )
            continue
        children.append(child)
    return tuple(children)


def _convert_aliases(
    raw_aliases: Any, path_parts: Sequence[object], errors: List[str]
) -> Tuple[str, ...]:
    if raw_aliases is None:
        return ()
    if not isinstance(raw_aliases, list):
        errors.append(
            format_validation_message(
                path(*path_parts), "Option", "'aliases' must be a list of strings if present."
            )
        )
        return ()
    aliases: List[str] = []
    for idx, alias in enumerate(raw_aliases):
        if not is_non_empty_str(alias):
            errors.append(
                format_validation_message(
                    path(*path_parts, idx), "Option", "aliases must be non-empty strings."
                )
            )
            continue
        aliases.append(alias.strip())
    return tuple(aliases)


def _convert_entry(
    raw: Any,
    path_parts: Sequence[object],
    errors: List[str],
    *,
    nested: bool = False,
) -> Optional[SchemaEntry]:
    if not isinstance(raw, Mapping):
        errors.append(format_validation_message(path(*path_parts), "Entry", "must be an object."))
        return None

    kind = entry_type(raw)
    if kind == ENTRY_NARRATIVE:
        text = raw.get("text")
        if not is_non_empty_str(text):
            errors.append(
                format_validation_message(
                    path(*path_parts, "text"), "Narrative", "requires non-empty 'text'."
                )
            )
            return None
        return Narrative(text)
    if kind == ENTRY_SCENE:
        label = raw.get("label")
        if not is_non_empty_str(label):
            errors.append(
                format_validation_message(
                    path(*path_parts, "label"), "Scene", "requires a non-empty 'label'."
                )
            )
            return None
        return Scene(label.strip())
    if kind == ENTRY_JUMP:
        target = raw.get("target")
        if not is_non_empty_str(target):
            errors.append(
                format_validation_message(
                    path(*path_parts, "target"), "Goto", "requires a non-empty 'target'."
                )
            )
            return None
        return Jump(target.strip())
    if kind == ENTRY_OPTION:
        text = raw.get("text")
        if not is_non_empty_str(text):
            errors.append(
                format_validation_message(
                    path(*path_parts, "text"), "Option", "requires non-empty 'text'."
                )
            )
            return None
        if nested:
            # Reported by the caller; the text is enough to name it.
            return Option(text)
        then = _convert_then(raw.get("then"), (*path_parts, "then"), errors)
        aliases = _convert_aliases(raw.get("aliases"), (*path_parts, "aliases"), errors)
        return Option(text, then=then, aliases=aliases)

    errors.append(
        format_validation_message(
            path(*path_parts, "type"), "Entry", f"unsupported entry type '{raw.get('type')}'."
        )
    )
    return None


def entry_from_data(raw: Any) -> SchemaEntry:
    errors: List[str] = []
    entry = _convert_entry(raw, (), errors)
    if entry is None or errors:
        raise ValueError("Invalid entry:\n- " + "\n- ".join(errors))
    return entry


def normalize_schema(raw_entries: Any) -> Tuple[Schema, List[str]]:
    """Convert parser output into entries.

    Malformed entries are skipped and described in the returned error list, so
    tools can report every problem in one pass.
    """
    errors: List[str] = []
    if isinstance(raw_entries, Mapping) and "entries" in raw_entries:
        raw_entries = raw_entries.get("entries")
    if not isinstance(raw_entries, list):
        errors.append(
            format_validation_message("entries", "Script", "must be a list of entry objects.")
        )
        return (), errors

    entries: List[SchemaEntry] = []
    for idx, raw in enumerate(raw_entries):
        entry = _convert_entry(raw, (idx,), errors)
        if entry is not None:
            entries.append(entry)
    return tuple(entries), errors


def entry_to_data(entry: SchemaEntry) -> Dict[str, Any]:
    if isinstance(entry, Narrative):
        return {"type": ENTRY_NARRATIVE, "text": entry.text}
    if isinstance(entry, Scene):
        return {"type": ENTRY_SCENE, "label": entry.label}
    if isinstance(entry, Jump):
        return {"type": ENTRY_JUMP, "target": entry.target}
    if isinstance(entry, Option):
        data: Dict[str, Any] = {
            "type": ENTRY_OPTION,
            "text": entry.text,
            "then": [entry_to_data(child) for child in entry.then],
        }
        if entry.aliases:
            data["aliases"] = list(entry.aliases)
        return data
    raise TypeError(f"Unsupported schema entry: {entry!r}")


def schema_to_data(schema: Sequence[SchemaEntry]) -> List[Dict[str, Any]]:
    return [entry_to_data(entry) for entry in schema]
