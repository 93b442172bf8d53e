"""Playthrough records exchanged with the persistence layer."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from branchplay.game import GameState, PlaythroughEntry
from branchplay.script_schema import SchemaEntry, schema_to_data


class PlaythroughError(Exception):
    """Base class for playthrough record failures."""


class PlaythroughCorruptError(PlaythroughError):
    """Raised when a playthrough file cannot be parsed or validated."""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Playthrough:
    position: int
    history: Tuple[PlaythroughEntry, ...] = ()
    game_id: Optional[str] = None
    ended: bool = False
    schema_signature: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "position": self.position,
            "ended": self.ended,
            "history": [
                {"text": entry.text, "is_choice": entry.is_choice} for entry in self.history
            ],
            "schema_signature": self.schema_signature,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Playthrough":
        if not isinstance(data, dict):
            raise PlaythroughCorruptError("Playthrough record was not an object.")
        position = data.get("position")
        if isinstance(position, bool) or not isinstance(position, int):
            raise PlaythroughCorruptError("Missing or invalid 'position'.")
        raw_history = data.get("history", [])
        if not isinstance(raw_history, list):
            raise PlaythroughCorruptError("'history' must be a list.")
        history = []
        for idx, raw in enumerate(raw_history):
            if isinstance(raw, str):
                history.append(PlaythroughEntry(raw))
                continue
            if not isinstance(raw, dict) or not isinstance(raw.get("text"), str):
                raise PlaythroughCorruptError(f"History entry {idx} is malformed.")
            history.append(PlaythroughEntry(raw["text"], bool(raw.get("is_choice", False))))

        kwargs: Dict[str, Any] = {}
        if isinstance(data.get("id"), str):
            kwargs["id"] = data["id"]
        if isinstance(data.get("created_at"), str):
            kwargs["created_at"] = data["created_at"]
        return cls(
            position=position,
            history=tuple(history),
            game_id=data.get("game_id"),
            ended=bool(data.get("ended", False)),
            schema_signature=data.get("schema_signature"),
            **kwargs,
        )


def schema_signature(schema: Sequence[SchemaEntry]) -> Optional[str]:
    try:
        serialized = json.dumps(schema_to_data(schema), sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return None
    return hashlib.sha1(serialized.encode("utf-8")).hexdigest()


def game_state_to_playthrough(
    game_id: Optional[str],
    state: GameState,
    schema: Optional[Sequence[SchemaEntry]] = None,
) -> Playthrough:
    return Playthrough(
        position=state.current_line_idx,
        history=state.history,
        game_id=game_id,
        ended=state.is_ended,
        schema_signature=schema_signature(schema) if schema is not None else None,
    )


def save_playthrough(playthrough: Playthrough, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            json.dump(playthrough.to_dict(), tmp_file, indent=2)
            tmp_file.write("\n")
            tmp_path = Path(tmp_file.name)
        os.replace(str(tmp_path), str(path))
    except OSError as exc:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise PlaythroughError(f"Failed to write playthrough: {exc}") from exc
    return path


def load_playthrough(path: Path | str) -> Playthrough:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError as exc:
        raise PlaythroughError("Playthrough file missing.") from exc
    except json.JSONDecodeError as exc:
        raise PlaythroughCorruptError(f"Invalid JSON: {exc}") from exc
    return Playthrough.from_dict(data)
