"""Settings persistence for Branchplay."""

from __future__ import annotations

import json
import os
import sys
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

_BASE_DIR = Path(__file__).resolve().parent.parent
SETTINGS_PATH = _BASE_DIR / "settings.json"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(maximum, value))


@dataclass
class EngineSettings:
    """Tunable behaviour of the matcher and the play loop."""

    min_keyword_length: int = 1
    auto_select_single_option: bool = True
    free_text: bool = False
    log_level: str = "WARNING"

    def clamp(self) -> "EngineSettings":
        self.min_keyword_length = _clamp(int(self.min_keyword_length), 1, 10)
        self.auto_select_single_option = bool(self.auto_select_single_option)
        self.free_text = bool(self.free_text)

        level = str(self.log_level).upper()
        if level not in LOG_LEVELS:
            level = "WARNING"
        self.log_level = level
        return self

    def copy(self) -> "EngineSettings":
        return EngineSettings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "EngineSettings":
        if not isinstance(data, dict):
            return cls()

        def _as_int(key: str, default: int) -> int:
            try:
                return int(data.get(key, default))
            except (TypeError, ValueError):
                return default

        def _as_bool(key: str, default: bool) -> bool:
            value = data.get(key, default)
            if isinstance(value, bool):
                return value
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in {"true", "1", "yes", "on"}:
                    return True
                if lowered in {"false", "0", "no", "off"}:
                    return False
            return bool(value) if value is not None else default

        settings = cls(
            min_keyword_length=_as_int("min_keyword_length", 1),
            auto_select_single_option=_as_bool("auto_select_single_option", True),
            free_text=_as_bool("free_text", False),
            log_level=str(data.get("log_level", "WARNING")),
        )
        return settings.clamp()


def load_settings(path: Path | str = SETTINGS_PATH) -> EngineSettings:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return EngineSettings()
    except (OSError, json.JSONDecodeError, TypeError):
        return EngineSettings()
    return EngineSettings.from_dict(data)


def save_settings(settings: EngineSettings, path: Path | str = SETTINGS_PATH) -> EngineSettings:
    path = Path(path)
    sanitized = settings.copy().clamp()
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            json.dump(sanitized.to_dict(), tmp_file, indent=2)
            tmp_file.write("\n")
            tmp_path = Path(tmp_file.name)
        os.replace(str(tmp_path), str(path))
    except OSError as exc:
        print(f"[Settings] Failed to save settings: {exc}", file=sys.stderr)
        if tmp_path is not None:
            try:
                tmp_path.unlink()
            except OSError:
                pass
    return sanitized
