"""writefile process-level settings.

Settings files:
  - Global:  ~/.config/writefile/config.json
  - Project: .writefile.json (current directory)

Merge order: global → project → environment variables (highest priority).
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from .config import WriteConfig
from .writer import split_temp_pattern, write_text

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = Path.home() / ".config" / "writefile" / "writefile.log"


class Scope(str, Enum):
    GLOBAL = "global"
    PROJECT = "project"


# Mapping: settings key → env var name
_ENV_OVERRIDES: list[tuple[str, str]] = [
    ("directory_mode", "WRITEFILE_DIRECTORY_MODE"),
    ("file_mode", "WRITEFILE_FILE_MODE"),
    ("temp_pattern", "WRITEFILE_TEMP_PATTERN"),
    ("directory_owner", "WRITEFILE_DIRECTORY_OWNER"),
    ("file_owner", "WRITEFILE_FILE_OWNER"),
    ("sync", "WRITEFILE_SYNC"),
    ("debug", "WRITEFILE_DEBUG"),
    ("log_file", "WRITEFILE_LOG_FILE"),
]

_MODE_KEYS = ("directory_mode", "file_mode")
_OWNER_KEYS = ("directory_owner", "file_owner")
_BOOL_KEYS = ("sync", "debug")

KNOWN_KEYS = [key for key, _ in _ENV_OVERRIDES]


def config_path(scope: Scope) -> Path:
    if scope is Scope.PROJECT:
        return Path.cwd() / ".writefile.json"
    return Path.home() / ".config" / "writefile" / "config.json"


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


def parse_mode(value: Any) -> int:
    """Parse permission bits from an int or an octal string like "0750"."""
    if isinstance(value, bool):
        raise ValueError(f"invalid mode: {value!r}")
    if isinstance(value, int):
        mode = value
    else:
        text = str(value).strip().lower()
        if text.startswith("0o"):
            text = text[2:]
        mode = int(text, 8)
    if not 0 <= mode <= 0o7777:
        raise ValueError(f"mode out of range: {value!r}")
    return mode


def parse_owner(value: Any) -> tuple[int, int]:
    """Parse "uid:gid" into a pair of ints."""
    uid, sep, gid = str(value).partition(":")
    if not sep:
        raise ValueError(f"owner must be uid:gid, got {value!r}")
    return int(uid), int(gid)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def load_settings() -> Dict[str, Any]:
    """Load merged settings: global → project → env vars."""
    merged: Dict[str, Any] = {**_read_json(config_path(Scope.GLOBAL))}
    merged.update(_read_json(config_path(Scope.PROJECT)))

    # Environment variables override everything
    _apply_env_overrides(merged)

    return merged


def load_raw_settings(scope: Scope) -> Dict[str, Any]:
    """Load settings for a specific scope without merge/env overrides."""
    return _read_json(config_path(scope))


def _apply_env_overrides(merged: Dict[str, Any]) -> None:
    for key, env_var in _ENV_OVERRIDES:
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            validate_value(key, val)
        except ValueError:
            logger.warning("Invalid %s value %r; ignoring", env_var, val)
            continue
        merged[key] = val


def validate_value(key: str, value: Any) -> Any:
    """Parse *value* for settings *key*, raising ValueError if it is unusable."""
    if key in _MODE_KEYS:
        return parse_mode(value)
    if key in _OWNER_KEYS:
        return parse_owner(value)
    if key in _BOOL_KEYS:
        return parse_bool(value)
    if key == "temp_pattern":
        split_temp_pattern(str(value))
        return value
    if key not in KNOWN_KEYS:
        raise ValueError(f"unknown setting: {key}")
    return value


def save_settings(data: Dict[str, Any], scope: Scope) -> Path:
    """Save settings to the specified scope."""
    path = config_path(scope)
    cfg = WriteConfig(directory=path.parent.resolve(), file_mode=0o600)
    write_text(cfg, path.name, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
    return path


def build_config(directory: str | os.PathLike[str], settings: Dict[str, Any], **overrides: Any) -> WriteConfig:
    """Turn merged settings into a WriteConfig for *directory*.

    Keyword overrides win over settings; ``None`` overrides are ignored.
    """
    values = dict(settings)
    values.update({k: v for k, v in overrides.items() if v is not None})

    kwargs: Dict[str, Any] = {}
    for key in _MODE_KEYS:
        if values.get(key) not in (None, ""):
            kwargs[key] = parse_mode(values[key])
    if values.get("directory_owner"):
        kwargs["directory_uid"], kwargs["directory_gid"] = parse_owner(values["directory_owner"])
        kwargs["ensure_directory_ownership"] = True
    if values.get("file_owner"):
        kwargs["file_uid"], kwargs["file_gid"] = parse_owner(values["file_owner"])
        kwargs["ensure_file_ownership"] = True
    if values.get("temp_pattern"):
        kwargs["temp_pattern"] = str(values["temp_pattern"])
    if "sync" in values:
        kwargs["sync"] = parse_bool(values["sync"])

    return WriteConfig(directory=os.path.abspath(os.fspath(directory)), **kwargs)


def log_file(settings: Dict[str, Any]) -> Path:
    configured = settings.get("log_file")
    if configured:
        return Path(str(configured)).expanduser()
    return DEFAULT_LOG_FILE
