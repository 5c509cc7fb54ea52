"""Find and remove temp files abandoned by writers that never reached the rename."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable

from .config import WriteConfig, checked_directory
from .writer import split_temp_pattern

logger = logging.getLogger(__name__)


def _glob_pattern(pattern: str) -> str:
    prefix, suffix = split_temp_pattern(pattern)
    return f"{glob_escape(prefix)}*{glob_escape(suffix)}"


def glob_escape(text: str) -> str:
    # fnmatch has no escape helper; bracket the metacharacters
    return "".join(f"[{c}]" if c in "*?[" else c for c in text)


def find_temp_files(config: WriteConfig, *, recursive: bool = False) -> list[Path]:
    """Paths under ``config.directory`` whose names match the temp pattern."""
    directory = Path(checked_directory(config))
    if not directory.is_dir():
        return []

    pattern = _glob_pattern(config.effective_temp_pattern)
    found: list[Path] = []
    if recursive:
        for root, _dirs, files in os.walk(directory):
            found.extend(Path(root) / f for f in files if fnmatch.fnmatchcase(f, pattern))
    else:
        found.extend(p for p in directory.iterdir() if p.is_file() and fnmatch.fnmatchcase(p.name, pattern))
    return sorted(found)


def remove_temp_files(paths: Iterable[Path]) -> list[Path]:
    """Delete *paths*, skipping ones already gone. Returns what was removed."""
    removed: list[Path] = []
    for path in paths:
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        logger.debug("swept %s", path)
        removed.append(path)
    return removed
