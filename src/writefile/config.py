"""Per-write configuration value."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass

from .errors import PreconditionViolation

DEFAULT_DIRECTORY_MODE = 0o755
DEFAULT_FILE_MODE = 0o644
DEFAULT_TEMP_PATTERN = ".temp*~"


@dataclass(frozen=True)
class WriteConfig:
    """Where and how files are written.

    Mode and pattern fields left as ``None`` (or ``0``) fall back to the
    module defaults. Ownership fields only matter when the matching
    ``ensure_*_ownership`` flag is set.
    """

    directory: str | os.PathLike[str]
    directory_mode: int | None = None
    directory_uid: int = 0
    directory_gid: int = 0
    ensure_directory_ownership: bool = False
    file_mode: int | None = None
    file_uid: int = 0
    file_gid: int = 0
    ensure_file_ownership: bool = False
    temp_pattern: str | None = None
    sync: bool = False

    @property
    def effective_directory_mode(self) -> int:
        return self.directory_mode or DEFAULT_DIRECTORY_MODE

    @property
    def effective_file_mode(self) -> int:
        return self.file_mode or DEFAULT_FILE_MODE

    @property
    def effective_temp_pattern(self) -> str:
        return self.temp_pattern or DEFAULT_TEMP_PATTERN

    def with_directory(self, directory: str | os.PathLike[str]) -> "WriteConfig":
        """Return a copy targeting *directory*, sharing every other setting."""
        return dataclasses.replace(self, directory=directory)


def checked_directory(config: WriteConfig) -> str:
    """Return the normalized absolute directory of *config*.

    Raises PreconditionViolation for an empty or relative directory.
    """
    directory = os.fspath(config.directory)
    if not directory:
        raise PreconditionViolation('writefile: directory must not be ""')
    if not os.path.isabs(directory):
        raise PreconditionViolation(f"writefile: directory must be absolute: {directory!r}")
    return os.path.normpath(directory)
