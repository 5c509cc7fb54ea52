"""Atomic, permission- and ownership-controlled file writes."""

from .config import DEFAULT_DIRECTORY_MODE, DEFAULT_FILE_MODE, DEFAULT_TEMP_PATTERN, WriteConfig
from .directory import ensure_directory, ensure_directory_if_not_exist, parent_config
from .errors import (
    CleanupError,
    FatalError,
    InvalidName,
    InvalidTempPattern,
    PreconditionViolation,
    WriteFileError,
)
from .sweep import find_temp_files, remove_temp_files
from .writer import WriteOperation, write_bytes, write_file, write_text

__version__ = "0.1.0"

__all__ = [
    "CleanupError",
    "DEFAULT_DIRECTORY_MODE",
    "DEFAULT_FILE_MODE",
    "DEFAULT_TEMP_PATTERN",
    "FatalError",
    "InvalidName",
    "InvalidTempPattern",
    "PreconditionViolation",
    "WriteConfig",
    "WriteFileError",
    "WriteOperation",
    "ensure_directory",
    "ensure_directory_if_not_exist",
    "find_temp_files",
    "parent_config",
    "remove_temp_files",
    "write_bytes",
    "write_file",
    "write_text",
]
