"""Error taxonomy for writefile.

Ordinary errors derive from ``WriteFileError`` and are meant to be handled by
callers. ``FatalError`` derives from ``BaseException`` so that a plain
``except Exception`` never swallows it: it marks misuse or a filesystem state
that cleanup could not repair.
"""

from __future__ import annotations


class WriteFileError(Exception):
    """Base exception for recoverable writefile errors."""
    pass


class InvalidName(WriteFileError, ValueError):
    """Raised when a file name is absolute or escapes the configured directory."""

    def __init__(self, name: str) -> None:
        super().__init__(f"writefile: invalid name: {name!r}")
        self.name = name


class InvalidTempPattern(WriteFileError, ValueError):
    """Raised when a temp pattern contains a path separator."""

    def __init__(self, pattern: str) -> None:
        super().__init__(f"writefile: temp pattern contains path separator: {pattern!r}")
        self.pattern = pattern


class FatalError(BaseException):
    """Base for failures that must not be handled as runtime conditions."""
    pass


class PreconditionViolation(FatalError):
    """Programming error: the caller passed a configuration that can never work."""
    pass


class CleanupError(FatalError):
    """The temp file could not be closed or removed after a write.

    Carries the temp path; the underlying ``OSError`` is chained as ``__cause__``.
    """

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"writefile: cleanup of {path} failed: {message}")
        self.path = path
