"""Atomic File Writer: publish fully written files with a single rename."""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from typing import IO, Callable

from .config import WriteConfig, checked_directory
from .directory import ensure_directory_if_not_exist
from .errors import CleanupError, InvalidName, InvalidTempPattern
from .ownership import ensure_owner

logger = logging.getLogger(__name__)

WriteOperation = Callable[[IO[bytes]], object]


def split_temp_pattern(pattern: str) -> tuple[str, str]:
    """Split a temp pattern into (prefix, suffix) around its last ``*``.

    Without a ``*`` the random part goes at the end.
    """
    if os.sep in pattern or (os.altsep and os.altsep in pattern):
        raise InvalidTempPattern(pattern)
    prefix, star, suffix = pattern.rpartition("*")
    if not star:
        return pattern, ""
    return prefix, suffix


def _is_descendant(path: str, directory: str) -> bool:
    prefix = directory if directory.endswith(os.sep) else directory + os.sep
    return path.startswith(prefix)


def _discard(f: IO[bytes]) -> None:
    """Close *f* without flushing; bytes still buffered are dropped.

    Closing the raw file first turns the buffered close into a no-op, so a
    write that already failed is not replayed.
    """
    f.raw.close()
    f.close()


class _PendingFile:
    """A temp file that is removed on exit unless it was published."""

    def __init__(self, directory: str, pattern: str) -> None:
        self.directory = directory
        self.prefix, self.suffix = split_temp_pattern(pattern)
        self.file: IO[bytes] | None = None
        self.name: str | None = None

    def __enter__(self) -> "_PendingFile":
        return self

    def create(self) -> None:
        fd, self.name = tempfile.mkstemp(suffix=self.suffix, prefix=self.prefix, dir=self.directory)
        try:
            self.file = os.fdopen(fd, "w+b")
        except BaseException:
            os.close(fd)
            raise
        logger.debug("created temp file %s", self.name)

    def publish(self, target: str, *, sync: bool = False) -> None:
        f, self.file = self.file, None
        try:
            f.flush()
            if sync:
                os.fsync(f.fileno())
        except BaseException:
            _discard(f)
            raise
        f.close()
        os.rename(self.name, target)
        logger.debug("renamed %s -> %s", self.name, target)
        self.name = None

    def __exit__(self, exc_type, exc, tb) -> bool:
        close_error: OSError | None = None
        if self.file is not None:
            f, self.file = self.file, None
            try:
                _discard(f)
            except OSError as e:
                close_error = e
        if self.name is not None:
            name, self.name = self.name, None
            try:
                os.remove(name)
                logger.debug("removed temp file %s", name)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise CleanupError(name, str(e)) from e
            if close_error is not None:
                raise CleanupError(name, str(close_error)) from close_error
        return False


def write_file(config: WriteConfig, name: str | os.PathLike[str], op: WriteOperation) -> str:
    """Write ``config.directory/name`` atomically and return its path.

    *op* receives the open temp file, positioned at offset zero, and aborts
    the write by raising; its exception propagates unchanged and the final
    name is left untouched. Names with subdirectories create them as needed
    but may never resolve outside ``config.directory``.

    Raises:
        InvalidName: *name* is absolute or escapes the directory.
        OSError: any filesystem failure, unwrapped.
        CleanupError: the temp file could not be cleaned up.
    """
    directory = checked_directory(config)
    name = os.fspath(name)
    if os.path.isabs(name):
        raise InvalidName(name)

    full_path = os.path.normpath(os.path.join(directory, name))
    parent = os.path.dirname(full_path)
    if full_path == directory:
        raise InvalidName(name)
    if parent != directory:
        if not _is_descendant(parent, directory):
            raise InvalidName(name)
        return write_file(config.with_directory(parent), os.path.basename(full_path), op)

    with _PendingFile(directory, config.effective_temp_pattern) as pending:
        try:
            pending.create()
        except FileNotFoundError:
            ensure_directory_if_not_exist(config)
            pending.create()

        st = os.fstat(pending.file.fileno())
        mode = config.effective_file_mode
        if stat.S_IMODE(st.st_mode) != mode:
            os.chmod(pending.name, mode)

        if config.ensure_file_ownership:
            ensure_owner(pending.name, config.file_uid, config.file_gid)

        op(pending.file)
        pending.publish(full_path, sync=config.sync)

    return full_path


def write_bytes(config: WriteConfig, name: str | os.PathLike[str], data: bytes) -> str:
    return write_file(config, name, lambda f: f.write(data))


def write_text(
    config: WriteConfig,
    name: str | os.PathLike[str],
    text: str,
    encoding: str = "utf-8",
) -> str:
    return write_bytes(config, name, text.encode(encoding))
