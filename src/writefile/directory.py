"""Directory Guarantor: make sure a directory exists with the configured mode and owner."""

from __future__ import annotations

import errno
import logging
import os
import stat

from .config import WriteConfig, checked_directory
from .errors import PreconditionViolation
from .ownership import ensure_owner

logger = logging.getLogger(__name__)

_ROOT = os.path.abspath(os.sep)


def _require_dir(path: str, st: os.stat_result) -> None:
    if not stat.S_ISDIR(st.st_mode):
        raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)


def ensure_directory(config: WriteConfig) -> None:
    """Ensure ``config.directory`` exists with exactly the configured mode.

    Missing components are created from the root downward. An existing
    directory whose permission bits differ in any way is chmod-ed, and when
    ``ensure_directory_ownership`` is set its owner is corrected as well.
    Running it twice in a row changes nothing the second time.
    """
    directory = checked_directory(config)

    try:
        st = os.stat(directory)
    except FileNotFoundError:
        ensure_directory_if_not_exist(config)
        st = os.stat(directory)
    _require_dir(directory, st)

    mode = config.effective_directory_mode
    if stat.S_IMODE(st.st_mode) != mode:
        logger.debug("chmod %s %o -> %o", directory, stat.S_IMODE(st.st_mode), mode)
        os.chmod(directory, mode)

    if config.ensure_directory_ownership:
        ensure_owner(directory, config.directory_uid, config.directory_gid)


def ensure_directory_if_not_exist(config: WriteConfig) -> None:
    """Create ``config.directory`` and any missing ancestors.

    An existing directory is left alone: mode and owner are only applied to
    directories created here. Losing a creation race to another process
    counts as success.

    Directories are created with ``os.mkdir`` and so pass through the process
    umask: a configured mode with bits the umask clears (0o777 under 022)
    comes out narrower. ``ensure_directory`` chmods its target afterwards;
    ancestors created on the way and directories created by ``write_file``
    keep the masked mode.
    """
    directory = checked_directory(config)
    if directory == _ROOT:
        return

    try:
        st = os.stat(directory)
    except FileNotFoundError:
        pass
    else:
        _require_dir(directory, st)
        return

    ensure_directory_if_not_exist(parent_config(config))

    try:
        os.mkdir(directory, config.effective_directory_mode)
        logger.debug("mkdir %s (%o)", directory, config.effective_directory_mode)
    except FileExistsError:
        logger.debug("mkdir %s: created concurrently", directory)

    if config.ensure_directory_ownership:
        ensure_owner(directory, config.directory_uid, config.directory_gid)


def parent_config(config: WriteConfig) -> WriteConfig:
    """Copy of *config* addressing the parent directory."""
    directory = checked_directory(config)
    parent = os.path.dirname(directory)
    if parent == directory:
        raise PreconditionViolation(f"writefile: {directory!r} has no parent directory")
    return config.with_directory(parent)
