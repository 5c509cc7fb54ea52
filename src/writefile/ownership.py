"""Owner lookup and chown-on-mismatch."""

from __future__ import annotations

import logging
import os
from typing import Callable

from .errors import PreconditionViolation

logger = logging.getLogger(__name__)

OwnerInfo = Callable[[str], tuple[int, int]]


def owner_info(path: str) -> tuple[int, int]:
    """Return the (uid, gid) the filesystem reports for *path*.

    Ownership enforcement is refused outright on platforms without POSIX
    owners instead of being skipped.
    """
    if os.name != "posix":
        raise PreconditionViolation(f"writefile: unable to check ownership of {path} on {os.name}")
    st = os.stat(path)
    return st.st_uid, st.st_gid


def ensure_owner(path: str, uid: int, gid: int, *, info: OwnerInfo = owner_info) -> bool:
    """chown *path* to uid:gid unless it already matches. Returns True if changed."""
    current_uid, current_gid = info(path)
    if current_uid == uid and current_gid == gid:
        return False
    logger.debug("chown %s %d:%d -> %d:%d", path, current_uid, current_gid, uid, gid)
    os.chown(path, uid, gid)
    return True
