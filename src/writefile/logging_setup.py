"""Logging for the writefile command line.

The library modules only create loggers; handlers are attached here, once,
by whichever entrypoint owns the process.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

_PACKAGE = "writefile"

_FILE_FORMAT = "%(asctime)s %(process)d [%(levelname)s] %(name)s: %(message)s"
_STDERR_FORMAT = "writefile: %(message)s"
_ROTATE_AT = 512 * 1024
_KEEP = 5


def _file_handler(log_file: Path) -> logging.Handler | None:
    """Rotating handler for *log_file*, or None if it cannot be opened."""
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=_ROTATE_AT, backupCount=_KEEP, encoding="utf-8"
        )
    except OSError as exc:
        # the logger is not usable yet
        print(f"writefile: WARNING: cannot log to {log_file}: {exc}", file=sys.stderr)
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    return handler


def _stderr_handler(debug: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    handler.setFormatter(logging.Formatter(_STDERR_FORMAT))
    return handler


def configure(log_file: Path | None, *, debug: bool = False, reconfigure: bool = False) -> None:
    """Route ``writefile.*`` records to *log_file* and stderr.

    A second call is a no-op unless *reconfigure* is set. With
    ``log_file=None`` only the stderr handler is installed; stderr shows
    warnings, or everything when *debug* is set.
    """
    pkg_logger = logging.getLogger(_PACKAGE)
    if pkg_logger.handlers:
        if not reconfigure:
            return
        for old in list(pkg_logger.handlers):
            pkg_logger.removeHandler(old)
            old.close()

    pkg_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    handlers = [_stderr_handler(debug)]
    if log_file is not None:
        fh = _file_handler(log_file)
        if fh is not None:
            handlers.insert(0, fh)
    for handler in handlers:
        pkg_logger.addHandler(handler)
    pkg_logger.propagate = False
