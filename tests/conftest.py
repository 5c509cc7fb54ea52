from __future__ import annotations

import logging
import os

import pytest

import tests._path_setup  # noqa: F401


@pytest.fixture(autouse=True)
def _fixed_umask():
    """Directory modes in tests assume the common 022 umask."""
    old = os.umask(0o022)
    yield
    os.umask(old)


@pytest.fixture(autouse=True)
def _clean_logger():
    pkg = logging.getLogger("writefile")
    yield
    for h in pkg.handlers:
        h.close()
    pkg.handlers.clear()
    pkg.setLevel(logging.NOTSET)
    pkg.propagate = True


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """HOME and cwd inside tmp_path, no WRITEFILE_* env leaking in."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("WRITEFILE_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("WRITEFILE_LOG_FILE", str(tmp_path / "logs" / "writefile.log"))
    monkeypatch.chdir(work)
    return home
