"""Tests for writefile.writer."""

from __future__ import annotations

import errno
import io
import os
import signal
import stat
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import patch

import pytest

from writefile.config import WriteConfig
from writefile.errors import CleanupError, InvalidName, InvalidTempPattern
from writefile.writer import _discard, split_temp_pattern, write_bytes, write_file, write_text

try:
    import resource
except ImportError:  # pragma: no cover
    resource = None


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def _temp_files(directory: Path) -> list[Path]:
    return sorted(directory.rglob(".temp*~"))


def _snapshot(root: Path) -> list[str]:
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


class _Boom(Exception):
    pass


class _FailingRaw(io.RawIOBase):
    def writable(self):
        return True

    def write(self, b):
        raise OSError(errno.ENOSPC, "No space left on device")


@contextmanager
def _file_size_limit(limit: int):
    old_handler = signal.signal(signal.SIGXFSZ, signal.SIG_IGN)
    soft, hard = resource.getrlimit(resource.RLIMIT_FSIZE)
    resource.setrlimit(resource.RLIMIT_FSIZE, (limit, hard))
    try:
        yield
    finally:
        resource.setrlimit(resource.RLIMIT_FSIZE, (soft, hard))
        signal.signal(signal.SIGXFSZ, old_handler)


class TestWriteFile:
    def test_creates_directory_and_publishes_content(self, tmp_path: Path):
        directory = tmp_path / "data" / "app"
        cfg = WriteConfig(directory=str(directory), directory_mode=0o750)

        path = write_file(cfg, "out.txt", lambda f: f.write(b"hello"))

        assert path == str(directory / "out.txt")
        assert _mode(directory) == 0o750
        assert _mode(tmp_path / "data") == 0o750
        assert (directory / "out.txt").read_bytes() == b"hello"
        assert _temp_files(directory) == []

    def test_default_file_mode_is_0644(self, tmp_path: Path):
        write_file(WriteConfig(directory=str(tmp_path)), "f", lambda f: f.write(b"x"))
        assert _mode(tmp_path / "f") == 0o644

    def test_custom_file_mode(self, tmp_path: Path):
        write_file(WriteConfig(directory=str(tmp_path), file_mode=0o600), "secret", lambda f: f.write(b"x"))
        assert _mode(tmp_path / "secret") == 0o600

    def test_overwrites_existing_file(self, tmp_path: Path):
        (tmp_path / "out.txt").write_text("old")
        write_text(WriteConfig(directory=str(tmp_path)), "out.txt", "new")
        assert (tmp_path / "out.txt").read_text() == "new"

    def test_callback_gets_handle_at_offset_zero(self, tmp_path: Path):
        seen: dict[str, object] = {}

        def _op(f):
            seen["offset"] = f.tell()
            seen["writable"] = f.writable()
            f.write(b"abc")

        write_file(WriteConfig(directory=str(tmp_path)), "out", _op)
        assert seen == {"offset": 0, "writable": True}

    def test_final_name_absent_while_callback_runs(self, tmp_path: Path):
        def _op(f):
            assert not (tmp_path / "out").exists()
            assert len(_temp_files(tmp_path)) == 1
            f.write(b"data")

        write_file(WriteConfig(directory=str(tmp_path)), "out", _op)
        assert (tmp_path / "out").read_bytes() == b"data"

    def test_existing_directory_mode_not_touched(self, tmp_path: Path):
        tmp_path.chmod(0o777)
        write_file(WriteConfig(directory=str(tmp_path), directory_mode=0o700), "f", lambda f: None)
        assert _mode(tmp_path) == 0o777


class TestFailedWrites:
    def test_callback_error_propagates_and_nothing_is_published(self, tmp_path: Path):
        err = _Boom("abort")

        def _op(f):
            f.write(b"partial")
            raise err

        with pytest.raises(_Boom) as exc_info:
            write_file(WriteConfig(directory=str(tmp_path)), "out.txt", _op)

        assert exc_info.value is err
        assert not (tmp_path / "out.txt").exists()
        assert _temp_files(tmp_path) == []

    def test_callback_error_keeps_previous_content(self, tmp_path: Path):
        (tmp_path / "out.txt").write_text("original")

        def _op(f):
            f.write(b"should not appear")
            raise _Boom()

        with pytest.raises(_Boom):
            write_file(WriteConfig(directory=str(tmp_path)), "out.txt", _op)

        assert (tmp_path / "out.txt").read_text() == "original"
        assert _temp_files(tmp_path) == []

    def test_rename_failure_removes_temp_file(self, tmp_path: Path):
        (tmp_path / "taken").mkdir()
        with pytest.raises(OSError):
            write_bytes(WriteConfig(directory=str(tmp_path)), "taken", b"x")
        assert _temp_files(tmp_path) == []
        assert (tmp_path / "taken").is_dir()

    def test_temp_file_already_gone_is_tolerated(self, tmp_path: Path):
        def _op(f):
            for p in _temp_files(tmp_path):
                p.unlink()
            raise _Boom()

        with pytest.raises(_Boom):
            write_file(WriteConfig(directory=str(tmp_path)), "out", _op)

    def test_unexpected_cleanup_error_is_fatal(self, tmp_path: Path):
        def _op(f):
            raise _Boom()

        with patch("os.remove", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(CleanupError) as exc_info:
                write_file(WriteConfig(directory=str(tmp_path)), "out", _op)

        assert isinstance(exc_info.value.__cause__, PermissionError)
        assert os.path.basename(exc_info.value.path).startswith(".temp")
        for p in _temp_files(tmp_path):
            p.unlink()

    def test_cleanup_error_escapes_except_exception(self, tmp_path: Path):
        def _op(f):
            raise _Boom()

        def _attempt():
            try:
                write_file(WriteConfig(directory=str(tmp_path)), "out", _op)
            except Exception:
                return "swallowed"

        with patch("os.remove", side_effect=OSError(5, "I/O error")):
            with pytest.raises(CleanupError):
                _attempt()


    @pytest.mark.skipif(resource is None, reason="needs RLIMIT_FSIZE")
    def test_write_error_in_callback_stays_ordinary(self, tmp_path: Path):
        (tmp_path / "out.txt").write_text("original")

        def _op(f):
            f.write(b"x" * 4000)
            f.flush()

        with _file_size_limit(1024):
            with pytest.raises(OSError) as exc_info:
                write_file(WriteConfig(directory=str(tmp_path)), "out.txt", _op)

        assert exc_info.value.errno == errno.EFBIG
        assert (tmp_path / "out.txt").read_text() == "original"
        assert _temp_files(tmp_path) == []

    @pytest.mark.skipif(resource is None, reason="needs RLIMIT_FSIZE")
    def test_unflushed_bytes_dropped_when_callback_aborts(self, tmp_path: Path):
        def _op(f):
            f.write(b"x" * 4000)
            raise _Boom()

        with _file_size_limit(1024):
            with pytest.raises(_Boom):
                write_file(WriteConfig(directory=str(tmp_path)), "out.txt", _op)

        assert not (tmp_path / "out.txt").exists()
        assert _temp_files(tmp_path) == []

    def test_discard_does_not_replay_failed_writes(self):
        f = io.BufferedWriter(_FailingRaw())
        f.write(b"pending")
        with pytest.raises(OSError):
            f.flush()

        _discard(f)

        assert f.closed


class TestNames:
    @pytest.mark.parametrize("name", ["../escape.txt", "a/../../escape.txt", "..", "", "."])
    def test_escaping_names_rejected_without_writes(self, tmp_path: Path, name: str):
        directory = tmp_path / "root"
        with pytest.raises(InvalidName) as exc_info:
            write_file(WriteConfig(directory=str(directory)), name, lambda f: f.write(b"x"))

        assert exc_info.value.name == name
        assert _snapshot(tmp_path) == []

    def test_absolute_name_rejected(self, tmp_path: Path):
        with pytest.raises(InvalidName):
            write_file(WriteConfig(directory=str(tmp_path)), str(tmp_path / "abs.txt"), lambda f: None)
        assert _snapshot(tmp_path) == []

    def test_nested_name_creates_subdirectories(self, tmp_path: Path):
        cfg = WriteConfig(directory=str(tmp_path), directory_mode=0o710)
        path = write_bytes(cfg, "a/b/c.txt", b"nested")

        assert path == str(tmp_path / "a" / "b" / "c.txt")
        assert (tmp_path / "a" / "b" / "c.txt").read_bytes() == b"nested"
        assert _mode(tmp_path / "a") == 0o710
        assert _mode(tmp_path / "a" / "b") == 0o710
        assert _temp_files(tmp_path) == []

    def test_dot_segments_inside_directory_allowed(self, tmp_path: Path):
        write_bytes(WriteConfig(directory=str(tmp_path)), "a/../b.txt", b"ok")
        assert (tmp_path / "b.txt").read_bytes() == b"ok"
        assert not (tmp_path / "a").exists()

    def test_sibling_prefix_is_not_a_descendant(self, tmp_path: Path):
        directory = tmp_path / "app"
        with pytest.raises(InvalidName):
            write_bytes(WriteConfig(directory=str(directory)), "../app-other/x", b"x")


class TestTempPattern:
    def test_split_on_last_star(self):
        assert split_temp_pattern(".temp*~") == (".temp", "~")
        assert split_temp_pattern("a*b*c") == ("a*b", "c")
        assert split_temp_pattern("wip") == ("wip", "")

    def test_separator_rejected(self):
        with pytest.raises(InvalidTempPattern):
            split_temp_pattern("sub/x*")

    def test_custom_pattern_used_for_temp_file(self, tmp_path: Path):
        names: list[str] = []

        def _op(f):
            names.extend(p.name for p in tmp_path.iterdir())

        write_file(WriteConfig(directory=str(tmp_path), temp_pattern="tmp-*.part"), "out", _op)

        assert len(names) == 1
        assert names[0].startswith("tmp-") and names[0].endswith(".part")
        assert [p.name for p in tmp_path.iterdir()] == ["out"]

    def test_invalid_pattern_writes_nothing(self, tmp_path: Path):
        with pytest.raises(InvalidTempPattern):
            write_bytes(WriteConfig(directory=str(tmp_path), temp_pattern="x/*"), "out", b"x")
        assert _snapshot(tmp_path) == []


class TestOwnershipAndSync:
    def test_file_ownership_applied_to_temp_file(self, tmp_path: Path):
        uid, gid = os.getuid() + 1, os.getgid() + 1
        cfg = WriteConfig(directory=str(tmp_path), ensure_file_ownership=True, file_uid=uid, file_gid=gid)

        with patch("os.chown") as chown:
            write_bytes(cfg, "owned", b"x")

        chown.assert_called_once()
        path, got_uid, got_gid = chown.call_args[0]
        assert os.path.dirname(path) == str(tmp_path)
        assert os.path.basename(path).startswith(".temp")
        assert (got_uid, got_gid) == (uid, gid)

    def test_matching_file_owner_not_chowned(self, tmp_path: Path):
        cfg = WriteConfig(
            directory=str(tmp_path),
            ensure_file_ownership=True,
            file_uid=os.getuid(),
            file_gid=os.getgid(),
        )
        with patch("os.chown") as chown:
            write_bytes(cfg, "owned", b"x")
        chown.assert_not_called()

    def test_sync_fsyncs_before_rename(self, tmp_path: Path):
        with patch("os.fsync") as fsync:
            write_bytes(WriteConfig(directory=str(tmp_path), sync=True), "synced", b"x")
        fsync.assert_called_once()
        assert (tmp_path / "synced").read_bytes() == b"x"


class TestConcurrentWriters:
    def test_same_name_last_rename_wins(self, tmp_path: Path):
        cfg = WriteConfig(directory=str(tmp_path / "shared"))
        payloads = [f"writer-{i}".encode() * 100 for i in range(16)]

        with ThreadPoolExecutor(max_workers=8) as ex:
            list(ex.map(lambda data: write_bytes(cfg, "out", data), payloads))

        assert (tmp_path / "shared" / "out").read_bytes() in payloads
        assert _temp_files(tmp_path) == []
