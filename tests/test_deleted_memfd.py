import os

import pytest

from ghostscan.outcome import ScanError
from ghostscan.scanners import deleted_memfd
from ghostscan.scanners.deleted_memfd import format_cmdline, is_deleted_or_memfd


@pytest.mark.parametrize(
    "exe, expected",
    [
        ("/usr/bin/evil (deleted)", True),
        ("/memfd:payload (deleted)", True),
        ("memfd:x", True),
        ("/usr/bin/bash", False),
        ("unknown", False),
    ],
)
def test_is_deleted_or_memfd(exe, expected):
    assert is_deleted_or_memfd(exe) is expected


def test_format_cmdline_joins_segments():
    assert format_cmdline(b"evil\0--flag\0\0x\0") == "evil --flag x"


def test_format_cmdline_empty():
    assert format_cmdline(b"") == ""


def _process(root, pid, exe, comm=None, cwd=None, cmdline=None):
    proc = root / str(pid)
    proc.mkdir()
    os.symlink(exe, proc / "exe")
    if comm is not None:
        (proc / "comm").write_text(comm)
    if cwd is not None:
        os.symlink(cwd, proc / "cwd")
    if cmdline is not None:
        (proc / "cmdline").write_bytes(cmdline)


def test_run_reports_deleted_binary(monkeypatch, tmp_path):
    _process(tmp_path, 42, "/usr/bin/evil (deleted)", "evil\n", "/root", b"evil\0--flag\0")
    _process(tmp_path, 7, "/usr/bin/bash", "bash\n", "/", b"bash\0")
    (tmp_path / "self").mkdir()
    monkeypatch.setattr(deleted_memfd, "PROC_ROOT", str(tmp_path))
    assert deleted_memfd.run() == (
        "pid=42, comm=evil, exe=/usr/bin/evil (deleted), cwd=/root, cmdline=evil --flag"
    )


def test_run_missing_cwd_and_cmdline(monkeypatch, tmp_path):
    _process(tmp_path, 3, "/memfd:x (deleted)", "x\n")
    monkeypatch.setattr(deleted_memfd, "PROC_ROOT", str(tmp_path))
    assert deleted_memfd.run() == "pid=3, comm=x, exe=/memfd:x (deleted), cwd=unknown, cmdline="


def test_run_only_errors_raises(monkeypatch, tmp_path):
    _process(tmp_path, 9, "/usr/bin/evil (deleted)")
    monkeypatch.setattr(deleted_memfd, "PROC_ROOT", str(tmp_path))
    with pytest.raises(ScanError, match="pid=9: "):
        deleted_memfd.run()


def test_run_missing_proc(monkeypatch, tmp_path):
    monkeypatch.setattr(deleted_memfd, "PROC_ROOT", str(tmp_path / "absent"))
    with pytest.raises(ScanError, match="failed to read /proc"):
        deleted_memfd.run()