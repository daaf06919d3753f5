import os

import pytest

from ghostscan.outcome import ScanError
from ghostscan.scanners import local_port_backdoors
from ghostscan.scanners.local_port_backdoors import is_suspicious_exe, parse_listeners, run

HEADER = "  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode\n"
LISTEN = "   0: 00000000:1F90 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 12345 1 0000000000000000 100 0 0 10 0\n"
ESTABLISHED = "   1: 0100007F:9C40 0100007F:1F90 01 00000000:00000000 00:00000000 00000000  1000        0 23456 1 0000000000000000 20 4 30 10 -1\n"


@pytest.fixture
def fake_proc(tmp_path, monkeypatch):
    root = tmp_path / "proc"
    root.mkdir()
    monkeypatch.setattr(local_port_backdoors, "PROC_ROOT", str(root))
    return root


def _process(root, pid, exe, comm="nc", tcp=None):
    proc_dir = root / str(pid)
    proc_dir.mkdir()
    os.symlink(exe, proc_dir / "exe")
    os.symlink("/", proc_dir / "cwd")
    if comm is not None:
        (proc_dir / "comm").write_text(comm + "\n")
    if tcp is not None:
        (proc_dir / "net").mkdir()
        (proc_dir / "net" / "tcp").write_text(tcp)
    return proc_dir


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/tmp/x", True),
        ("/home/user/bin/agent", True),
        ("/usr/bin/sshd (deleted)", True),
        ("/usr/sbin/sshd", False),
        ("unknown", False),
    ],
)
def test_is_suspicious_exe(path, expected):
    assert is_suspicious_exe(path) is expected


def test_parse_listeners_keeps_only_listen_state():
    assert parse_listeners(HEADER + LISTEN + ESTABLISHED) == ["00000000:1F90"]


def test_parse_listeners_skips_header_and_short_lines():
    assert parse_listeners(LISTEN + "short 0A line\n") == []


def test_suspicious_listener_reported(fake_proc):
    _process(fake_proc, 31, "/tmp/ghost/backdoor", tcp=HEADER + LISTEN)
    assert run() == (
        "pid=31, comm=nc, laddr=00000000:1F90, exe_path=/tmp/ghost/backdoor, "
        "cwd=/, exe_mtime=0"
    )


def test_ipv6_sockets_joined(fake_proc):
    proc_dir = _process(fake_proc, 32, "/tmp/ghost/backdoor", tcp=HEADER + LISTEN)
    (proc_dir / "net" / "tcp6").write_text(HEADER + LISTEN)
    result = run()
    assert "laddr=00000000:1F90|00000000:1F90" in result


def test_suspicious_without_listeners_is_clean(fake_proc):
    _process(fake_proc, 33, "/tmp/ghost/backdoor", tcp=HEADER + ESTABLISHED)
    assert run() is None


def test_system_binary_ignored(fake_proc):
    _process(fake_proc, 34, "/usr/sbin/sshd", tcp=HEADER + LISTEN)
    assert run() is None


def test_unreadable_comm_becomes_error(fake_proc):
    _process(fake_proc, 35, "/tmp/ghost/backdoor", comm=None, tcp=HEADER + LISTEN)
    with pytest.raises(ScanError, match="pid=35"):
        run()


def test_errors_appended_to_findings(fake_proc):
    _process(fake_proc, 36, "/tmp/ghost/a", tcp=HEADER + LISTEN)
    _process(fake_proc, 37, "/tmp/ghost/b", comm=None, tcp=HEADER + LISTEN)
    lines = run().splitlines()
    assert lines[0].startswith("pid=36, ")
    assert lines[-1].startswith("collection_errors=pid=37: ")


def test_missing_proc_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(local_port_backdoors, "PROC_ROOT", str(tmp_path / "absent"))
    with pytest.raises(ScanError, match="failed to read /proc"):
        run()