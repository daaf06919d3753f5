import pytest

from ghostscan.outcome import ScanError
from ghostscan.scanners import ftrace_redirection
from ghostscan.scanners.ftrace_redirection import (
    collect_sensitive_matches,
    evaluate,
    is_sensitive_symbol,
    run,
)


@pytest.mark.parametrize("symbol", ["sys_open", "vfs_read", "tcp_sendmsg", "security_file_open"])
def test_sensitive_symbols(symbol):
    assert is_sensitive_symbol(symbol) is True


@pytest.mark.parametrize("symbol", ["do_sys_open", "schedule", ""])
def test_non_sensitive_symbols(symbol):
    assert is_sensitive_symbol(symbol) is False


def test_matches_are_unique_sorted_first_tokens():
    content = "vfs_read\n  tcp_sendmsg [mod]\nschedule\nvfs_read\n\n"
    assert collect_sensitive_matches(content) == ["tcp_sendmsg", "vfs_read"]


def test_nop_tracer_without_matches_is_clean():
    assert evaluate("nop", "schedule\n") is None
    assert evaluate("", "") is None


def test_active_tracer_reported_without_matches():
    assert evaluate("function\n", "") == "tracer=function, sensitive_matches=none"


def test_sensitive_filter_reported_with_nop_tracer():
    assert evaluate("nop", "vfs_read\nsys_open\n") == "tracer=nop, sensitive_matches=sys_open,vfs_read"


def test_run_without_tracefs_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(ftrace_redirection, "TRACEFS_ROOTS", (str(tmp_path / "a"),))
    with pytest.raises(ScanError, match="tracefs"):
        run()


def test_run_uses_first_existing_root(tmp_path, monkeypatch):
    root = tmp_path / "tracing"
    root.mkdir()
    (root / "current_tracer").write_text("nop\n")
    (root / "set_ftrace_filter").write_text("tcp_v4_rcv\n")
    monkeypatch.setattr(
        ftrace_redirection, "TRACEFS_ROOTS", (str(tmp_path / "absent"), str(root))
    )
    assert run() == evaluate("nop", "tcp_v4_rcv\n")
    assert "tcp_v4_rcv" in run()


def test_run_missing_filter_raises(tmp_path, monkeypatch):
    (tmp_path / "current_tracer").write_text("nop\n")
    monkeypatch.setattr(ftrace_redirection, "TRACEFS_ROOTS", (str(tmp_path),))
    with pytest.raises(ScanError, match="set_ftrace_filter"):
        run()