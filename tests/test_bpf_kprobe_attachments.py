import json
import subprocess
from unittest import mock

import pytest

from ghostscan.outcome import ScanError
from ghostscan.scanners import bpf_kprobe_attachments
from ghostscan.scanners.bpf_kprobe_attachments import (
    analyze_links,
    extract_target_symbol,
    is_sensitive_symbol,
)


@pytest.mark.parametrize(
    "symbol, expected",
    [("sys_open", True), ("vfs_read", True), ("tcp_v4_rcv", True),
     ("security_file_open", True), ("do_exit", False), ("unknown", False)],
)
def test_is_sensitive_symbol(symbol, expected):
    assert is_sensitive_symbol(symbol) is expected


def test_extract_target_prefers_candidate_keys():
    assert extract_target_symbol({"func": "  vfs_read ", "target_name": ""}) == "vfs_read"


def test_extract_target_falls_back_to_func_like_keys():
    assert extract_target_symbol({"my_symbol_name": "sys_kill"}) == "sys_kill"


def test_extract_target_none():
    assert extract_target_symbol({"type": "kprobe"}) is None
    assert extract_target_symbol(["not", "a", "map"]) is None


def test_analyze_links_reports_sensitive_kprobes():
    links = [
        {"id": 7, "prog_id": 12, "type": "KPROBE_MULTI", "func": "sys_open"},
        {"id": 3, "prog_id": 4, "type": "perf_event", "attach_type": "kretprobe",
         "func": "tcp_connect"},
        {"id": 5, "type": "kprobe", "func": "do_exit"},
        {"id": 6, "type": "tracing", "func": "sys_read"},
    ]
    assert analyze_links(links) == [
        "link_id=3, prog_id=4, attach=kretprobe, target=tcp_connect",
        "link_id=7, prog_id=12, attach=kprobe, target=sys_open",
    ]


def test_analyze_links_unknown_ids():
    result = analyze_links([{"type": "kprobe", "func": "vfs_write", "id": -1}])
    assert result == ["link_id=unknown, prog_id=unknown, attach=kprobe, target=vfs_write"]


def test_analyze_links_non_list():
    assert analyze_links({"type": "kprobe"}) == []


def _completed(stdout=b"", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=b"")


def test_run_without_bpftool():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("bpftool")):
        with pytest.raises(ScanError, match="bpftool not available"):
            bpf_kprobe_attachments.run()


def test_run_failed_exit():
    with mock.patch("subprocess.run", side_effect=[_completed(), _completed(returncode=1)]):
        with pytest.raises(ScanError, match="bpftool link show exited with"):
            bpf_kprobe_attachments.run()


def test_run_bad_json():
    with mock.patch("subprocess.run", side_effect=[_completed(), _completed(b"{oops")]):
        with pytest.raises(ScanError, match="failed to parse bpftool link output"):
            bpf_kprobe_attachments.run()


def test_run_reports_findings():
    payload = json.dumps([{"id": 1, "prog_id": 2, "type": "kprobe", "func": "sys_open"}])
    with mock.patch("subprocess.run", side_effect=[_completed(), _completed(payload.encode())]):
        assert bpf_kprobe_attachments.run() == "link_id=1, prog_id=2, attach=kprobe, target=sys_open"


def test_run_clean():
    with mock.patch("subprocess.run", side_effect=[_completed(), _completed(b"[]")]):
        assert bpf_kprobe_attachments.run() is None