"""Detect BPF kprobe links attached to sensitive kernel symbols."""

from __future__ import annotations

import json
import subprocess
from typing import Any

from ghostscan.outcome import ScanError

SENSITIVE_PREFIXES = ("sys_", "vfs_", "tcp_", "security_")
_CANDIDATE_KEYS = ("target_name", "func", "function", "kprobe", "attach_name")
_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def _describe_status(returncode: int) -> str:
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"


def _str_field(obj: Any, key: str) -> str | None:
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, str):
            return value
    return None


def _u64_field(obj: Any, key: str) -> str:
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 2**64:
            return str(value)
    return "unknown"


def is_sensitive_symbol(symbol: str) -> bool:
    """Whether a kernel symbol lies on a syscall, VFS, TCP or LSM path."""
    return symbol.startswith(SENSITIVE_PREFIXES)


def extract_target_symbol(link: Any) -> str | None:
    """Find the symbol a BPF link is attached to."""
    if not isinstance(link, dict):
        return None
    for key in _CANDIDATE_KEYS:
        value = _str_field(link, key)
        if value is not None and value.strip():
            return value.strip()
    for key in sorted(link):
        if "func" in key or "symbol" in key:
            value = link[key]
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def analyze_links(links: Any) -> list[str]:
    """Return sorted findings for ``bpftool -j link show`` output."""
    findings = []
    if not isinstance(links, list):
        return findings
    for link in links:
        link_type = (_str_field(link, "type") or "").translate(_ASCII_LOWER)
        attach_type = (_str_field(link, "attach_type") or "").translate(_ASCII_LOWER)
        is_kprobe = "kprobe" in link_type or "kprobe" in attach_type
        is_kretprobe = "kretprobe" in link_type or "kretprobe" in attach_type
        if not is_kprobe and not is_kretprobe:
            continue

        target = extract_target_symbol(link) or "unknown"
        if not is_sensitive_symbol(target):
            continue

        kind = "kretprobe" if is_kretprobe else "kprobe"
        findings.append(
            f"link_id={_u64_field(link, 'id')}, prog_id={_u64_field(link, 'prog_id')}, "
            f"attach={kind}, target={target}"
        )
    findings.sort()
    return findings


def run() -> str | None:
    """List BPF links via bpftool and report sensitive kprobes."""
    try:
        subprocess.run(["bpftool", "--version"], capture_output=True, check=False)
    except OSError as err:
        raise ScanError("bpftool not available to inspect BPF links") from err

    try:
        result = subprocess.run(
            ["bpftool", "-j", "link", "show"], capture_output=True, check=False
        )
    except OSError as err:
        raise ScanError(f"failed to execute bpftool link show: {err}") from err

    if result.returncode != 0:
        raise ScanError(f"bpftool link show exited with {_describe_status(result.returncode)}")

    try:
        links = json.loads(result.stdout)
    except ValueError as err:
        raise ScanError(f"failed to parse bpftool link output: {err}") from err

    findings = analyze_links(links)
    return "\n".join(findings) if findings else None