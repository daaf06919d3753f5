"""Report loaded BPF LSM programs."""

from __future__ import annotations

import json
import subprocess
from typing import Any

from ghostscan.outcome import ScanError

_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def _describe_status(returncode: int) -> str:
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"


def _str_field(obj: Any, key: str, default: str) -> str:
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, str):
            return value
    return default


def _id_field(obj: Any) -> str:
    if isinstance(obj, dict):
        value = obj.get("id")
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 2**64:
            return str(value)
    return "unknown"


def analyze_programs(progs: Any) -> list[str]:
    """Return sorted findings for ``bpftool -j prog show`` output."""
    findings = []
    if not isinstance(progs, list):
        return findings
    for prog in progs:
        prog_type = _str_field(prog, "type", "").translate(_ASCII_LOWER)
        if "lsm" not in prog_type:
            continue
        findings.append(
            f"prog_id={_id_field(prog)}, "
            f"attach_point={_str_field(prog, 'attach_type', 'unknown')}, "
            f"name={_str_field(prog, 'name', 'unknown')}, "
            f"tag={_str_field(prog, 'tag', 'unknown')}"
        )
    findings.sort()
    return findings


def run() -> str | None:
    """List BPF programs via bpftool and report LSM ones."""
    try:
        subprocess.run(["bpftool", "--version"], capture_output=True, check=False)
    except OSError as err:
        raise ScanError("bpftool not available to enumerate BPF programs") from err

    try:
        result = subprocess.run(
            ["bpftool", "-j", "prog", "show"], capture_output=True, check=False
        )
    except OSError as err:
        raise ScanError(f"failed to execute bpftool prog show: {err}") from err

    if result.returncode != 0:
        raise ScanError(f"bpftool prog show exited with {_describe_status(result.returncode)}")

    try:
        progs = json.loads(result.stdout)
    except ValueError as err:
        raise ScanError(f"failed to parse bpftool prog output: {err}") from err

    findings = analyze_programs(progs)
    return "\n".join(findings) if findings else None