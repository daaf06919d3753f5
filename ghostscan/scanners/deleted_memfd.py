"""Detect processes running from deleted binaries or memfd objects."""

from __future__ import annotations

import os
import re
from pathlib import Path

from ghostscan.outcome import ScanError, summarize

PROC_ROOT = "/proc"

_PID = re.compile(r"[+-]?[0-9]+")


def is_deleted_or_memfd(exe: str) -> bool:
    """Whether an executable link target points at a deleted file or a memfd."""
    return "(deleted)" in exe or "memfd:" in exe


def format_cmdline(raw: bytes) -> str:
    """Render a NUL-separated command line as space-separated text."""
    return " ".join(
        segment.decode("utf-8", errors="replace") for segment in raw.split(b"\0") if segment
    )


def _readlink_or_unknown(path: Path) -> str:
    try:
        return os.readlink(path)
    except OSError:
        return "unknown"


def _inspect(pid: int) -> str | None:
    proc_dir = Path(PROC_ROOT, str(pid))
    exe = _readlink_or_unknown(proc_dir / "exe")
    if not is_deleted_or_memfd(exe):
        return None

    comm = (proc_dir / "comm").read_text(encoding="utf-8").strip()
    cwd = _readlink_or_unknown(proc_dir / "cwd")
    try:
        raw = (proc_dir / "cmdline").read_bytes()
    except OSError:
        raw = b""
    return f"pid={pid}, comm={comm}, exe={exe}, cwd={cwd}, cmdline={format_cmdline(raw)}"


def _pids() -> list[int]:
    with os.scandir(PROC_ROOT) as entries:
        names = [entry.name for entry in entries]
    return [int(name) for name in names if _PID.fullmatch(name) and -(2**31) <= int(name) < 2**31]


def run() -> str | None:
    """Scan every process for a deleted or memfd-backed executable."""
    try:
        pids = _pids()
    except OSError as err:
        raise ScanError(f"failed to read /proc: {err}") from err

    findings = []
    errors = []
    for pid in pids:
        try:
            record = _inspect(pid)
        except (OSError, UnicodeDecodeError) as err:
            errors.append(f"pid={pid}: {err}")
            continue
        if record is not None:
            findings.append(record)
    return summarize(findings, errors)