"""Detect user processes disguised with kernel-thread style names."""

from __future__ import annotations

import os
import re
from pathlib import Path

from ghostscan.outcome import ScanError, summarize

PROC_ROOT = "/proc"

_PID = re.compile(r"[+-]?[0-9]+")


def looks_like_kthread(comm: str) -> bool:
    """Whether a command name is bracketed like a kernel thread."""
    return comm.startswith("[") and comm.endswith("]")


def parse_vm_size(status: str) -> int | None:
    """Return the ``VmSize`` value (in kB) of ``/proc/<pid>/status`` content."""
    for line in status.splitlines():
        if line.startswith("VmSize:"):
            digits = "".join(ch for ch in line[len("VmSize:"):] if ch in "0123456789")
            if digits and int(digits) < 2**64:
                return int(digits)
    return None


def _has_maps(path: Path) -> bool:
    try:
        with open(path, "rb") as handle:
            return bool(handle.read(1))
    except OSError:
        return False


def _inspect(pid: int) -> str | None:
    proc_dir = Path(PROC_ROOT, str(pid))
    comm = (proc_dir / "comm").read_text(encoding="utf-8").strip()
    if not looks_like_kthread(comm):
        return None

    status = (proc_dir / "status").read_text(encoding="utf-8")
    vm_size = parse_vm_size(status) or 0
    if vm_size > 0 or _has_maps(proc_dir / "maps"):
        return f"pid={pid}, comm={comm}, kthread_name_like=true, has_user_mm=true"
    return None


def _pids() -> list[int]:
    with os.scandir(PROC_ROOT) as entries:
        names = [entry.name for entry in entries]
    return [int(name) for name in names if _PID.fullmatch(name) and -(2**31) <= int(name) < 2**31]


def run() -> str | None:
    """Report bracket-named processes that own a user address space."""
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