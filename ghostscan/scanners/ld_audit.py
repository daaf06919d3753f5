"""Detect LD_AUDIT set in daemons that have no controlling terminal."""

from __future__ import annotations

import os
import re
from pathlib import Path

from ghostscan.outcome import ScanError

PROC_ROOT = "/proc"

_PID = re.compile(r"[+-]?[0-9]+")
_SIGNED = re.compile(r"[+-]?[0-9]+")


def find_env_value(environ: bytes, name: str) -> str | None:
    """Return the first value of ``name`` in a NUL-separated environment block."""
    prefix = f"{name}=".encode()
    for entry in environ.split(b"\0"):
        if entry.startswith(prefix):
            return entry[len(prefix):].decode("utf-8", errors="replace")
    return None


def parse_tty_nr(stat: str) -> int | None:
    """Return the ``tty_nr`` field of ``/proc/<pid>/stat``; None when too short."""
    fields = stat.split()
    if len(fields) < 7:
        return None
    text = fields[6]
    if _SIGNED.fullmatch(text) and -(2**63) <= int(text) < 2**63:
        return int(text)
    return 0


def _inspect(pid: int) -> str | None:
    proc_dir = Path(PROC_ROOT, str(pid))
    audit = find_env_value((proc_dir / "environ").read_bytes(), "LD_AUDIT")
    if audit is None:
        return None
    if parse_tty_nr((proc_dir / "stat").read_text(encoding="utf-8")) != 0:
        return None
    try:
        comm = (proc_dir / "comm").read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        comm = "unknown"
    return f"pid={pid}, comm={comm}, LD_AUDIT={audit}"


def run() -> str | None:
    """Report TTY-less processes whose environment sets LD_AUDIT."""
    try:
        with os.scandir(PROC_ROOT) as entries:
            names = [entry.name for entry in entries]
    except OSError as err:
        raise ScanError(f"failed to read /proc: {err}") from err

    findings = []
    for name in names:
        if not _PID.fullmatch(name) or not -(2**31) <= int(name) < 2**31:
            continue
        try:
            record = _inspect(int(name))
        except (OSError, UnicodeDecodeError):
            continue
        if record is not None:
            findings.append(record)
    findings.sort()
    return "\n".join(findings) if findings else None