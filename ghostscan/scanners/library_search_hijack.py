"""Detect privileged processes mapping libraries from world-writable directories."""

from __future__ import annotations

import os
import re
from pathlib import Path

from ghostscan.outcome import ScanError

PROC_ROOT = "/proc"
NO_CAPABILITIES = "0000000000000000"

_PID = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"\+?[0-9]+")


def parse_privileges(status: str) -> tuple[int, str]:
    """Return the effective uid and ``CapEff`` mask of ``/proc/<pid>/status`` content."""
    euid = 0
    cap_eff = ""
    for line in status.splitlines():
        if line.startswith("Uid:"):
            fields = line[len("Uid:"):].split()
            if len(fields) > 1:
                text = fields[1]
                euid = int(text) if _UNSIGNED.fullmatch(text) and int(text) < 2**32 else 0
        if line.startswith("CapEff:"):
            cap_eff = line[len("CapEff:"):].strip()
    return euid, cap_eff


def is_privileged(status: str) -> bool:
    """Whether a process runs as root or holds any effective capability."""
    euid, cap_eff = parse_privileges(status)
    return not (euid != 0 and cap_eff == NO_CAPABILITIES)


def _parent(path: str) -> str | None:
    if path.strip("/") == "":
        return None
    return os.path.dirname(path.rstrip("/"))


def _command(pid: int) -> str:
    try:
        return Path(PROC_ROOT, str(pid), "comm").read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return "unknown"


def _inspect(pid: int) -> list[str]:
    proc_dir = Path(PROC_ROOT, str(pid))
    if not is_privileged((proc_dir / "status").read_text(encoding="utf-8")):
        return []

    maps = (proc_dir / "maps").read_text(encoding="utf-8")
    findings = []
    for line in maps.splitlines():
        parts = line.split()
        perms = parts[1] if len(parts) > 1 else ""
        path = parts[5] if len(parts) > 5 else ""
        if not path or path.startswith("[") or "r" not in perms:
            continue
        parent = _parent(path)
        if parent is None:
            continue
        try:
            meta = os.stat(parent)
        except OSError:
            continue
        if meta.st_mode & 0o002:
            findings.append(f"pid={pid}, comm={_command(pid)}, lib={path}, dir_writable=true")
    return findings


def run() -> str | None:
    """Report privileged processes whose libraries sit in world-writable directories."""
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
            findings.extend(_inspect(int(name)))
        except (OSError, UnicodeDecodeError):
            continue
    findings.sort()
    return "\n".join(findings) if findings else None