"""Detect listening processes that run from tmp, home or deleted binaries."""

from __future__ import annotations

import os
import re
from pathlib import Path

from ghostscan.outcome import ScanError, summarize

PROC_ROOT = "/proc"
LISTEN_STATE = "0A"

_PID = re.compile(r"[+-]?[0-9]+")


def is_suspicious_exe(path: str) -> bool:
    """Whether an executable path lies in tmp or home, or has been deleted."""
    return "/tmp/" in path or "/home/" in path or "(deleted)" in path


def parse_listeners(content: str) -> list[str]:
    """Return the local endpoints of listening sockets in ``/proc/net/tcp`` content."""
    listeners = []
    for line in content.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 10 or parts[3] != LISTEN_STATE:
            continue
        listeners.append(parts[1])
    return listeners


def _readlink_or_unknown(path: Path) -> str:
    try:
        return os.readlink(path)
    except OSError:
        return "unknown"


def _mtime(path: str) -> int:
    try:
        value = int(os.stat(path).st_mtime)
    except OSError:
        return 0
    return value if value >= 0 else 0


def _listening_sockets(proc_dir: Path) -> list[str]:
    sockets = []
    for name in ("tcp", "tcp6"):
        try:
            content = (proc_dir / "net" / name).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        sockets.extend(parse_listeners(content))
    return sockets


def _inspect(pid: int) -> str | None:
    proc_dir = Path(PROC_ROOT, str(pid))
    exe = _readlink_or_unknown(proc_dir / "exe")
    if not is_suspicious_exe(exe):
        return None

    comm = (proc_dir / "comm").read_text(encoding="utf-8").strip()
    cwd = _readlink_or_unknown(proc_dir / "cwd")
    mtime = _mtime(exe)
    sockets = _listening_sockets(proc_dir)
    if not sockets:
        return None
    return (
        f"pid={pid}, comm={comm}, laddr={'|'.join(sockets)}, exe_path={exe}, "
        f"cwd={cwd}, exe_mtime={mtime}"
    )


def run() -> str | None:
    """Report listening processes started from suspicious locations."""
    try:
        with os.scandir(PROC_ROOT) as entries:
            names = [entry.name for entry in entries]
    except OSError as err:
        raise ScanError(f"failed to read /proc: {err}") from err

    findings = []
    errors = []
    for name in names:
        if not _PID.fullmatch(name) or not -(2**31) <= int(name) < 2**31:
            continue
        pid = int(name)
        try:
            record = _inspect(pid)
        except (OSError, UnicodeDecodeError) as err:
            errors.append(f"pid={pid}: {err}")
            continue
        if record is not None:
            findings.append(record)
    return summarize(findings, errors)