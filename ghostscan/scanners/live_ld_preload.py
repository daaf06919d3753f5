"""Detect live LD_PRELOAD settings pointing at deleted or writable libraries."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable
from pathlib import Path

from ghostscan.outcome import ScanError

PROC_ROOT = "/proc"

_PID = re.compile(r"[+-]?[0-9]+")
_PREFIX = b"LD_PRELOAD="


def preload_paths(environ: bytes) -> list[str]:
    """Return every path named by LD_PRELOAD in a NUL-separated environment block."""
    paths: list[str] = []
    for entry in environ.split(b"\0"):
        if entry.startswith(_PREFIX):
            value = entry[len(_PREFIX):].decode("utf-8", errors="replace")
            paths.extend(value.split(":"))
    return paths


def _parent(path: str) -> str | None:
    if path.strip("/") == "":
        return None
    return os.path.dirname(path.rstrip("/"))


def _anomalies(paths: Iterable[str]) -> list[str]:
    found: set[str] = set()
    for path in paths:
        if not path:
            continue
        if "(deleted)" in path:
            found.add("mapped_from=deleted")
            continue
        if os.path.isabs(path) and not os.path.exists(path):
            found.add(f"missing={path}")
            continue
        parent = _parent(path)
        if parent is None:
            continue
        try:
            meta = os.stat(parent)
        except OSError:
            continue
        if meta.st_mode & 0o002:
            found.add(f"mapped_from=writable_dir({parent})")
    return sorted(found)


def _inspect(pid: int) -> str | None:
    proc_dir = Path(PROC_ROOT, str(pid))
    paths = preload_paths((proc_dir / "environ").read_bytes())
    if not paths:
        return None
    try:
        comm = (proc_dir / "comm").read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        comm = "unknown"
    anomalies = _anomalies(paths)
    if not anomalies:
        return None
    return f"pid={pid}, comm={comm}, LD_PRELOAD={'|'.join(paths)}, {', '.join(anomalies)}"


def run() -> str | None:
    """Report processes whose LD_PRELOAD names missing, deleted or exposed libraries."""
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