"""Detect large executable anonymous mappings in daemons without a JIT."""

from __future__ import annotations

import itertools
import os
import re
from pathlib import Path

from ghostscan.outcome import ScanError

PROC_ROOT = "/proc"
MIN_SIZE = 65536
MAX_PROCESSES = 256

_PID = re.compile(r"[+-]?[0-9]+")
_SIGNED = re.compile(r"[+-]?[0-9]+")
_HEX = re.compile(r"\+?[0-9a-fA-F]+")
_ANON_PATHS = ("[anon]", "[heap]", "[stack]")
_JIT_MARKERS = ("libjvm", "v8", "jit")


def _parse_hex_u64(text: str) -> int | None:
    if not _HEX.fullmatch(text):
        return None
    value = int(text, 16)
    return value if value < 2**64 else None


def mapping_size(range_text: str) -> int | None:
    """Size in bytes of a ``start-end`` hexadecimal address range."""
    parts = range_text.split("-")
    if len(parts) < 2:
        return None
    start = _parse_hex_u64(parts[0])
    end = _parse_hex_u64(parts[1])
    if start is None or end is None:
        return None
    return max(end - start, 0)


def anon_rx_regions(maps: str) -> list[tuple[str, int]]:
    """Return ``(range, size)`` for large private executable anonymous mappings."""
    regions = []
    for line in maps.splitlines():
        parts = line.split()
        if len(parts) < 6:
            continue
        range_text, perms, path = parts[0], parts[1], parts[5]
        if "x" not in perms or "s" in perms:
            continue
        if path and path not in _ANON_PATHS:
            continue
        size = mapping_size(range_text)
        if size is not None and size >= MIN_SIZE:
            regions.append((range_text, size))
    return regions


def _tty_nr(stat: str) -> int | None:
    fields = stat.split()
    if len(fields) < 7:
        return None
    text = fields[6]
    if _SIGNED.fullmatch(text) and -(2**63) <= int(text) < 2**63:
        return int(text)
    return 0


def _command(pid: int) -> str:
    try:
        return Path(PROC_ROOT, str(pid), "comm").read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return "unknown"


def _inspect(pid: int) -> list[str]:
    proc_dir = Path(PROC_ROOT, str(pid))
    if _tty_nr((proc_dir / "stat").read_text(encoding="utf-8")) != 0:
        return []
    maps = (proc_dir / "maps").read_text(encoding="utf-8")
    if any(marker in maps for marker in _JIT_MARKERS):
        return []
    return [
        f"pid={pid}, comm={_command(pid)}, anon_rx={range_text} size={size}B likely_non_jit=true"
        for range_text, size in anon_rx_regions(maps)
    ]


def run() -> str | None:
    """Inspect the first processes listed in /proc for large anonymous RX regions."""
    try:
        with os.scandir(PROC_ROOT) as entries:
            names = [entry.name for entry in itertools.islice(entries, MAX_PROCESSES)]
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