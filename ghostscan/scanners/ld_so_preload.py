"""Detect tampering with /etc/ld.so.preload entries."""

from __future__ import annotations

import os
from pathlib import Path

from ghostscan.outcome import ScanError

PRELOAD_PATH = "/etc/ld.so.preload"


def parse_entries(content: str) -> list[str]:
    """Return the non-comment, non-blank entries of a preload file."""
    entries = []
    for line in content.splitlines():
        entry = line.strip()
        if entry and not entry.startswith("#"):
            entries.append(entry)
    return entries


def inspect_entry(entry: str) -> list[str]:
    """Describe what is wrong with one preloaded library."""
    if not os.path.exists(entry):
        return ["exists=false"]
    try:
        meta = os.stat(entry)
    except OSError:
        return []
    parts = []
    if meta.st_mode & 0o002:
        parts.append("parent_writable=true")
    if meta.st_uid != 0:
        parts.append("owner!=root")
    mode = meta.st_mode & 0o777
    if mode != 0o644:
        parts.append(f"mode={mode:o}")
    return parts


def run() -> str | None:
    """Check every library listed in ld.so.preload."""
    try:
        content = Path(PRELOAD_PATH).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read {PRELOAD_PATH}: {err}") from err

    findings = []
    for entry in parse_entries(content):
        parts = inspect_entry(entry)
        if parts:
            findings.append(f"entry={entry}, {', '.join(parts)}")
    return "\n".join(findings) if findings else None