"""Detect large time gaps in the current boot's journal."""

from __future__ import annotations

import json
import re
import subprocess

from ghostscan.outcome import ScanError

GAP_THRESHOLD_SECS = 3600
_JOURNAL_COMMAND = ["journalctl", "--since=boot", "--output=json", "--no-pager", "-n", "2000"]
_UNSIGNED = re.compile(r"\+?[0-9]+")


def parse_timestamps(output: bytes) -> list[int]:
    """Extract ``__REALTIME_TIMESTAMP`` values from JSON-lines journal output."""
    timestamps = []
    for line in output.split(b"\n"):
        if not line:
            continue
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        if not isinstance(entry, dict):
            continue
        raw = entry.get("__REALTIME_TIMESTAMP")
        if not isinstance(raw, str) or not _UNSIGNED.fullmatch(raw):
            continue
        value = int(raw)
        if value < 2**64:
            timestamps.append(value)
    return timestamps


def find_gaps(timestamps: list[int]) -> list[str]:
    """Describe every gap between consecutive timestamps above the threshold."""
    ordered = sorted(timestamps)
    findings = []
    for start, end in zip(ordered, ordered[1:]):
        gap_secs = (end - start) // 1_000_000
        if gap_secs > GAP_THRESHOLD_SECS:
            findings.append(f"gap_start={start} gap_end={end} gap_secs={gap_secs}")
    findings.sort()
    return findings


def run() -> str | None:
    """Query journalctl and report long silences."""
    try:
        result = subprocess.run(_JOURNAL_COMMAND, capture_output=True, check=False)
    except OSError as err:
        raise ScanError(f"failed to execute journalctl: {err}") from err

    if result.returncode != 0:
        return None

    findings = find_gaps(parse_timestamps(result.stdout))
    return "\n".join(findings) if findings else None