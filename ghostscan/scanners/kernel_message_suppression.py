"""Detect settings that hide kernel messages."""

from __future__ import annotations

import re
from pathlib import Path

from ghostscan.outcome import ScanError

DMESG_RESTRICT_PATH = "/proc/sys/kernel/dmesg_restrict"
PRINTK_PATH = "/proc/sys/kernel/printk"

_SIGNED = re.compile(r"[+-]?[0-9]+")


def _parse_i32(text: str) -> int | None:
    if not _SIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if -(2**31) <= value < 2**31 else None


def analyze_settings(restrict: str, printk: str) -> str | None:
    """Judge ``dmesg_restrict`` and the ``printk`` level line."""
    findings = []
    if restrict.strip() != "1":
        findings.append("dmesg_restrict!=1")

    levels = printk.split()
    if levels:
        level = _parse_i32(levels[0])
        if level is not None and level > 7:
            findings.append("printk_console_level_silenced=true")

    return ", ".join(findings) if findings else None


def run() -> str | None:
    """Check dmesg restriction and the console log level."""
    try:
        restrict = Path(DMESG_RESTRICT_PATH).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read dmesg_restrict: {err}") from err
    try:
        printk = Path(PRINTK_PATH).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read printk levels: {err}") from err
    return analyze_settings(restrict, printk)