"""Detect kernel command-line flags that weaken auditing, lockdown or IMA."""

from __future__ import annotations

import re
from pathlib import Path

from ghostscan.outcome import ScanError

CMDLINE_PATH = "/proc/cmdline"

_WEAKENING_FLAGS = ("audit=0", "lockdown=none", "ima_appraise_tcb=0")
_NON_SPACE = re.compile(r"\S*")


def analyze_cmdline(cmdline: str) -> str | None:
    """Return the weakening flags present in a kernel command line."""
    cmdline = cmdline.strip()
    findings = [f"flag={flag}" for flag in _WEAKENING_FLAGS if flag in cmdline]

    index = cmdline.find("lsm=")
    if index >= 0:
        value = _NON_SPACE.match(cmdline, index + len("lsm=")).group()
        if value:
            findings.append(f"flag=lsm={value}")

    return ", ".join(findings) if findings else None


def run() -> str | None:
    """Inspect the running kernel's command line."""
    try:
        content = Path(CMDLINE_PATH).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read /proc/cmdline: {err}") from err
    return analyze_cmdline(content)