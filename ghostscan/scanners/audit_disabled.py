"""Detect a disabled audit subsystem or one that is losing events."""

from __future__ import annotations

import re
from pathlib import Path

from ghostscan.outcome import ScanError

AUDIT_ENABLED_PATH = "/proc/sys/kernel/audit_enabled"
AUDIT_STATUS_PATH = "/proc/net/audit"

_UNSIGNED = re.compile(r"\+?[0-9]+")


def _parse_unsigned(text: str) -> int | None:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value < 2**64 else None


def evaluate_audit(enabled: str, audit_status: str | None) -> str | None:
    """Judge the audit state from ``audit_enabled`` and ``/proc/net/audit``."""
    findings = []
    if enabled.strip() == "0":
        findings.append("enabled=0")

    if audit_status is not None:
        for token in audit_status.split():
            if token.startswith("lost="):
                rest = token[len("lost="):]
                if rest != "0":
                    findings.append(f"lost_events={rest}")
            if token.startswith("backlog="):
                value = _parse_unsigned(token[len("backlog="):])
                if value is not None and value < 8:
                    findings.append("backlog_limit_tiny=true")

    return ", ".join(findings) if findings else None


def run() -> str | None:
    """Check whether kernel auditing is off or dropping records."""
    try:
        enabled = Path(AUDIT_ENABLED_PATH).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read audit_enabled: {err}") from err

    try:
        status = Path(AUDIT_STATUS_PATH).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        status = None

    return evaluate_audit(enabled, status)