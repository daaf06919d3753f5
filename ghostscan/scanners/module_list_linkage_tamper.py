"""Detect inconsistencies in the kernel module list linkage."""

from __future__ import annotations

import os
from pathlib import Path

from ghostscan.outcome import ScanError, summarize

SYS_MODULE_PATH = "/sys/module"
PROC_MODULES_PATH = "/proc/modules"


def parse_proc_modules(content: str) -> list[str]:
    """Return module names from ``/proc/modules`` content, in listed order."""
    return [tokens[0] for tokens in (line.split() for line in content.splitlines()) if tokens]


def _read_sys_modules() -> set[str]:
    with os.scandir(SYS_MODULE_PATH) as entries:
        return {entry.name for entry in entries if entry.is_dir(follow_symlinks=False)}


def _holds_itself(module: str, errors: list[str]) -> bool:
    holders_path = f"{SYS_MODULE_PATH}/{module}/holders"
    try:
        with os.scandir(holders_path) as entries:
            return any(entry.name == module for entry in entries)
    except FileNotFoundError:
        return False
    except OSError as err:
        errors.append(f"{holders_path}: {err}")
        return False


def _finding(module: str, anomaly: str) -> str:
    return (
        f"module_name={module}, this_ptr=unknown, prev_ptr=unknown, "
        f"next_ptr=unknown, anomaly={anomaly}"
    )


def run() -> str | None:
    """Compare /proc/modules against /sys/module and look for self-held modules."""
    try:
        sys_modules = _read_sys_modules()
    except OSError as err:
        raise ScanError(f"failed to read /sys/module: {err}") from err

    errors: list[str] = []
    try:
        proc_modules = parse_proc_modules(Path(PROC_MODULES_PATH).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as err:
        errors.append(f"/proc/modules: {err}")
        proc_modules = []

    findings = [_finding(module, "null_gap") for module in proc_modules if module not in sys_modules]
    findings.extend(
        _finding(module, "self_loop")
        for module in sorted(sys_modules)
        if _holds_itself(module, errors)
    )
    return summarize(findings, errors)