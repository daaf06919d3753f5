"""Detect kernel modules visible in some module listings but not others."""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from pathlib import Path

from ghostscan.outcome import ScanError

PROC_MODULES_PATH = "/proc/modules"
SYS_MODULE_PATH = "/sys/module"
KALLSYMS_PATH = "/proc/kallsyms"


def extract_module_name(line: str) -> str | None:
    """Return the ``[module]`` suffix of a kallsyms line, if any."""
    start = line.rfind("[")
    end = line.rfind("]")
    if start < 0 or end < 0:
        return None
    if end + 1 != len(line) or end < start:
        return None
    module = line[start + 1:end]
    return module or None


def parse_proc_modules(content: str) -> set[str]:
    """Return the module names listed in ``/proc/modules`` content."""
    modules = set()
    for line in content.splitlines():
        tokens = line.split()
        if tokens:
            modules.add(tokens[0])
    return modules


def report_presence(
    collections: Sequence[tuple[str, set[str]]], errors: Sequence[str]
) -> str | None:
    """Compare module sets from several sources and report disagreements.

    A module seen only in sysfs is not reported, since built-in modules
    appear there alone.
    """
    if not collections:
        raise ScanError(f"failed to collect module lists: {'; '.join(errors)}")

    sources = [name for name, _ in collections]
    presence: dict[str, set[str]] = {}
    for name, modules in collections:
        for module in modules:
            presence.setdefault(module, set()).add(name)

    findings = []
    for module, seen_in in presence.items():
        if len(seen_in) >= len(sources):
            continue
        if seen_in == {"sysfs"}:
            continue
        missing = sorted(name for name in sources if name not in seen_in)
        findings.append(f"{module} missing_in={','.join(missing)}")
    findings.sort()

    parts = []
    if findings:
        parts.append("\n".join(findings))
    if errors:
        parts.append(f"collection_errors={', '.join(errors)}")
    return "\n".join(parts) if parts else None


def _collect_proc_modules() -> set[str]:
    return parse_proc_modules(Path(PROC_MODULES_PATH).read_text(encoding="utf-8"))


def _collect_sysfs_modules() -> set[str]:
    with os.scandir(SYS_MODULE_PATH) as entries:
        return {entry.name for entry in entries if entry.is_dir(follow_symlinks=False) and entry.name}


def _collect_kallsyms_modules() -> set[str]:
    modules = set()
    with open(KALLSYMS_PATH, encoding="utf-8") as handle:
        for line in handle:
            name = extract_module_name(line.rstrip("\n"))
            if name is not None:
                modules.add(name)
    return modules


def run() -> str | None:
    """Compare /proc/modules, /sys/module and kallsyms module clusters."""
    collectors: list[tuple[str, Callable[[], set[str]]]] = [
        ("proc_modules", _collect_proc_modules),
        ("sysfs", _collect_sysfs_modules),
        ("kallsyms", _collect_kallsyms_modules),
    ]
    collections = []
    errors = []
    for name, collector in collectors:
        try:
            collections.append((name, collector()))
        except (OSError, UnicodeDecodeError) as err:
            errors.append(f"{name}: {err}")
    return report_presence(collections, errors)