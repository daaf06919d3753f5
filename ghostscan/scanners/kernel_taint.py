"""Detect a tainted kernel whose module-related taint has no visible cause."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from ghostscan.outcome import ScanError

TAINTED_PATH = "/proc/sys/kernel/tainted"
SYS_MODULE_PATH = "/sys/module"
PROC_MODULES_PATH = "/proc/modules"

_UNSIGNED = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class TaintFlag:
    """One bit of the kernel taint mask."""

    bit: int
    letter: str
    description: str
    module_related: bool


TAINT_FLAGS = (
    TaintFlag(0, "P", "proprietary module was loaded", True),
    TaintFlag(1, "F", "module was force-loaded", True),
    TaintFlag(2, "S", "SMP with unsupported hardware", False),
    TaintFlag(3, "R", "module was forcibly removed", True),
    TaintFlag(4, "M", "machine check occurred", False),
    TaintFlag(5, "B", "kernel detected bad page", False),
    TaintFlag(6, "U", "user forced taint", False),
    TaintFlag(7, "D", "kernel oops or BUG", False),
    TaintFlag(8, "A", "ACPI table override", False),
    TaintFlag(9, "W", "kernel issued warning", False),
    TaintFlag(10, "C", "staging driver loaded", True),
    TaintFlag(11, "I", "firmware workaround in effect", False),
    TaintFlag(12, "O", "out-of-tree module loaded", True),
    TaintFlag(13, "E", "unsigned module loaded", True),
    TaintFlag(14, "L", "soft lockup or similar condition", False),
    TaintFlag(15, "K", "livepatch applied", False),
    TaintFlag(16, "X", "auxiliary taint flag", False),
    TaintFlag(17, "T", "test kernel or test taint", False),
)


def _is_ascii_letter(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()


def parse_proc_module_taints(content: str) -> dict[str, set[str]]:
    """Map taint letters to module names from ``/proc/modules`` content."""
    taints: dict[str, set[str]] = {}
    for line in content.splitlines():
        tokens = line.split()
        if not tokens:
            continue
        module = tokens[0]
        start = line.find("(")
        if start < 0:
            continue
        end = line.find(")", start + 1)
        if end < 0:
            continue
        for ch in line[start + 1:end]:
            if _is_ascii_letter(ch):
                taints.setdefault(ch, set()).add(module)
    return taints


def build_report(taint_value: int, module_taints: Mapping[str, Iterable[str]]) -> str | None:
    """Describe module-related taint flags that no visible module explains."""
    active = [flag for flag in TAINT_FLAGS if taint_value & (1 << flag.bit)]
    missing = [
        flag for flag in active if flag.module_related and not module_taints.get(flag.letter)
    ]
    if not missing:
        return None

    letters = "".join(flag.letter for flag in active) or "none"
    described = ", ".join(f"{flag.letter} ({flag.description})" for flag in missing)
    message = f"tainted={taint_value} active_flags={letters} missing_module_flags={described}"

    if module_taints:
        visible = sorted(
            f"{letter} -> {'|'.join(sorted(modules))}" for letter, modules in module_taints.items()
        )
        message += f" visible={'; '.join(visible)}"
    return message


def _collect_module_taints() -> dict[str, set[str]]:
    taints: dict[str, set[str]] = {}
    with os.scandir(SYS_MODULE_PATH) as entries:
        for entry in entries:
            try:
                content = Path(entry.path, "taint").read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            for ch in content.strip():
                if _is_ascii_letter(ch):
                    taints.setdefault(ch, set()).add(entry.name)

    proc = Path(PROC_MODULES_PATH).read_text(encoding="utf-8")
    for letter, modules in parse_proc_module_taints(proc).items():
        taints.setdefault(letter, set()).update(modules)
    return taints


def run() -> str | None:
    """Compare the kernel taint mask with taint visible on loaded modules."""
    try:
        raw = Path(TAINTED_PATH).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read {TAINTED_PATH}: {err}") from err

    text = raw.strip()
    if not _UNSIGNED.fullmatch(text) or int(text) >= 2**64:
        raise ScanError(f"failed to parse tainted value '{raw}': invalid digit found in string")
    taint_value = int(text)
    if taint_value == 0:
        return None

    try:
        module_taints = _collect_module_taints()
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to collect module taints: {err}") from err

    return build_report(taint_value, module_taints)