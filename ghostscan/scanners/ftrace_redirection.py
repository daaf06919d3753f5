"""Detect ftrace tracers or filters attached to security-critical paths."""

from __future__ import annotations

from pathlib import Path

from ghostscan.outcome import ScanError

TRACEFS_ROOTS = ("/sys/kernel/tracing", "/sys/kernel/debug/tracing")
SENSITIVE_PREFIXES = ("sys_", "vfs_", "tcp_", "security_")


def is_sensitive_symbol(symbol: str) -> bool:
    """Whether a kernel symbol lies on a syscall, VFS, TCP or LSM path."""
    return symbol.startswith(SENSITIVE_PREFIXES)


def collect_sensitive_matches(content: str) -> list[str]:
    """Return the sorted, unique sensitive symbols of an ftrace filter."""
    matches = set()
    for line in content.splitlines():
        tokens = line.split()
        if tokens and is_sensitive_symbol(tokens[0]):
            matches.add(tokens[0])
    return sorted(matches)


def evaluate(tracer: str, filter_content: str) -> str | None:
    """Judge the active tracer and the filter contents."""
    tracer = tracer.strip()
    matches = collect_sensitive_matches(filter_content)
    redirected = tracer not in ("nop", "")
    if not redirected and not matches:
        return None
    listed = ",".join(matches) if matches else "none"
    return f"tracer={tracer}, sensitive_matches={listed}"


def _find_tracefs_root() -> Path:
    for root in TRACEFS_ROOTS:
        path = Path(root)
        if path.exists():
            return path
    raise ScanError("failed to locate tracefs: tracefs not mounted in expected locations")


def run() -> str | None:
    """Inspect tracefs for redirected critical functions."""
    root = _find_tracefs_root()
    try:
        tracer = (root / "current_tracer").read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read current_tracer: {err}") from err
    try:
        filter_content = (root / "set_ftrace_filter").read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read set_ftrace_filter: {err}") from err
    return evaluate(tracer, filter_content)