"""Detect bind mounts over system paths and a /proc hidden with hidepid=2."""

from __future__ import annotations

from pathlib import Path

from ghostscan.outcome import ScanError

MOUNTINFO_PATH = "/proc/self/mountinfo"
CRITICAL_PATHS = ("/etc", "/bin", "/sbin", "/usr", "/proc")


def analyze_mountinfo(content: str) -> list[str]:
    """Return sorted findings for a mountinfo table."""
    findings = []
    for line in content.splitlines():
        halves = line.split(" - ")
        if len(halves) < 2:
            continue
        prefix_fields = halves[0].split()
        if len(prefix_fields) < 7:
            continue
        mount_point = prefix_fields[4]
        has_bind = "bind" in prefix_fields[6:]

        suffix_fields = halves[1].split()
        if len(suffix_fields) < 3:
            continue
        fstype, super_opts = suffix_fields[0], suffix_fields[2]

        if has_bind:
            for critical in CRITICAL_PATHS:
                if mount_point == critical or mount_point.startswith(f"{critical}/"):
                    findings.append(
                        f"mount_point={mount_point}, covering={critical}, "
                        "anomaly=bind_over_system_path"
                    )

        if fstype == "proc" and "hidepid=2" in super_opts:
            findings.append(
                f"mount_point={mount_point}, covering=/proc, anomaly=hidepid=2_on_/proc"
            )

    findings.sort()
    return findings


def run() -> str | None:
    """Inspect this process's mount table."""
    try:
        content = Path(MOUNTINFO_PATH).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read mountinfo: {err}") from err
    findings = analyze_mountinfo(content)
    return "\n".join(findings) if findings else None