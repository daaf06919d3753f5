"""Detect containers sharing the host PID namespace."""

from __future__ import annotations

import os

from ghostscan.outcome import ScanError, summarize
from ghostscan.scanners.container_utils import collect_container_states

HOST_PID_NS_PATH = "/proc/1/ns/pid"
DIRECTORY_LIMIT = 1024


def run() -> str | None:
    """Compare each container's PID namespace with that of PID 1."""
    try:
        host_ns = os.readlink(HOST_PID_NS_PATH)
    except PermissionError:
        return None
    except OSError as err:
        raise ScanError(f"failed to read host pid ns: {err}") from err

    inventory = collect_container_states(DIRECTORY_LIMIT)
    findings = []
    for state in inventory.states:
        if state.pid is None:
            continue
        try:
            link = os.readlink(f"/proc/{state.pid}/ns/pid")
        except OSError:
            continue
        if link == host_ns:
            findings.append(f"container_id={state.id}, host_pid_ns=true")

    return summarize(findings, inventory.errors)