"""Discover OCI runtime ``state.json`` files and parse container states."""

from __future__ import annotations

import errno
import json
import os
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

ROOTS = (
    "/run",
    "/var/run",
    "/var/lib/containers/storage/overlay-containers",
    "/var/lib/docker/containers",
)

_SILENT_ERRNOS = (errno.EACCES, errno.EROFS)


@dataclass
class ContainerMount:
    """A mount inside a container."""

    destination: str
    source: str | None = None
    options: list[str] = field(default_factory=list)


@dataclass
class ContainerState:
    """The runtime state of one container."""

    id: str
    pid: int | None = None
    mounts: list[ContainerMount] = field(default_factory=list)


@dataclass
class ContainerInventory:
    """Every container state found, with the errors met while looking."""

    states: list[ContainerState] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _optional_str(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"field '{key}' must be a string")
    return value


def _parse_mount(raw: Any) -> ContainerMount:
    if not isinstance(raw, dict):
        raise ValueError("mount entry must be an object")
    destination = raw.get("destination")
    if not isinstance(destination, str):
        raise ValueError("mount field 'destination' must be a string")
    options = raw.get("options", [])
    if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
        raise ValueError("mount field 'options' must be a list of strings")
    return ContainerMount(destination, _optional_str(raw, "source"), list(options))


def parse_state(content: str, fallback_id: str) -> ContainerState:
    """Parse a ``state.json`` document; raise ValueError when it is malformed."""
    raw = json.loads(content)
    if not isinstance(raw, dict):
        raise ValueError("state must be a JSON object")

    state_id = _optional_str(raw, "id")
    pid = raw.get("pid")
    if pid is not None and (
        not isinstance(pid, int) or isinstance(pid, bool) or not 0 <= pid < 2**32
    ):
        raise ValueError("field 'pid' must be an unsigned 32-bit integer")

    mounts_raw = raw.get("mounts")
    if mounts_raw is None:
        mounts_raw = []
    if not isinstance(mounts_raw, list):
        raise ValueError("field 'mounts' must be a list")

    return ContainerState(
        id=state_id if state_id is not None else fallback_id,
        pid=pid,
        mounts=[_parse_mount(mount) for mount in mounts_raw],
    )


def _find_state_files(root: Path, limit: int, errors: list[str]) -> list[Path]:
    files = []
    queue = deque([root])
    visited = 0
    while queue:
        if visited >= limit:
            break
        visited += 1
        directory = queue.popleft()
        try:
            with os.scandir(directory) as entries:
                listed = sorted(entries, key=lambda entry: entry.name)
        except OSError as err:
            if err.errno not in _SILENT_ERRNOS:
                errors.append(f"failed to read {directory}: {err}")
            continue

        for entry in listed:
            path = Path(entry.path)
            if path.is_dir():
                if entry.name.startswith("."):
                    continue
                queue.append(path)
            elif entry.name == "state.json":
                files.append(path)
    return files


def collect_container_states(limit: int, roots: Iterable[str] | None = None) -> ContainerInventory:
    """Walk the runtime roots breadth-first, visiting at most ``limit`` directories each."""
    inventory = ContainerInventory()
    files: set[Path] = set()
    for root in ROOTS if roots is None else roots:
        path = Path(root)
        if path.exists():
            files.update(_find_state_files(path, limit, inventory.errors))

    for file in sorted(files):
        try:
            content = file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            inventory.errors.append(f"failed to read {file}: {err}")
            continue
        try:
            inventory.states.append(parse_state(content, str(file)))
        except ValueError as err:
            inventory.errors.append(f"failed to parse {file}: {err}")
    return inventory