"""Detect cron, anacron and spool jobs that run missing or temporary binaries."""

from __future__ import annotations

import os
from pathlib import Path

from ghostscan.outcome import ScanError, summarize

SYSTEM_CRONTAB = "/etc/crontab"
CRON_D_DIR = "/etc/cron.d"
USER_SPOOL_DIR = "/var/spool/cron"
ANACRONTAB = "/etc/anacrontab"


def evaluate_command(command: str) -> str | None:
    """Label a cron command whose program is missing or lives in a tmp directory."""
    tokens = command.split()
    if not tokens:
        return None
    token = tokens[0]
    if token.startswith("/"):
        if not os.path.exists(token):
            return "target_missing"
        if token.startswith(("/tmp/", "/var/tmp/")):
            return "exec_in_tmp"
    elif "/tmp/" in token:
        return "exec_in_tmp"
    return None


def parse_crontab(content: str, source: str, owner: str, has_user_field: bool) -> list[str]:
    """Return findings for the suspicious jobs of one crontab file."""
    cmd_index = 6 if has_user_field else 5
    findings = []
    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        parts = trimmed.split()
        if len(parts) < cmd_index + 1:
            continue
        spec = " ".join(parts[:cmd_index])
        command = " ".join(parts[cmd_index:])
        label = evaluate_command(command)
        if label is not None:
            findings.append(
                f"owner={owner}, source={source}, spec={spec}, cmd={command}, anomaly={label}"
            )
    return findings


def _parse_file(path: str, owner: str, has_user_field: bool) -> list[str]:
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ScanError(f"failed to read {path}: {err}") from err
    return parse_crontab(content, path, owner, has_user_field)


def _parse_dir(directory: str, has_user_field: bool, missing_ok: bool) -> list[str]:
    try:
        with os.scandir(directory) as entries:
            listed = sorted(entries, key=lambda entry: entry.name)
    except FileNotFoundError as err:
        if missing_ok:
            return []
        raise ScanError(f"failed to read {directory}: {err}") from err
    except OSError as err:
        raise ScanError(f"failed to read {directory}: {err}") from err

    findings = []
    for entry in listed:
        if Path(entry.path).is_file():
            findings.extend(_parse_file(entry.path, entry.name, has_user_field))
    return findings


def run() -> str | None:
    """Scan system crontabs, cron.d, user spools and anacrontab."""
    sources = [
        lambda: _parse_file(SYSTEM_CRONTAB, "system", True),
        lambda: _parse_dir(CRON_D_DIR, True, False),
        lambda: _parse_dir(USER_SPOOL_DIR, False, True),
        lambda: _parse_file(ANACRONTAB, "system", True),
    ]
    findings: list[str] = []
    errors: list[str] = []
    for collect in sources:
        try:
            findings.extend(collect())
        except ScanError as err:
            errors.append(str(err))
    return summarize(findings, errors)