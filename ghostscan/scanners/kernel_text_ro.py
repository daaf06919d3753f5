"""Best-effort check that kernel text is mapped read-only."""

from __future__ import annotations

import gzip
import zlib
from pathlib import Path

from ghostscan.outcome import ScanError

RODATA_PATH = "/sys/kernel/rodata_enabled"
CONFIG_PATH = "/proc/config.gz"

_NOT_RO = "region=kernel_text, perms_detected!=RO"


def rodata_finding(value: str) -> str | None:
    """Interpret the contents of ``rodata_enabled``."""
    trimmed = value.strip()
    if trimmed == "0" or trimmed in ("n", "N"):
        return _NOT_RO
    return None


def config_finding(config: str) -> str | None:
    """Interpret a kernel build configuration."""
    if "CONFIG_STRICT_KERNEL_RWX=y" in config:
        return None
    if "CONFIG_STRICT_KERNEL_RWX=n" in config:
        return f"{_NOT_RO} (CONFIG_STRICT_KERNEL_RWX=n)"
    return None


def _read_gzip(path: Path) -> str | None:
    try:
        with gzip.open(path, "rb") as handle:
            return handle.read().decode("utf-8")
    except (OSError, EOFError, zlib.error, UnicodeDecodeError):
        return None


def run() -> str | None:
    """Check rodata status, falling back to the kernel config."""
    rodata = Path(RODATA_PATH)
    if rodata.exists():
        try:
            value = rodata.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise ScanError(f"failed to read {rodata}: {err}") from err
        return rodata_finding(value)

    config_path = Path(CONFIG_PATH)
    if config_path.exists():
        config = _read_gzip(config_path)
        if config is not None:
            return config_finding(config)

    return None