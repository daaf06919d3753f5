"""Detect listening sockets visible to netlink (ss) but not in /proc/net."""

from __future__ import annotations

import ipaddress
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from ghostscan.outcome import ScanError, summarize

PROC_NET_ROOT = "/proc/net"
TCP_LISTEN_STATE = "0A"
EMPTY_OWNERS = "∅"

_UNSIGNED = re.compile(r"\+?[0-9]+")
_HEX = re.compile(r"\+?[0-9a-fA-F]+")
_HEX_BYTE = re.compile(r"[0-9a-fA-F]{2}")
_PID_MARKER = re.compile(r"pid=([0-9]*)")


@dataclass(frozen=True, order=True)
class SocketKey:
    """Identity of a socket: protocol, local and remote endpoint."""

    proto: str
    local: str
    remote: str


@dataclass
class _NetlinkEntry:
    inode: str | None
    pids: list[int]


@dataclass
class _BpfListenerRecord:
    sources: list[str] = field(default_factory=list)
    state: int | None = None


@dataclass
class _BpfListenerSnapshot:
    entries: dict[SocketKey, _BpfListenerRecord] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def _describe_status(returncode: int) -> str:
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"


def _parse_u16(text: str) -> int | None:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value < 2**16 else None


def _parse_hex_u16(text: str) -> int | None:
    if not _HEX.fullmatch(text):
        return None
    value = int(text, 16)
    return value if value < 2**16 else None


def _format_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return f"::ffff:{ip.ipv4_mapped}"
    return str(ip)


def _format_endpoint(ip: ipaddress.IPv4Address | ipaddress.IPv6Address, port: int) -> str:
    if isinstance(ip, ipaddress.IPv6Address):
        return f"[{_format_ip(ip)}]:{port}"
    return f"{_format_ip(ip)}:{port}"


def _parse_ipv4_text(text: str) -> ipaddress.IPv4Address:
    try:
        return ipaddress.IPv4Address(text)
    except ValueError:
        return ipaddress.IPv4Address(0)


def _parse_ipv6_text(text: str) -> ipaddress.IPv6Address:
    if "%" in text:
        return ipaddress.IPv6Address(0)
    try:
        return ipaddress.IPv6Address(text)
    except ValueError:
        return ipaddress.IPv6Address(0)


def normalize_endpoint(raw: str) -> str | None:
    """Normalise an ``ss`` address column to ``addr:port`` form."""
    if raw == "*":
        return "0.0.0.0:0"

    if raw.startswith("["):
        end = raw.rfind("]")
        if end < 0:
            return None
        ip = _parse_ipv6_text(raw[1:end])
        port_text = raw[end + 2:] if end + 2 <= len(raw) else "0"
        port = _parse_u16(port_text) or 0
        return _format_endpoint(ip, port)

    idx = raw.rfind(":")
    if idx >= 0:
        port = _parse_u16(raw[idx + 1:]) or 0
        return _format_endpoint(_parse_ipv4_text(raw[:idx]), port)

    return None


def _hex_bytes(text: str, length: int) -> bytes | None:
    if len(text) != length * 2:
        return None
    chunks = [text[pos:pos + 2] for pos in range(0, len(text), 2)]
    if not all(_HEX_BYTE.fullmatch(chunk) for chunk in chunks):
        return None
    return bytes(int(chunk, 16) for chunk in chunks)


def _parse_proc_ipv4(text: str) -> ipaddress.IPv4Address | None:
    raw = _hex_bytes(text, 4)
    if raw is None:
        return None
    return ipaddress.IPv4Address(raw[::-1])


def _parse_proc_ipv6(text: str) -> ipaddress.IPv6Address | None:
    raw = _hex_bytes(text, 16)
    if raw is None:
        return None
    swapped = b"".join(raw[pos:pos + 4][::-1] for pos in range(0, 16, 4))
    return ipaddress.IPv6Address(swapped)


def parse_proc_endpoint(raw: str, ipv6: bool) -> str | None:
    """Decode a ``/proc/net`` hexadecimal ``ADDR:PORT`` column."""
    parts = raw.split(":")
    if len(parts) < 2:
        return None
    port = _parse_hex_u16(parts[1])
    if port is None:
        return None
    ip = _parse_proc_ipv6(parts[0]) if ipv6 else _parse_proc_ipv4(parts[0])
    if ip is None:
        return None
    return _format_endpoint(ip, port)


def extract_inode(line: str) -> str | None:
    """Return the ``ino:`` value of an ``ss`` line, if any."""
    for token in line.split():
        if token.startswith("ino:"):
            return token[len("ino:"):]
    return None


def extract_pids(line: str) -> list[int]:
    """Return every ``pid=`` number of an ``ss`` line, in order."""
    pids = []
    for match in _PID_MARKER.finditer(line):
        digits = match.group(1)
        if digits and int(digits) < 2**32:
            pids.append(int(digits))
    return pids


def format_owner_pids(pids: list[int]) -> str:
    """Render owning PIDs separated by ``|``, or the empty-set sign."""
    if not pids:
        return EMPTY_OWNERS
    return "|".join(str(pid) for pid in pids)


def parse_ss_output(output: str, proto: str) -> dict[SocketKey, _NetlinkEntry]:
    """Parse headerless ``ss -n -p`` output into sockets keyed by endpoint."""
    sockets: dict[SocketKey, _NetlinkEntry] = {}
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) < 5:
            continue
        local = normalize_endpoint(tokens[3])
        if local is None:
            continue
        remote = normalize_endpoint(tokens[4])
        if remote is None:
            continue
        sockets[SocketKey(proto, local, remote)] = _NetlinkEntry(
            extract_inode(line), extract_pids(line)
        )
    return sockets


def parse_proc_net(content: str, proto: str, ipv6: bool) -> set[SocketKey]:
    """Parse a ``/proc/net/{tcp,udp}[6]`` table; TCP keeps listeners only."""
    keys: set[SocketKey] = set()
    for line in content.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 10:
            continue
        if proto == "tcp" and fields[3] != TCP_LISTEN_STATE:
            continue
        local = parse_proc_endpoint(fields[1], ipv6)
        if local is None:
            continue
        remote = parse_proc_endpoint(fields[2], ipv6)
        if remote is None:
            continue
        keys.add(SocketKey(proto, local, remote))
    return keys


def _collect_bpf_listeners() -> _BpfListenerSnapshot:
    return _BpfListenerSnapshot(
        errors=["BPF listener collection not supported on this platform"]
    )


def _collect_ss(flags: list[str], proto: str) -> dict[SocketKey, _NetlinkEntry]:
    label = "".join(flags)
    try:
        result = subprocess.run(
            ["ss", "-H", "-n", "-a", "-p", *flags], capture_output=True, check=False
        )
    except OSError as err:
        raise ScanError(f"failed to execute ss {label}: {err}") from err
    if result.returncode != 0:
        raise ScanError(f"ss {label} exited with {_describe_status(result.returncode)}")
    return parse_ss_output(result.stdout.decode("utf-8", errors="replace"), proto)


def _collect_proc(proto: str) -> set[SocketKey]:
    keys: set[SocketKey] = set()
    for name, ipv6 in ((proto, False), (f"{proto}6", True)):
        try:
            content = Path(PROC_NET_ROOT, name).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        keys |= parse_proc_net(content, proto, ipv6)
    return keys


def _bpf_segments(record: _BpfListenerRecord) -> list[str]:
    segments = [f"bpf_sources={'|'.join(record.sources)}"]
    if record.state is not None:
        segments.append(f"bpf_state={record.state}")
    return segments


def _compare(
    netlink: dict[SocketKey, _NetlinkEntry],
    proc: set[SocketKey],
    bpf_entries: dict[SocketKey, _BpfListenerRecord],
) -> list[str]:
    findings = []
    for key, entry in sorted(netlink.items()):
        if key in proc:
            continue
        record = bpf_entries.get(key)
        segments = [f"proto={key.proto}", f"laddr={key.local}", f"raddr={key.remote}"]
        seen_by = ["netlink"]
        if record is not None:
            seen_by.append("bpf")
            segments.extend(_bpf_segments(record))
        segments.append(f"seen_by={'|'.join(seen_by)}")
        missing = ["proc"] if record is not None else ["proc", "bpf"]
        segments.append(f"missing={'|'.join(missing)}")
        segments.append(f"inode={entry.inode if entry.inode is not None else 'unknown'}")
        segments.append(f"owner_pids={format_owner_pids(entry.pids)}")
        findings.append(", ".join(segments))

    for key, record in sorted(bpf_entries.items()):
        if key in netlink:
            continue
        proc_seen = key in proc
        segments = [f"proto={key.proto}", f"laddr={key.local}", f"raddr={key.remote}"]
        seen_by = ["bpf", "proc"] if proc_seen else ["bpf"]
        segments.append(f"seen_by={'|'.join(seen_by)}")
        missing = ["netlink"] if proc_seen else ["netlink", "proc"]
        segments.append(f"missing={'|'.join(missing)}")
        segments.extend(_bpf_segments(record))
        findings.append(", ".join(segments))
    return findings


def run() -> str | None:
    """Compare netlink listeners with /proc/net and report the ones /proc hides."""
    try:
        subprocess.run(
            ["ss", "-V"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False
        )
    except OSError as err:
        raise ScanError("ss not available to query listeners") from err

    bpf = _collect_bpf_listeners()
    errors = list(bpf.errors)

    netlink: dict[SocketKey, _NetlinkEntry] = {}
    proc: set[SocketKey] = set()
    for flags, proto in ((["-l", "-t"], "tcp"), (["-l", "-u"], "udp")):
        try:
            netlink.update(_collect_ss(flags, proto))
        except ScanError as err:
            errors.append(str(err))
        proc |= _collect_proc(proto)

    return summarize(_compare(netlink, proc, bpf.entries), errors)