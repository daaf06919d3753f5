"""Detect nftables artifacts that hide traffic: orphan chains, dangling jumps and sets."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass, field
from typing import Any

from ghostscan.outcome import ScanError

_NFT_COMMAND = ["nft", "-j", "list", "ruleset"]

_TableKey = tuple[str, str]
_ScopedName = tuple[str, str, str]


@dataclass
class _TableInfo:
    chains: dict[str, str | None] = field(default_factory=dict)
    rules: dict[str, list[Any]] = field(default_factory=dict)


def _describe_status(returncode: int) -> str:
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"


def _body(entry: Any, key: str, required: tuple[str, ...]) -> dict[str, Any] | None:
    """Return ``entry[key]`` if it is an object holding the required string fields."""
    if not isinstance(entry, dict):
        return None
    body = entry.get(key)
    if not isinstance(body, dict):
        return None
    if not all(isinstance(body.get(name), str) for name in required):
        return None
    return body


def _chain_body(entry: Any) -> dict[str, Any] | None:
    body = _body(entry, "chain", ("family", "table", "name"))
    if body is None:
        return None
    hook = body.get("hook")
    if hook is not None and not isinstance(hook, str):
        return None
    return body


def _jump_target(obj: dict[str, Any], verdict: str) -> str | None:
    inner = obj.get(verdict)
    if isinstance(inner, dict):
        target = inner.get("target")
        if isinstance(target, str):
            return target
    return None


def _record_set(
    candidate: str,
    table: _TableKey,
    chain: str,
    defined_sets: set[_ScopedName],
    findings: list[str],
) -> None:
    if not candidate.startswith("@"):
        return
    if (table[0], table[1], candidate[1:]) not in defined_sets:
        findings.append(
            f"family={table[0]}, table={table[1]}, chain={chain}, "
            f"anomaly=anon_set_unresolved, set={candidate}"
        )


def _scan_expr(
    value: Any,
    table: _TableKey,
    chain: str,
    known_chains: set[str],
    defined_sets: set[_ScopedName],
    findings: list[str],
) -> None:
    if isinstance(value, dict):
        for verdict in ("jump", "goto"):
            target = _jump_target(value, verdict)
            if target is not None and target not in known_chains:
                findings.append(
                    f"family={table[0]}, table={table[1]}, chain={chain}, "
                    f"anomaly=jump_to_missing_handle, target={target}"
                )
        set_ref = value.get("set")
        if isinstance(set_ref, dict) and isinstance(set_ref.get("name"), str):
            _record_set(set_ref["name"], table, chain, defined_sets, findings)
        for child in value.values():
            _scan_expr(child, table, chain, known_chains, defined_sets, findings)
    elif isinstance(value, list):
        for child in value:
            _scan_expr(child, table, chain, known_chains, defined_sets, findings)
    elif isinstance(value, str):
        _record_set(value, table, chain, defined_sets, findings)


def analyze_ruleset(document: Any) -> list[str]:
    """Return sorted findings for parsed ``nft -j list ruleset`` output.

    Raises ValueError when the document does not have the nftables shape.
    """
    if not isinstance(document, dict):
        raise ValueError("ruleset must be a JSON object")
    entries = document.get("nftables", [])
    if not isinstance(entries, list):
        raise ValueError("field 'nftables' must be a list")

    tables: dict[_TableKey, _TableInfo] = {}
    defined_sets: set[_ScopedName] = set()

    for entry in entries:
        if entry is None:
            continue
        if (body := _body(entry, "table", ("family", "name"))) is not None:
            tables.setdefault((body["family"], body["name"]), _TableInfo())
        elif (body := _chain_body(entry)) is not None:
            info = tables.setdefault((body["family"], body["table"]), _TableInfo())
            info.chains[body["name"]] = body.get("hook")
        elif (body := _body(entry, "rule", ("family", "table", "chain"))) is not None:
            info = tables.setdefault((body["family"], body["table"]), _TableInfo())
            info.rules.setdefault(body["chain"], []).append(body.get("expr"))
        elif (body := _body(entry, "set", ("family", "table", "name"))) is not None:
            defined_sets.add((body["family"], body["table"], body["name"]))

    findings: list[str] = []
    for (family, table), info in tables.items():
        for chain_name, hook in info.chains.items():
            if hook is None:
                findings.append(
                    f"family={family}, table={table}, chain={chain_name}, "
                    "anomaly=orphan_base_chain"
                )

    for key, info in tables.items():
        known_chains = set(info.chains)
        for chain, exprs in info.rules.items():
            for expr in exprs:
                _scan_expr(expr, key, chain, known_chains, defined_sets, findings)

    findings.sort()
    return findings


def run() -> str | None:
    """Dump the nftables ruleset and look for cloaking artifacts."""
    try:
        result = subprocess.run(_NFT_COMMAND, capture_output=True, check=False)
    except OSError as err:
        raise ScanError(f"failed to execute nft: {err}") from err

    if result.returncode != 0:
        raise ScanError(f"nft exited with {_describe_status(result.returncode)}")

    try:
        findings = analyze_ruleset(json.loads(result.stdout))
    except ValueError as err:
        raise ScanError(f"failed to parse nftables JSON: {err}") from err

    return "\n".join(findings) if findings else None