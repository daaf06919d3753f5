import pytest

from ghostscan.scanners.netfilter_cloaking import analyze_ruleset


def _table(family="inet", name="filter"):
    return {"table": {"family": family, "name": name, "handle": 1}}


def _chain(name, hook="input", family="inet", table="filter"):
    body = {"family": family, "table": table, "name": name, "handle": 2}
    if hook is not None:
        body["hook"] = hook
    return {"chain": body}


def _rule(chain, expr, family="inet", table="filter"):
    return {"rule": {"family": family, "table": table, "chain": chain, "expr": expr}}


def _set(name, family="inet", table="filter"):
    return {"set": {"family": family, "table": table, "name": name, "type": "ipv4_addr"}}


def test_clean_ruleset_has_no_findings():
    document = {
        "nftables": [
            {"metainfo": {"version": "1.0.2"}},
            _table(),
            _chain("input"),
            _chain("allowed", hook="forward"),
            _set("blocklist"),
            _rule("input", [{"jump": {"target": "allowed"}}]),
            _rule("input", [{"match": {"op": "==", "right": "@blocklist"}}]),
        ]
    }
    assert analyze_ruleset(document) == []


def test_chain_without_hook_is_orphan():
    document = {"nftables": [_table(), _chain("hidden", hook=None)]}
    assert analyze_ruleset(document) == [
        "family=inet, table=filter, chain=hidden, anomaly=orphan_base_chain"
    ]


def test_jump_to_missing_chain():
    document = {
        "nftables": [_table(), _chain("input"), _rule("input", [{"jump": {"target": "ghost"}}])]
    }
    assert analyze_ruleset(document) == [
        "family=inet, table=filter, chain=input, anomaly=jump_to_missing_handle, target=ghost"
    ]


def test_goto_to_missing_chain():
    document = {
        "nftables": [_table(), _chain("input"), _rule("input", [{"goto": {"target": "ghost"}}])]
    }
    findings = analyze_ruleset(document)
    assert len(findings) == 1
    assert findings[0].endswith("anomaly=jump_to_missing_handle, target=ghost")


def test_unresolved_set_reference():
    expr = [{"match": {"op": "==", "left": {"payload": {"field": "saddr"}}, "right": "@blocklist"}}]
    document = {"nftables": [_table(), _chain("input"), _rule("input", expr)]}
    assert analyze_ruleset(document) == [
        "family=inet, table=filter, chain=input, anomaly=anon_set_unresolved, set=@blocklist"
    ]


def test_set_defined_in_other_table_stays_unresolved():
    expr = [{"match": {"op": "==", "right": "@blocklist"}}]
    document = {
        "nftables": [
            _table(),
            _chain("input"),
            _set("blocklist", table="other"),
            _rule("input", expr),
        ]
    }
    findings = analyze_ruleset(document)
    assert len(findings) == 1
    assert "anomaly=anon_set_unresolved" in findings[0]


def test_null_and_unknown_entries_ignored():
    document = {"nftables": [None, {"flowtable": {"name": "ft"}}, 42, "text"]}
    assert analyze_ruleset(document) == []


def test_missing_nftables_key_is_empty():
    assert analyze_ruleset({}) == []


def test_findings_sorted():
    document = {
        "nftables": [
            _table(),
            _chain("zeta", hook=None),
            _chain("alpha", hook=None),
            _rule("alpha", [{"jump": {"target": "nowhere"}}]),
        ]
    }
    findings = analyze_ruleset(document)
    assert findings == sorted(findings)
    assert len(findings) == 3


def test_non_object_document_rejected():
    with pytest.raises(ValueError):
        analyze_ruleset([1, 2, 3])


def test_non_list_entries_rejected():
    with pytest.raises(ValueError):
        analyze_ruleset({"nftables": {"table": {}}})