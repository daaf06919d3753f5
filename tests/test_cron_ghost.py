import pytest

from ghostscan.outcome import ScanError
from ghostscan.scanners import cron_ghost
from ghostscan.scanners.cron_ghost import evaluate_command, parse_crontab


def test_relative_tmp_program_is_exec_in_tmp():
    assert evaluate_command("./tmp/payload --run") == "exec_in_tmp"


def test_missing_absolute_program(tmp_path):
    missing = tmp_path / "gone"
    assert evaluate_command(f"{missing} arg") == "target_missing"


def test_existing_system_program_is_clean():
    assert evaluate_command("/ -x") is None


def test_empty_command():
    assert evaluate_command("") is None


def test_parse_crontab_with_user_field():
    content = "# comment\n\n* * * * * root ./tmp/evil arg\n* * * * * root\n"
    findings = parse_crontab(content, "src", "system", True)
    assert findings == [
        "owner=system, source=src, spec=* * * * * root, cmd=./tmp/evil arg, anomaly=exec_in_tmp"
    ]


def test_parse_crontab_without_user_field():
    content = "0 1 * * * ./tmp/evil\n0 1 * * *\n"
    findings = parse_crontab(content, "spool", "alice", False)
    assert findings == [
        "owner=alice, source=spool, spec=0 1 * * *, cmd=./tmp/evil, anomaly=exec_in_tmp"
    ]


def test_parse_crontab_ignores_clean_jobs():
    assert parse_crontab("* * * * * root / -x\n", "src", "system", True) == []


def _configure(monkeypatch, tmp_path):
    crontab = tmp_path / "crontab"
    cron_d = tmp_path / "cron.d"
    monkeypatch.setattr(cron_ghost, "SYSTEM_CRONTAB", str(crontab))
    monkeypatch.setattr(cron_ghost, "CRON_D_DIR", str(cron_d))
    monkeypatch.setattr(cron_ghost, "USER_SPOOL_DIR", str(tmp_path / "spool"))
    monkeypatch.setattr(cron_ghost, "ANACRONTAB", str(tmp_path / "anacrontab"))
    return crontab, cron_d


def test_run_reports_findings_and_errors(monkeypatch, tmp_path):
    crontab, cron_d = _configure(monkeypatch, tmp_path)
    crontab.write_text("* * * * * root ./tmp/a\n")
    cron_d.mkdir()
    (cron_d / "job").write_text("* * * * * root ./tmp/b\n")

    result = cron_ghost.run()
    lines = result.splitlines()
    assert f"owner=system, source={crontab}, spec=* * * * * root, cmd=./tmp/a, anomaly=exec_in_tmp" in lines
    assert f"owner=job, source={cron_d / 'job'}, spec=* * * * * root, cmd=./tmp/b, anomaly=exec_in_tmp" in lines
    assert lines[-1].startswith("collection_errors=failed to read")
    assert str(tmp_path / "anacrontab") in lines[-1]


def test_run_raises_when_only_errors(monkeypatch, tmp_path):
    _configure(monkeypatch, tmp_path)
    with pytest.raises(ScanError, match="failed to read"):
        cron_ghost.run()


def test_run_clean(monkeypatch, tmp_path):
    crontab, cron_d = _configure(monkeypatch, tmp_path)
    crontab.write_text("* * * * * root / -x\n")
    cron_d.mkdir()
    (tmp_path / "anacrontab").write_text("# nothing\n")
    assert cron_ghost.run() is None