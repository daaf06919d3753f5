import gzip

from ghostscan.scanners import kernel_text_ro
from ghostscan.scanners.kernel_text_ro import config_finding, rodata_finding, run


def test_rodata_enabled_is_clean():
    assert rodata_finding("1\n") is None


def test_rodata_disabled_reported():
    assert rodata_finding("0\n") == "region=kernel_text, perms_detected!=RO"


def test_rodata_n_is_case_insensitive():
    assert rodata_finding("N") == rodata_finding("n") == rodata_finding("0")


def test_config_strict_rwx_yes_is_clean():
    assert config_finding("CONFIG_FOO=y\nCONFIG_STRICT_KERNEL_RWX=y\n") is None


def test_config_strict_rwx_no_reported():
    result = config_finding("CONFIG_STRICT_KERNEL_RWX=n\n")
    assert result == "region=kernel_text, perms_detected!=RO (CONFIG_STRICT_KERNEL_RWX=n)"


def test_config_without_option_is_clean():
    assert config_finding("CONFIG_FOO=y\n") is None


def test_run_prefers_rodata(tmp_path, monkeypatch):
    rodata = tmp_path / "rodata"
    rodata.write_text("1\n")
    config = tmp_path / "config.gz"
    with gzip.open(config, "wt") as handle:
        handle.write("CONFIG_STRICT_KERNEL_RWX=n\n")
    monkeypatch.setattr(kernel_text_ro, "RODATA_PATH", str(rodata))
    monkeypatch.setattr(kernel_text_ro, "CONFIG_PATH", str(config))
    assert run() is None


def test_run_falls_back_to_config(tmp_path, monkeypatch):
    config = tmp_path / "config.gz"
    with gzip.open(config, "wt") as handle:
        handle.write("CONFIG_STRICT_KERNEL_RWX=n\n")
    monkeypatch.setattr(kernel_text_ro, "RODATA_PATH", str(tmp_path / "missing"))
    monkeypatch.setattr(kernel_text_ro, "CONFIG_PATH", str(config))
    assert run() == config_finding("CONFIG_STRICT_KERNEL_RWX=n")


def test_run_ignores_corrupt_config(tmp_path, monkeypatch):
    config = tmp_path / "config.gz"
    config.write_bytes(b"not gzip at all")
    monkeypatch.setattr(kernel_text_ro, "RODATA_PATH", str(tmp_path / "missing"))
    monkeypatch.setattr(kernel_text_ro, "CONFIG_PATH", str(config))
    assert run() is None