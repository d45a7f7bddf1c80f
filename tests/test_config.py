"""Tests for configuration loading and the newline-delimited input readers."""

from __future__ import annotations

import json

import pytest

import config as harvest_config_module
from config import HarvestConfig, load_config, read_lines
from errors import ConfigLoadFailed


@pytest.fixture()
def env_gate(monkeypatch):
    """Pretend SERP_PROXY_GATE was set when the module was imported."""
    monkeypatch.setattr(harvest_config_module, "PROXY_GATE", "env.gate:1080")
    monkeypatch.setattr(harvest_config_module, "PROXY_COUNTRY", "de")


# ---------------------------------------------------------------------------
# read_lines
# ---------------------------------------------------------------------------

class TestReadLines:
    def test_reads_in_order(self, tmp_path) -> None:
        path = tmp_path / "keyword.txt"
        path.write_text("alpha\nbeta gamma\ninurl:shop\n", encoding="utf-8")
        assert read_lines(str(path)) == ["alpha", "beta gamma", "inurl:shop"]

    def test_strips_crlf_and_skips_blank_lines(self, tmp_path) -> None:
        path = tmp_path / "ua.txt"
        path.write_bytes(b"Mozilla/5.0 A\r\n\r\n   \r\nMozilla/5.0 B\r\n")
        assert read_lines(str(path)) == ["Mozilla/5.0 A", "Mozilla/5.0 B"]

    def test_missing_file_raises(self, tmp_path) -> None:
        with pytest.raises(ConfigLoadFailed):
            read_lines(str(tmp_path / "nope.txt"))

    def test_directory_raises(self, tmp_path) -> None:
        with pytest.raises(ConfigLoadFailed):
            read_lines(str(tmp_path))

    def test_empty_file(self, tmp_path) -> None:
        path = tmp_path / "empty.txt"
        path.write_text("", encoding="utf-8")
        assert read_lines(str(path)) == []


# ---------------------------------------------------------------------------
# HarvestConfig
# ---------------------------------------------------------------------------

class TestHarvestConfig:
    def test_defaults(self) -> None:
        config = HarvestConfig()
        assert config.page_size == 100
        assert config.results_per_page == 10000
        assert config.max_pages == 5
        assert config.timeout == 30
        assert config.concurrency == 10
        assert config.filter_domain == "google.com"

    def test_from_env_uses_module_values(self, env_gate) -> None:
        config = HarvestConfig.from_env()
        assert config.proxy_gate == "env.gate:1080"
        assert config.proxy_country == "de"

    def test_from_file_overrides_env(self, tmp_path, env_gate) -> None:
        path = tmp_path / "harvest.json"
        path.write_text(json.dumps({"concurrency": 25, "proxy_user": "alice"}), encoding="utf-8")
        config = HarvestConfig.from_file(str(path))
        assert config.concurrency == 25
        assert config.proxy_user == "alice"
        assert config.proxy_gate == "env.gate:1080"

    def test_from_file_ignores_unknown_keys(self, tmp_path, env_gate) -> None:
        path = tmp_path / "harvest.json"
        path.write_text(json.dumps({"max_pages": 2, "colour": "blue"}), encoding="utf-8")
        config = HarvestConfig.from_file(str(path))
        assert config.max_pages == 2
        assert not hasattr(config, "colour")

    def test_missing_file_falls_back_to_env(self, tmp_path, env_gate) -> None:
        config = HarvestConfig.from_file(str(tmp_path / "absent.json"))
        assert config.proxy_gate == "env.gate:1080"

    def test_malformed_file_raises(self, tmp_path) -> None:
        path = tmp_path / "harvest.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigLoadFailed):
            HarvestConfig.from_file(str(path))

    def test_non_object_file_raises(self, tmp_path) -> None:
        path = tmp_path / "harvest.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigLoadFailed):
            HarvestConfig.from_file(str(path))

    def test_validate_ok(self) -> None:
        assert HarvestConfig(proxy_gate="gate:1").validate() == []

    @pytest.mark.parametrize(
        "field, value",
        [("concurrency", 0), ("max_pages", -1), ("page_size", "100"), ("timeout", True)],
    )
    def test_validate_rejects_bad_numbers(self, field, value) -> None:
        config = HarvestConfig(proxy_gate="gate:1")
        setattr(config, field, value)
        problems = config.validate()
        assert len(problems) == 1
        assert field in problems[0]

    def test_validate_requires_gateway(self) -> None:
        problems = HarvestConfig().validate()
        assert any("proxy_gate" in p for p in problems)

    def test_to_dict_masks_password(self) -> None:
        config = HarvestConfig(proxy_pass="hunter2")
        assert config.to_dict()["proxy_pass"] == "***"
        assert config.to_dict(mask=False)["proxy_pass"] == "hunter2"
        assert "hunter2" not in repr(config)


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------

class TestLoadConfig:
    def test_from_env(self, env_gate) -> None:
        assert load_config().proxy_gate == "env.gate:1080"

    def test_from_file(self, tmp_path) -> None:
        path = tmp_path / "harvest.json"
        path.write_text(json.dumps({"proxy_gate": "file.gate:9000"}), encoding="utf-8")
        assert load_config(str(path)).proxy_gate == "file.gate:9000"

    def test_invalid_raises(self, monkeypatch) -> None:
        monkeypatch.setattr(harvest_config_module, "PROXY_GATE", "")
        with pytest.raises(ConfigLoadFailed, match="proxy_gate"):
            load_config()

    @pytest.mark.parametrize(
        "attr, env_name",
        [("PAGE_SIZE", "SERP_PAGE_SIZE"), ("CONCURRENCY", "SERP_CONCURRENCY"), ("REQUEST_TIMEOUT", "SERP_TIMEOUT")],
    )
    def test_non_numeric_env_value_raises(self, monkeypatch, attr, env_name) -> None:
        monkeypatch.setattr(harvest_config_module, attr, "abc")
        with pytest.raises(ConfigLoadFailed, match=env_name):
            load_config()

    def test_non_numeric_env_value_raises_through_config_file(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(harvest_config_module, "MAX_PAGES", "five")
        path = tmp_path / "harvest.json"
        path.write_text(json.dumps({"proxy_gate": "file.gate:9000"}), encoding="utf-8")
        with pytest.raises(ConfigLoadFailed, match="SERP_MAX_PAGES"):
            load_config(str(path))
