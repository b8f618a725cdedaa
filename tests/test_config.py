"""Tests for app configuration: defaults, persistence and env overrides."""

import json

from gossip_village.config import LOCATION_MAP, MASKED_API_KEY, get_config, update_config


def test_location_map_is_4x4():
    assert len(LOCATION_MAP) == 4
    assert all(len(row) == 4 for row in LOCATION_MAP)


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    config = get_config(tmp_path)
    assert config["llm_connection"]["provider_format"] == "openai"
    assert config["llm_connection"]["api_key"] == ""
    assert config["villager_count"] == 10
    assert config["max_retries"] == 3


def test_update_merges_and_persists(tmp_path, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    update_config(tmp_path, {"llm_connection": {"model": "kimi"}, "villager_count": 6})
    config = get_config(tmp_path)
    assert config["llm_connection"]["model"] == "kimi"
    assert config["llm_connection"]["provider_url"] == "https://api.deepseek.com"
    assert config["villager_count"] == 6

    stored = json.loads((tmp_path / "config.json").read_text())
    assert stored["villager_count"] == 6


def test_unknown_keys_ignored(tmp_path):
    config = update_config(tmp_path, {"theme": "dark"})
    assert "theme" not in config


def test_env_api_key_wins(tmp_path, monkeypatch):
    update_config(tmp_path, {"llm_connection": {"api_key": "stored"}})
    monkeypatch.setenv("LLM_API_KEY", "from-env")
    assert get_config(tmp_path)["llm_connection"]["api_key"] == "from-env"


def test_env_api_key_never_written(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "sk-secret-from-env")
    config = update_config(tmp_path, {"villager_count": 8})
    assert config["llm_connection"]["api_key"] == "sk-secret-from-env"

    stored = json.loads((tmp_path / "config.json").read_text())
    assert stored["llm_connection"]["api_key"] == ""
    assert "sk-secret-from-env" not in (tmp_path / "config.json").read_text()


def test_masked_api_key_keeps_stored_key(tmp_path, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    update_config(tmp_path, {"llm_connection": {"api_key": "sk-real"}})
    update_config(tmp_path, {"llm_connection": {"api_key": MASKED_API_KEY, "model": "kimi"}})

    config = get_config(tmp_path)
    assert config["llm_connection"]["api_key"] == "sk-real"
    assert config["llm_connection"]["model"] == "kimi"
