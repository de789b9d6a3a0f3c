"""Tests for the settings store, identity and runtime config"""

import re
from pathlib import Path
from unittest.mock import MagicMock

import pytest

import remote_agent

from browser_remote.config import AgentConfig
from browser_remote.errors import ConfigurationError
from browser_remote.settings import Settings, SettingsStore, generate_browser_id


class TestSettingsStore:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = SettingsStore(tmp_path / "settings.json").load()
        assert settings == Settings()
        assert settings.label == "My Browser"
        assert not settings.complete

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        assert SettingsStore(path).load() == Settings()

    def test_save_and_load(self, tmp_path):
        store = SettingsStore(tmp_path / "nested" / "settings.json")
        saved = Settings(server_url="https://srv", api_key="k", browser_id="brc1", registered=True)
        store.save(saved)
        assert store.load() == saved

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text('{"server_url": "https://srv", "theme": "dark"}', encoding="utf-8")
        assert SettingsStore(path).load().server_url == "https://srv"

    def test_credential_change_resets_registration(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        store.save(Settings(server_url="https://srv", api_key="k", browser_id="brc1", registered=True))
        assert store.update(api_key="k2").registered is False
        assert store.load().registered is False

    def test_endpoint_change_resets_registration(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        store.save(Settings(server_url="https://srv", api_key="k", browser_id="brc1", registered=True))
        assert store.update(server_url="https://other").registered is False

    def test_same_values_or_label_keep_registration(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        store.save(Settings(server_url="https://srv", api_key="k", browser_id="brc1", registered=True))
        assert store.update(api_key="k", label="Laptop").registered is True

    def test_identity_generated_once(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        generator = MagicMock(return_value="brc-fixed")
        assert store.ensure_identity(generator).browser_id == "brc-fixed"
        assert store.ensure_identity(generator).browser_id == "brc-fixed"
        generator.assert_called_once_with()

    def test_mark_registered(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        assert store.mark_registered().registered is True


class TestBrowserId:
    def test_format(self):
        assert re.fullmatch(r"brc[0-9a-f]{10,}", generate_browser_id())

    def test_unique(self):
        assert len({generate_browser_id() for _ in range(50)}) == 50


class TestAgentConfig:
    def test_from_env(self):
        config = AgentConfig.from_env({
            "BRC_SETTINGS_PATH": "/tmp/brc.json",
            "BRC_SERVER_URL": "https://srv",
            "BRC_API_KEY": "k",
            "BRC_POLL_INTERVAL": "2.5",
            "BRC_HEADLESS": "true",
            "BRC_LOG_LEVEL": "debug",
        })
        assert config.settings_path == Path("/tmp/brc.json")
        assert config.poll_interval == 2.5
        assert config.headless is True
        assert config.log_level == "DEBUG"
        assert config.settings_overrides() == {"server_url": "https://srv", "api_key": "k"}

    def test_defaults(self):
        config = AgentConfig.from_env({})
        assert config.poll_interval == 6.0
        assert config.api_path == "/wp-json/brc/v1"
        assert config.cdp_url is None
        assert config.settings_overrides() == {}

    def test_command_timeout(self):
        assert AgentConfig.from_env({}).command_timeout == 30.0
        assert AgentConfig.from_env({"BRC_COMMAND_TIMEOUT": "5"}).command_timeout == 5.0

    @pytest.mark.parametrize("name", ["BRC_POLL_INTERVAL", "BRC_REQUEST_TIMEOUT", "BRC_COMMAND_TIMEOUT"])
    def test_non_numeric_seconds_rejected(self, name):
        with pytest.raises(ConfigurationError, match=name):
            AgentConfig.from_env({name: "fast"})

    def test_non_positive_seconds_rejected(self):
        with pytest.raises(ConfigurationError, match="BRC_POLL_INTERVAL"):
            AgentConfig.from_env({"BRC_POLL_INTERVAL": "0"})

    def test_cli_reports_bad_config(self, monkeypatch, caplog):
        monkeypatch.setenv("BRC_POLL_INTERVAL", "fast")
        assert remote_agent.main(["status"]) == 2
        assert "BRC_POLL_INTERVAL" in caplog.text
