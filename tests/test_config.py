"""Tests for configuration loading."""

import pytest

from waggen.config import ExplorerConfig, ServerConfig


class TestExplorerConfig:
    def test_defaults(self):
        config = ExplorerConfig()
        assert config.max_states == 100
        assert config.max_depth == 10
        assert config.restore_strategy == "replay"
        assert config.input_values["email"] == "test@example.com"

    def test_unknown_restore_strategy(self):
        with pytest.raises(ValueError):
            ExplorerConfig(restore_strategy="teleport")

    def test_text_value_always_present(self):
        assert ExplorerConfig(input_values={"email": "a@b.c"}).input_values["text"] == "Test item"

    def test_env_and_overrides(self, monkeypatch):
        monkeypatch.setenv("WAGGEN_URL", "http://example.test")
        monkeypatch.setenv("WAGGEN_MAX_STATES", "7")
        monkeypatch.setenv("WAGGEN_HEADLESS", "false")
        config = ExplorerConfig.from_env(max_states=None, max_depth=3)
        assert config.url == "http://example.test"
        assert config.max_states == 7
        assert config.max_depth == 3
        assert config.headless is False


class TestServerConfig:
    def test_env(self, monkeypatch):
        monkeypatch.setenv("WAGGEN_PORT", "4000")
        monkeypatch.delenv("WAGGEN_SESSION_FILE", raising=False)
        config = ServerConfig.from_env(host=None)
        assert config.port == 4000
        assert config.host == "127.0.0.1"
        assert config.session_file is None
