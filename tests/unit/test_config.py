"""Unit tests for client configuration."""

import pytest

from squeeze_client.config import ClientConfig


class TestDefaults:
    """Test default values."""

    def test_defaults(self):
        config = ClientConfig()

        assert config.host == "localhost"
        assert config.cli_port == 9090
        assert config.http_port == 9000
        assert config.page_size == 20
        assert config.transport == "cli"
        assert not config.debug_logging

    def test_comet_url(self):
        assert ClientConfig(host="music", http_port=9002).comet_url == "http://music:9002/cometd"

    @pytest.mark.parametrize("page_size", [0, 1])
    def test_invalid_page_size(self, page_size):
        with pytest.raises(ValueError):
            ClientConfig(page_size=page_size)

    def test_invalid_transport(self):
        with pytest.raises(ValueError):
            ClientConfig(transport="carrier-pigeon")


class TestFromEnv:
    """Test environment overrides."""

    def test_empty_environment(self, monkeypatch):
        for name in ("HOST", "CLI_PORT", "HTTP_PORT", "PAGE_SIZE", "TRANSPORT", "DEBUG"):
            monkeypatch.delenv(f"SQUEEZE_{name}", raising=False)

        assert ClientConfig.from_env() == ClientConfig()

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("SQUEEZE_HOST", "music.local")
        monkeypatch.setenv("SQUEEZE_CLI_PORT", "9091")
        monkeypatch.setenv("SQUEEZE_HTTP_PORT", "9001")
        monkeypatch.setenv("SQUEEZE_PAGE_SIZE", "50")
        monkeypatch.setenv("SQUEEZE_TRANSPORT", "comet")
        monkeypatch.setenv("SQUEEZE_DEBUG", "true")

        config = ClientConfig.from_env()

        assert config.host == "music.local"
        assert config.cli_port == 9091
        assert config.http_port == 9001
        assert config.page_size == 50
        assert config.transport == "comet"
        assert config.debug_logging

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("SQUEEZE_PAGE_SIZE", "lots")

        with pytest.raises(ValueError, match="SQUEEZE_PAGE_SIZE"):
            ClientConfig.from_env()
