"""
Unit tests for listener configuration.
"""

import pytest

from oauthlistener.config import ListenerConfig


class TestValidate:
    """Tests for ListenerConfig.validate()."""
    
    def test_defaults_are_valid(self):
        """Test that the default configuration validates."""
        ListenerConfig().validate()
    
    @pytest.mark.parametrize("host", ["127.0.0.1", "127.0.0.2"])
    def test_loopback_hosts_accepted(self, host: str):
        """Test that any IPv4 loopback address is accepted."""
        ListenerConfig(host=host).validate()
    
    @pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "localhost", "::1"])
    def test_non_loopback_hosts_rejected(self, host: str):
        """Test that public, non-literal and IPv6 hosts are rejected."""
        with pytest.raises(ValueError, match="host"):
            ListenerConfig(host=host).validate()
    
    @pytest.mark.parametrize("port", [0, -1, 65536])
    def test_invalid_ports_rejected(self, port: int):
        """Test fixed port range validation."""
        with pytest.raises(ValueError, match="port"):
            ListenerConfig(ports=[8080, port]).validate()
    
    @pytest.mark.parametrize("field, value", [
        ("backlog", 0),
        ("buffer_size", 100),
        ("timeout", 0),
        ("log_format", "xml"),
    ])
    def test_invalid_values_rejected(self, field: str, value):
        """Test fail-fast validation of the remaining settings."""
        config = ListenerConfig(**{field: value})
        
        with pytest.raises(ValueError):
            config.validate()
    
    def test_timeout_may_be_disabled(self):
        """Test that None (blocking reads) is allowed."""
        ListenerConfig(timeout=None).validate()


class TestFromEnv:
    """Tests for ListenerConfig.from_env()."""
    
    def test_defaults_without_environment(self, monkeypatch):
        """Test that an empty environment yields the defaults."""
        for name in ("HOST", "PORTS", "BUFFER_SIZE", "TIMEOUT", "LOG_LEVEL", "LOG_FORMAT"):
            monkeypatch.delenv(f"OAUTH_LISTENER_{name}", raising=False)
        
        assert ListenerConfig.from_env() == ListenerConfig()
    
    def test_reads_environment(self, monkeypatch):
        """Test that every supported variable is read."""
        monkeypatch.setenv("OAUTH_LISTENER_HOST", "127.0.0.2")
        monkeypatch.setenv("OAUTH_LISTENER_PORTS", "8765, 8766,")
        monkeypatch.setenv("OAUTH_LISTENER_BUFFER_SIZE", "2048")
        monkeypatch.setenv("OAUTH_LISTENER_TIMEOUT", "2.5")
        monkeypatch.setenv("OAUTH_LISTENER_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("OAUTH_LISTENER_LOG_FORMAT", "json")
        
        config = ListenerConfig.from_env()
        
        assert config.host == "127.0.0.2"
        assert config.ports == [8765, 8766]
        assert config.buffer_size == 2048
        assert config.timeout == 2.5
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
