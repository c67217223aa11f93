"""
Unit tests for ServerConfig.
"""

import pytest

from routekit.config import ServerConfig


class TestDefaults:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8090
        assert config.request_timeout == 30.0
        assert config.min_workers == 4
        assert config.max_workers == 16
        assert config.suppress_root_not_found is True
        assert config.server_name == "routekit/1.0"

    def test_defaults_validate(self):
        ServerConfig().validate()


class TestValidation:

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"buffer_size": 10},
        {"timeout": 0},
        {"request_timeout": -5},
        {"keep_alive_timeout": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
        {"static_url_prefix": "static"},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_port_zero_allowed(self):
        ServerConfig(port=0).validate()

    def test_timeouts_may_be_disabled(self):
        ServerConfig(timeout=None, request_timeout=None).validate()


class TestFromEnv:

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ROUTEKIT_HOST", "0.0.0.0")
        monkeypatch.setenv("ROUTEKIT_PORT", "9000")
        monkeypatch.setenv("ROUTEKIT_TIMEOUT", "12.5")
        monkeypatch.setenv("ROUTEKIT_REQUEST_TIMEOUT", "3")
        monkeypatch.setenv("ROUTEKIT_WORKERS", "32")
        monkeypatch.setenv("ROUTEKIT_STATIC_DIR", "/srv/public")
        monkeypatch.setenv("ROUTEKIT_TEMPLATE_DIR", "/srv/templates")
        monkeypatch.setenv("ROUTEKIT_LOG_LEVEL", "debug")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.timeout == 12.5
        assert config.request_timeout == 3.0
        assert config.max_workers == 32
        assert config.static_dir == "/srv/public"
        assert config.template_dir == "/srv/templates"
        assert config.log_level == "DEBUG"

    def test_request_timeout_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("ROUTEKIT_REQUEST_TIMEOUT", "none")

        assert ServerConfig.from_env().request_timeout is None

    def test_small_worker_count_lowers_minimum(self, monkeypatch):
        monkeypatch.setenv("ROUTEKIT_WORKERS", "2")

        config = ServerConfig.from_env()

        assert (config.min_workers, config.max_workers) == (2, 2)
        config.validate()

    def test_empty_environment_gives_defaults(self, monkeypatch):
        for name in ("HOST", "PORT", "TIMEOUT", "REQUEST_TIMEOUT", "WORKERS",
                     "STATIC_DIR", "TEMPLATE_DIR", "LOG_LEVEL"):
            monkeypatch.delenv(f"ROUTEKIT_{name}", raising=False)

        assert ServerConfig.from_env() == ServerConfig()

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("ROUTEKIT_PORT", "eighty")

        with pytest.raises(ValueError):
            ServerConfig.from_env()
