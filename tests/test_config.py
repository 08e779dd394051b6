"""Unit tests for config.py - Configuration management."""

import os
import pytest
from unittest.mock import patch

import config
from config import (
    APIConfig,
    Config,
    ControllerConfig,
    KubernetesConfig,
    PluginConfig,
    get_config,
    load_config,
    reset_config,
)


class TestKubernetesConfig:
    """Tests for KubernetesConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        cfg = KubernetesConfig()
        assert cfg.kubeconfig == ""
        assert cfg.context == ""
        assert cfg.in_cluster == "auto"
        assert cfg.watch_namespaces == []
        assert cfg.watch_timeout_seconds == 300
        assert cfg.watch_retry_delay == 5

    def test_from_env(self):
        """Test loading configuration from environment variables."""
        env_vars = {
            "KUBECONFIG": "/tmp/kubeconfig",
            "KUBE_CONTEXT": "staging",
            "IN_CLUSTER": "FALSE",
            "WATCH_NAMESPACE": "ns1, ns2,,",
            "WATCH_TIMEOUT_SECONDS": "60",
            "WATCH_RETRY_DELAY": "2",
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = KubernetesConfig.from_env()
        assert cfg.kubeconfig == "/tmp/kubeconfig"
        assert cfg.context == "staging"
        assert cfg.in_cluster == "false"
        assert cfg.watch_namespaces == ["ns1", "ns2"]
        assert cfg.watch_timeout_seconds == 60
        assert cfg.watch_retry_delay == 2

    def test_invalid_in_cluster(self):
        """Test that unknown in-cluster modes are rejected."""
        with pytest.raises(ValueError, match="in_cluster"):
            KubernetesConfig(in_cluster="maybe")


class TestControllerConfig:
    """Tests for ControllerConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        cfg = ControllerConfig()
        assert cfg.max_concurrent_reconciles == 5
        assert cfg.requeue_after_seconds == 30
        assert cfg.backoff_base_delay == 1.0
        assert cfg.backoff_max_delay == 300.0
        assert cfg.backoff_jitter_factor == 0.1
        assert cfg.pass_history_size == 200

    def test_from_env(self):
        """Test loading configuration from environment variables."""
        env_vars = {
            "MAX_CONCURRENT_RECONCILES": "2",
            "REQUEUE_AFTER_SECONDS": "45",
            "BACKOFF_BASE_DELAY": "0.5",
            "BACKOFF_MAX_DELAY": "60",
            "BACKOFF_JITTER_FACTOR": "0.2",
            "PASS_HISTORY_SIZE": "10",
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = ControllerConfig.from_env()
        assert cfg.max_concurrent_reconciles == 2
        assert cfg.requeue_after_seconds == 45
        assert cfg.backoff_base_delay == 0.5
        assert cfg.backoff_max_delay == 60.0
        assert cfg.backoff_jitter_factor == 0.2
        assert cfg.pass_history_size == 10

    @pytest.mark.parametrize("value", [0, -30])
    def test_requeue_must_be_positive(self, value):
        """Test that a non-positive requeue interval is rejected."""
        with pytest.raises(ValueError):
            ControllerConfig(requeue_after_seconds=value)

    def test_workers_must_be_positive(self):
        """Test that at least one worker is required."""
        with pytest.raises(ValueError):
            ControllerConfig(max_concurrent_reconciles=0)


class TestAPIConfig:
    """Tests for APIConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        cfg = APIConfig()
        assert cfg.enabled is True
        assert cfg.host == "0.0.0.0"
        assert cfg.port == 8081
        assert cfg.log_level == "INFO"

    def test_from_env(self):
        """Test loading configuration from environment variables."""
        env_vars = {
            "API_ENABLED": "False",
            "API_HOST": "127.0.0.1",
            "API_PORT": "9000",
            "LOG_LEVEL": "DEBUG",
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = APIConfig.from_env()
        assert cfg.enabled is False
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 9000
        assert cfg.log_level == "DEBUG"


class TestPluginConfig:
    """Tests for PluginConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        cfg = PluginConfig()
        assert cfg.deployer == "kubernetes"
        assert cfg.plugin_configs == {}

    def test_from_env(self):
        """Test loading plugin configs from JSON."""
        env_vars = {
            "DEPLOYER": "helm",
            "PLUGIN_CONFIGS": '{"helm": {"chart": "kogito"}}',
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = PluginConfig.from_env()
        assert cfg.deployer == "helm"
        assert cfg.get_plugin_config("helm") == {"chart": "kogito"}
        assert cfg.get_plugin_config("kubernetes") == {}

    def test_invalid_json_ignored(self):
        """Test that malformed PLUGIN_CONFIGS falls back to empty."""
        with patch.dict(os.environ, {"PLUGIN_CONFIGS": "{not json"}, clear=False):
            cfg = PluginConfig.from_env()
        assert cfg.plugin_configs == {}


class TestConfigSingleton:
    """Tests for global configuration loading."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_default(self):
        """Test Config.default builds every section."""
        cfg = Config.default()
        assert isinstance(cfg.kubernetes, KubernetesConfig)
        assert isinstance(cfg.controller, ControllerConfig)
        assert isinstance(cfg.api, APIConfig)
        assert isinstance(cfg.plugins, PluginConfig)

    def test_load_config_is_cached(self):
        """Test that load_config returns the same instance."""
        first = load_config()
        assert load_config() is first
        assert get_config() is first

    def test_reset_config(self):
        """Test that reset_config clears the global instance."""
        load_config()
        reset_config()
        assert config.config is None
