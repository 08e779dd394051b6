"""
Configuration module for the Runtime Operator.

Loads configuration from environment variables.
Deployer plugins receive their own configuration through PLUGIN_CONFIGS.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

IN_CLUSTER_MODES = ("auto", "true", "false")


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class KubernetesConfig:
    """Cluster connection and watch configuration."""

    kubeconfig: str = ""
    context: str = ""
    in_cluster: str = "auto"
    # Empty list means watch all namespaces
    watch_namespaces: List[str] = field(default_factory=list)
    watch_timeout_seconds: int = 300
    watch_retry_delay: int = 5

    def __post_init__(self):
        if self.in_cluster not in IN_CLUSTER_MODES:
            raise ValueError(
                f"in_cluster must be one of {', '.join(IN_CLUSTER_MODES)}, "
                f"got '{self.in_cluster}'"
            )

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            kubeconfig=os.getenv("KUBECONFIG", ""),
            context=os.getenv("KUBE_CONTEXT", ""),
            in_cluster=os.getenv("IN_CLUSTER", "auto").lower(),
            watch_namespaces=_split_list(os.getenv("WATCH_NAMESPACE", "")),
            watch_timeout_seconds=int(os.getenv("WATCH_TIMEOUT_SECONDS", "300")),
            watch_retry_delay=int(os.getenv("WATCH_RETRY_DELAY", "5")),
        )


@dataclass
class ControllerConfig:
    """Controller reconciliation loop configuration."""

    max_concurrent_reconciles: int = 5
    # Fixed delay used whenever a pass reports incomplete convergence
    requeue_after_seconds: int = 30

    # Exponential backoff for failed passes
    backoff_base_delay: float = 1.0  # seconds
    backoff_max_delay: float = 300.0  # seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    pass_history_size: int = 200

    def __post_init__(self):
        if self.requeue_after_seconds <= 0:
            raise ValueError("requeue_after_seconds must be positive")
        if self.max_concurrent_reconciles <= 0:
            raise ValueError("max_concurrent_reconciles must be positive")

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            requeue_after_seconds=int(os.getenv("REQUEUE_AFTER_SECONDS", "30")),
            backoff_base_delay=float(os.getenv("BACKOFF_BASE_DELAY", "1")),
            backoff_max_delay=float(os.getenv("BACKOFF_MAX_DELAY", "300")),
            backoff_jitter_factor=float(os.getenv("BACKOFF_JITTER_FACTOR", "0.1")),
            pass_history_size=int(os.getenv("PASS_HISTORY_SIZE", "200")),
        )


@dataclass
class APIConfig:
    """Status API server configuration."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8081
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            enabled=os.getenv("API_ENABLED", "true").lower() == "true",
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("API_PORT", "8081")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class PluginConfig:
    """Deployer plugin configuration."""

    deployer: str = "kubernetes"

    # Plugin-specific configurations keyed by plugin name
    plugin_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        plugin_configs = {}
        raw = os.getenv("PLUGIN_CONFIGS")
        if raw:
            try:
                plugin_configs = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring invalid PLUGIN_CONFIGS: {e}")

        return cls(
            deployer=os.getenv("DEPLOYER", "kubernetes"),
            plugin_configs=plugin_configs,
        )

    def get_plugin_config(self, plugin_name: str) -> Dict[str, Any]:
        """Get configuration for a specific plugin."""
        return self.plugin_configs.get(plugin_name, {})


@dataclass
class Config:
    """Main configuration object."""

    kubernetes: KubernetesConfig
    controller: ControllerConfig
    api: APIConfig
    plugins: PluginConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            kubernetes=KubernetesConfig.from_env(),
            controller=ControllerConfig.from_env(),
            api=APIConfig.from_env(),
            plugins=PluginConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            kubernetes=KubernetesConfig(),
            controller=ControllerConfig(),
            api=APIConfig(),
            plugins=PluginConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
