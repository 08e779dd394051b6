"""
Plugin Registry - Discovery and registration of deployer plugins.

This module provides the central registry for deployers, handling
discovery, registration, and instantiation.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, Optional, Type

from plugins.deployers.base import ServiceDeployer

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "runtime_operator.deployers"


class PluginRegistry:
    """
    Central registry for deployer plugins.

    Handles discovery, registration, and instantiation.
    """

    def __init__(self):
        # Registered plugin classes (not instantiated)
        self._deployers: Dict[str, Type[ServiceDeployer]] = {}

        # Cached plugin metadata (name, version) to avoid repeated instantiation
        self._deployer_info: Dict[str, Dict[str, str]] = {}

        # Instantiated and initialized plugin instances
        self._deployer_instances: Dict[str, ServiceDeployer] = {}

        # Plugin configurations loaded from environment
        self._deployer_configs: Dict[str, Dict[str, Any]] = {}

    def register_deployer(self, plugin_class: Type[ServiceDeployer]) -> None:
        """
        Register a deployer plugin class.

        Args:
            plugin_class: The ServiceDeployer subclass to register
        """
        # Create temporary instance to get name/version (only once at registration)
        temp_instance = plugin_class()
        name = temp_instance.name
        version = temp_instance.version

        if name in self._deployers:
            logger.warning(f"Overwriting existing deployer plugin: {name}")

        self._deployers[name] = plugin_class
        self._deployer_info[name] = {"name": name, "version": version}
        self._deployer_configs[name] = plugin_class.load_config_from_env()
        self._deployer_instances.pop(name, None)
        logger.info(f"Registered deployer plugin: {name} v{version}")

    async def get_deployer(
        self, name: str, config: Optional[Dict[str, Any]] = None
    ) -> ServiceDeployer:
        """
        Get an initialized deployer instance.

        Configuration loaded from the environment at registration is merged
        with ``config``, the latter taking precedence.

        Args:
            name: The plugin name to retrieve
            config: Optional configuration overrides

        Returns:
            An initialized ServiceDeployer instance

        Raises:
            ValueError: If the plugin name is not registered
        """
        if name not in self._deployers:
            available = ", ".join(self._deployers.keys()) or "none"
            raise ValueError(
                f"Unknown deployer plugin: {name}. Available plugins: {available}"
            )

        if name not in self._deployer_instances:
            plugin_config = dict(self._deployer_configs.get(name, {}))
            plugin_config.update(config or {})
            plugin = self._deployers[name]()
            await plugin.initialize(plugin_config)
            self._deployer_instances[name] = plugin
            logger.info(f"Initialized deployer plugin: {name}")

        return self._deployer_instances[name]

    def list_deployers(self) -> list[str]:
        """List all registered deployer names."""
        return list(self._deployers.keys())

    def has_deployer(self, name: str) -> bool:
        """Check if a deployer is registered."""
        return name in self._deployers

    def get_deployer_info(self, name: str) -> Optional[Dict[str, str]]:
        """
        Get information about a registered deployer.

        Returns:
            Dictionary with 'name' and 'version', or None if not found
        """
        return self._deployer_info.get(name)

    def get_deployer_config(self, name: str) -> Dict[str, Any]:
        """Get the environment-loaded configuration of a deployer."""
        return self._deployer_configs.get(name, {})


# Global registry instance
_registry: Optional[PluginRegistry] = None


def get_registry() -> PluginRegistry:
    """Get the global plugin registry singleton."""
    global _registry
    if _registry is None:
        _registry = PluginRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_plugins() -> None:
    """
    Register the built-in deployer and discover third-party deployers
    via entry points.

    Called during application startup.
    """
    registry = get_registry()

    from plugins.deployers.kubernetes import KubernetesServiceDeployer

    registry.register_deployer(KubernetesServiceDeployer)

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            registry.register_deployer(ep.load())
        except Exception as e:
            logger.warning(f"Could not load deployer plugin {ep.name}: {e}")
