"""
Deployer Plugin Base - Abstract interface for convergence engines.

A deployer creates and updates the objects a KogitoRuntime depends on
(deployment, service, config map, and on OpenShift route and image stream)
and reports how long the reconciler should wait before the next pass.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from plugins.base import ReconcileContext, ServiceDefinition
from resources import KogitoRuntime


class ServiceDeployer(ABC):
    """
    Abstract base class for deployer plugins.

    Implementations must be idempotent: once the dependent objects match
    the definition, a call performs no writes. Errors must be raised, never
    swallowed, so the whole pass can be retried.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this plugin (e.g., 'kubernetes')."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Plugin version string."""
        pass

    @abstractmethod
    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the plugin with configuration.

        Called once when the plugin is loaded.

        Args:
            config: Plugin-specific configuration dictionary
        """
        pass

    @abstractmethod
    async def deploy(
        self,
        ctx: ReconcileContext,
        definition: ServiceDefinition,
        instance: KogitoRuntime,
    ) -> int:
        """
        Converge the dependent objects of an instance.

        Args:
            ctx: Context of the current reconcile pass
            definition: How the instance should be deployed
            instance: The fetched KogitoRuntime

        Returns:
            Seconds to wait before the next pass; 0 when fully converged.
        """
        pass

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load plugin-specific configuration from environment variables.

        Returns:
            Dictionary of configuration values for this plugin.
        """
        return {}
