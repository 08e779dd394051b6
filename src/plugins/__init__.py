"""
Plugin system for the Runtime Operator.

This package provides the plugin architecture for deployers, the engines
that converge a KogitoRuntime's dependent objects.
"""

from plugins.base import ReconcileContext, ServiceDefinition
from plugins.deployers.base import ServiceDeployer
from plugins.registry import PluginRegistry, get_registry

__all__ = [
    "ReconcileContext",
    "ServiceDefinition",
    "ServiceDeployer",
    "PluginRegistry",
    "get_registry",
]
