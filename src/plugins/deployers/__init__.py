"""
Deployer plugins package.

Deployers converge the objects a KogitoRuntime depends on.
"""

from plugins.deployers.base import ServiceDeployer

__all__ = ["ServiceDeployer"]
