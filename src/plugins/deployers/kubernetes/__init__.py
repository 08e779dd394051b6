"""Kubernetes deployer plugin."""

from plugins.deployers.kubernetes.deployer import KubernetesServiceDeployer

__all__ = ["KubernetesServiceDeployer"]
