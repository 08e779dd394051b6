"""
Kubernetes client bootstrap.

Loads cluster credentials, builds the typed API clients the operator uses
and detects whether the API server is an OpenShift cluster.
"""

import logging
import os
from typing import Any, Dict

from kubernetes_asyncio import client
from kubernetes_asyncio import config as kube_config

from config import KubernetesConfig

logger = logging.getLogger(__name__)

ROUTE_GROUP = "route.openshift.io"
IMAGE_GROUP = "image.openshift.io"


class KubeClients:
    """Typed API clients sharing one ApiClient connection pool."""

    def __init__(self, api_client: client.ApiClient, is_openshift: bool = False):
        self.api_client = api_client
        self.core = client.CoreV1Api(api_client)
        self.apps = client.AppsV1Api(api_client)
        self.rbac = client.RbacAuthorizationV1Api(api_client)
        self.custom = client.CustomObjectsApi(api_client)
        self.is_openshift = is_openshift

    def to_dict(self, obj: Any) -> Dict[str, Any]:
        """Convert a typed API model into its camelCase JSON dict form."""
        return self.api_client.sanitize_for_serialization(obj)

    async def close(self) -> None:
        await self.api_client.close()


def _use_in_cluster(cfg: KubernetesConfig) -> bool:
    if cfg.in_cluster == "auto":
        return "KUBERNETES_SERVICE_HOST" in os.environ
    return cfg.in_cluster == "true"


async def load_credentials(cfg: KubernetesConfig) -> None:
    """Load in-cluster or kubeconfig credentials into the default configuration."""
    if _use_in_cluster(cfg):
        logger.info("Using in-cluster Kubernetes configuration")
        kube_config.load_incluster_config()
    else:
        logger.info(
            f"Using kubeconfig {cfg.kubeconfig or '(default)'}"
            f" context {cfg.context or '(current)'}"
        )
        await kube_config.load_kube_config(
            config_file=cfg.kubeconfig or None,
            context=cfg.context or None,
        )


async def detect_openshift(api_client: client.ApiClient) -> bool:
    """Return True when the API server serves the OpenShift route and image groups."""
    group_list = await client.ApisApi(api_client).get_api_versions()
    names = {group.name for group in group_list.groups or []}
    return ROUTE_GROUP in names and IMAGE_GROUP in names


async def connect(cfg: KubernetesConfig) -> KubeClients:
    """Load credentials and return connected clients with platform detection done."""
    await load_credentials(cfg)
    api_client = client.ApiClient()
    is_openshift = await detect_openshift(api_client)
    logger.info(f"Connected to Kubernetes API (openshift={is_openshift})")
    return KubeClients(api_client, is_openshift=is_openshift)
