"""
Kubernetes Deployer Plugin - Implements ServiceDeployer against the cluster API.

Creates missing dependent objects, replaces drifted ones and reports a
retry delay while the deployment is still rolling out.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from kubernetes_asyncio.client import ApiException

from plugins.base import (
    Comparator,
    ReconcileContext,
    ServiceDefinition,
    matches_desired,
)
from plugins.deployers.base import ServiceDeployer
from plugins.deployers.kubernetes.objects import (
    build_config_map,
    build_deployment,
    build_image_stream,
    build_route,
    build_service,
    resolve_image,
)
from resources import KogitoRuntime

logger = logging.getLogger(__name__)


def _compare_spec(desired: Dict[str, Any], observed: Dict[str, Any]) -> bool:
    return matches_desired(desired.get("spec", {}), observed.get("spec", {}))


def _compare_data(desired: Dict[str, Any], observed: Dict[str, Any]) -> bool:
    return (desired.get("data") or {}) == (observed.get("data") or {})


DEFAULT_COMPARATORS: Dict[str, Comparator] = {
    "ConfigMap": _compare_data,
    "Deployment": _compare_spec,
    "Service": _compare_spec,
    "Route": _compare_spec,
    "ImageStream": _compare_spec,
}


def merge_desired(observed: Dict[str, Any], desired: Dict[str, Any]) -> Dict[str, Any]:
    """
    Overlay desired fields onto a copy of the observed object.

    Server-populated fields (clusterIP, resourceVersion, defaults) survive
    the replace; lists in desired replace the observed lists.
    """
    merged = copy.deepcopy(observed)
    for key, value in desired.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_desired(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


@dataclass
class _ObjectOps:
    read: Callable[[str, str], Awaitable[Dict[str, Any]]]
    create: Callable[[str, Dict[str, Any]], Awaitable[Any]]
    replace: Callable[[str, str, Dict[str, Any]], Awaitable[Any]]


class KubernetesServiceDeployer(ServiceDeployer):
    """
    Deployer that converges dependent objects directly through the API.

    Owns a properties ConfigMap, a Deployment and a Service per instance,
    plus an ImageStream and a Route on OpenShift.
    """

    def __init__(self):
        self.pending_requeue_seconds: int = 10

    @property
    def name(self) -> str:
        return "kubernetes"

    @property
    def version(self) -> str:
        return "1.0.0"

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """Load Kubernetes deployer configuration from environment variables."""
        return {
            "pending_requeue_seconds": int(
                os.getenv("DEPLOYER_PENDING_REQUEUE_SECONDS", "10")
            ),
        }

    async def initialize(self, config: Dict[str, Any]) -> None:
        """Initialize the plugin with configuration."""
        self.pending_requeue_seconds = config.get(
            "pending_requeue_seconds", self.pending_requeue_seconds
        )
        if self.pending_requeue_seconds <= 0:
            raise ValueError("pending_requeue_seconds must be positive")
        logger.debug(
            f"Kubernetes deployer initialized: "
            f"pending_requeue_seconds={self.pending_requeue_seconds}"
        )

    def desired_objects(
        self,
        ctx: ReconcileContext,
        definition: ServiceDefinition,
        instance: KogitoRuntime,
    ) -> List[Dict[str, Any]]:
        """Build every dependent object the instance should have, in apply order."""
        deployment = build_deployment(instance, definition)
        if definition.on_deployment_create:
            definition.on_deployment_create(deployment)

        objects = [build_config_map(instance)]
        if ctx.is_openshift:
            objects.append(
                build_image_stream(instance, resolve_image(instance, definition))
            )
        objects.extend([deployment, build_service(instance)])
        if ctx.is_openshift:
            objects.append(build_route(instance))
        return objects

    async def deploy(
        self,
        ctx: ReconcileContext,
        definition: ServiceDefinition,
        instance: KogitoRuntime,
    ) -> int:
        comparators = dict(DEFAULT_COMPARATORS)
        if definition.on_get_comparators:
            comparators.update(definition.on_get_comparators())

        for desired in self.desired_objects(ctx, definition, instance):
            await self._apply(ctx, desired, comparators[desired["kind"]])

        return await self._pending_seconds(ctx, instance)

    def _ops(self, ctx: ReconcileContext, kind: str) -> _ObjectOps:
        clients = ctx.clients

        def typed(read, create, replace) -> _ObjectOps:
            async def read_dict(name: str, namespace: str) -> Dict[str, Any]:
                return clients.to_dict(await read(name, namespace))

            return _ObjectOps(read=read_dict, create=create, replace=replace)

        def custom(group: str, plural: str) -> _ObjectOps:
            api = clients.custom

            async def read(name: str, namespace: str) -> Dict[str, Any]:
                return await api.get_namespaced_custom_object(
                    group, "v1", namespace, plural, name
                )

            async def create(namespace: str, body: Dict[str, Any]) -> Any:
                return await api.create_namespaced_custom_object(
                    group, "v1", namespace, plural, body
                )

            async def replace(name: str, namespace: str, body: Dict[str, Any]) -> Any:
                return await api.replace_namespaced_custom_object(
                    group, "v1", namespace, plural, name, body
                )

            return _ObjectOps(read=read, create=create, replace=replace)

        if kind == "Deployment":
            return typed(
                clients.apps.read_namespaced_deployment,
                clients.apps.create_namespaced_deployment,
                clients.apps.replace_namespaced_deployment,
            )
        if kind == "Service":
            return typed(
                clients.core.read_namespaced_service,
                clients.core.create_namespaced_service,
                clients.core.replace_namespaced_service,
            )
        if kind == "ConfigMap":
            return typed(
                clients.core.read_namespaced_config_map,
                clients.core.create_namespaced_config_map,
                clients.core.replace_namespaced_config_map,
            )
        if kind == "Route":
            return custom("route.openshift.io", "routes")
        if kind == "ImageStream":
            return custom("image.openshift.io", "imagestreams")
        raise ValueError(f"Unsupported kind: {kind}")

    async def _read(
        self, ops: _ObjectOps, name: str, namespace: str
    ) -> Optional[Dict[str, Any]]:
        try:
            return await ops.read(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    async def _apply(
        self,
        ctx: ReconcileContext,
        desired: Dict[str, Any],
        comparator: Comparator,
    ) -> None:
        kind = desired["kind"]
        name = desired["metadata"]["name"]
        namespace = desired["metadata"]["namespace"]
        ops = self._ops(ctx, kind)

        observed = await self._read(ops, name, namespace)
        if observed is None:
            await ops.create(namespace, desired)
            ctx.log.info(f"Created {kind} {name}")
            return

        if comparator(desired, observed):
            return

        await ops.replace(name, namespace, merge_desired(observed, desired))
        ctx.log.info(f"Updated drifted {kind} {name}")

    async def _pending_seconds(
        self, ctx: ReconcileContext, instance: KogitoRuntime
    ) -> int:
        deployment = ctx.clients.to_dict(
            await ctx.clients.apps.read_namespaced_deployment(
                instance.metadata.name, instance.metadata.namespace
            )
        )
        desired = (deployment.get("spec") or {}).get("replicas", 1)
        available = (deployment.get("status") or {}).get("availableReplicas") or 0
        if available < desired:
            ctx.log.debug(f"Deployment has {available}/{desired} available replicas")
            return self.pending_requeue_seconds
        return 0
