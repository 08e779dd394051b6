"""
RBAC provisioning - access control objects a runtime needs in its namespace.

Runtimes run under the kogito-service-viewer service account, which may
read config maps, services and pods of its own namespace.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from kubernetes_asyncio.client import ApiException

from plugins.base import ReconcileContext

logger = logging.getLogger(__name__)

SERVICE_VIEWER_NAME = "kogito-service-viewer"

SERVICE_VIEWER_RULES = [
    {
        "apiGroups": [""],
        "resources": ["configmaps", "services", "pods"],
        "verbs": ["get", "list", "watch"],
    }
]


def service_account_body(namespace: str) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {"name": SERVICE_VIEWER_NAME, "namespace": namespace},
    }


def role_body(namespace: str) -> Dict[str, Any]:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "Role",
        "metadata": {"name": SERVICE_VIEWER_NAME, "namespace": namespace},
        "rules": SERVICE_VIEWER_RULES,
    }


def role_binding_body(namespace: str) -> Dict[str, Any]:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": {"name": SERVICE_VIEWER_NAME, "namespace": namespace},
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "Role",
            "name": SERVICE_VIEWER_NAME,
        },
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": SERVICE_VIEWER_NAME,
                "namespace": namespace,
            }
        ],
    }


class RBACHandler:
    """Ensures the service viewer account, role and binding exist."""

    def __init__(self, ctx: ReconcileContext):
        self.ctx = ctx

    async def setup_rbac(self, namespace: str) -> None:
        """
        Create any missing access control object in the namespace.

        Safe to call on every pass; existing objects are left untouched.

        Raises:
            ApiException: On any API failure other than not-found/conflict
        """
        core = self.ctx.clients.core
        rbac = self.ctx.clients.rbac
        await self._ensure(
            "ServiceAccount",
            namespace,
            core.read_namespaced_service_account,
            core.create_namespaced_service_account,
            service_account_body(namespace),
        )
        await self._ensure(
            "Role",
            namespace,
            rbac.read_namespaced_role,
            rbac.create_namespaced_role,
            role_body(namespace),
        )
        await self._ensure(
            "RoleBinding",
            namespace,
            rbac.read_namespaced_role_binding,
            rbac.create_namespaced_role_binding,
            role_binding_body(namespace),
        )

    async def _ensure(
        self,
        kind: str,
        namespace: str,
        read: Callable[..., Awaitable[Any]],
        create: Callable[..., Awaitable[Any]],
        body: Dict[str, Any],
    ) -> bool:
        try:
            await read(SERVICE_VIEWER_NAME, namespace)
            return False
        except ApiException as e:
            if e.status != 404:
                raise

        try:
            await create(namespace, body)
        except ApiException as e:
            # Created concurrently by another pass
            if e.status == 409:
                return False
            raise

        self.ctx.log.info(f"Created {kind} {SERVICE_VIEWER_NAME}")
        return True
