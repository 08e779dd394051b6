"""
Fetching of KogitoRuntime instances.
"""

from typing import Optional

from kubernetes_asyncio.client import ApiException

from plugins.base import ReconcileContext
from resources import GROUP, PLURAL, VERSION, KogitoRuntime, NamespacedName


class RuntimeHandler:
    """Reads KogitoRuntime instances for the reconciler."""

    def __init__(self, ctx: ReconcileContext):
        self.ctx = ctx

    async def fetch_instance(self, key: NamespacedName) -> Optional[KogitoRuntime]:
        """
        Fetch the instance identified by ``key``.

        Returns:
            The parsed instance, or None if it no longer exists.

        Raises:
            ApiException: On any read failure other than not-found
            InvalidResourceError: If the object cannot be decoded
        """
        try:
            obj = await self.ctx.clients.custom.get_namespaced_custom_object(
                GROUP, VERSION, key.namespace, PLURAL, key.name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return KogitoRuntime.from_dict(obj)
