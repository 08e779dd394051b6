"""
KogitoRuntime reconciler - one reconcile pass per call.

A pass fetches the instance, provisions its RBAC prerequisites, selects
the health check probe for its runtime and hands a service definition to
the deployer. Incomplete convergence becomes a fixed-interval requeue;
any failure propagates to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from deployment import RuntimeDeployerHandler
from flavors import resolve_flavor, select_health_check_probe
from plugins.base import PassLogger, ReconcileContext, ServiceDefinition
from plugins.deployers.base import ServiceDeployer
from rbac import RBACHandler
from resources import NamespacedName
from runtime_handler import RuntimeHandler

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TAG = "latest"
DEFAULT_REQUEUE_AFTER_SECONDS = 30


@dataclass
class ReconcileResult:
    """Result of a reconcile pass."""

    requeue: bool = False
    requeue_after: Optional[int] = None

    @property
    def done(self) -> bool:
        return not self.requeue


class RuntimeReconciler:
    """
    Reconciles KogitoRuntime instances.

    Collaborators are created per pass from the factories so each one
    receives that pass's context.
    """

    def __init__(
        self,
        clients: Any,
        deployer: ServiceDeployer,
        requeue_after: int = DEFAULT_REQUEUE_AFTER_SECONDS,
        runtime_handler_factory: Callable[[ReconcileContext], Any] = RuntimeHandler,
        rbac_handler_factory: Callable[[ReconcileContext], Any] = RBACHandler,
    ):
        if requeue_after <= 0:
            raise ValueError("requeue_after must be positive")
        self.clients = clients
        self.deployer = deployer
        self.requeue_after = requeue_after
        self.runtime_handler_factory = runtime_handler_factory
        self.rbac_handler_factory = rbac_handler_factory

    def new_context(self, request: NamespacedName) -> ReconcileContext:
        return ReconcileContext(
            clients=self.clients,
            log=PassLogger(
                logger, {"name": request.name, "namespace": request.namespace}
            ),
            is_openshift=bool(getattr(self.clients, "is_openshift", False)),
        )

    async def reconcile(self, request: NamespacedName) -> ReconcileResult:
        """
        Run one reconcile pass for ``request``.

        Returns:
            ReconcileResult; requeue is set with the fixed interval while
            the deployer reports incomplete convergence.

        Raises:
            Exception: Any fetch, provisioning or deployer failure, unchanged
        """
        ctx = self.new_context(request)
        ctx.log.info("Reconciling for KogitoRuntime")

        runtime_handler = self.runtime_handler_factory(ctx)
        instance = await runtime_handler.fetch_instance(request)
        if instance is None:
            ctx.log.debug("KogitoRuntime instance not found")
            return ReconcileResult()

        await self.rbac_handler_factory(ctx).setup_rbac(request.namespace)

        if resolve_flavor(instance.spec.runtime) is None:
            ctx.log.debug(
                f"Unrecognised runtime '{instance.spec.runtime}', "
                f"using default health check probe"
            )
        deployment_handler = RuntimeDeployerHandler(ctx, instance)
        definition = ServiceDefinition(
            request=request,
            default_image_tag=DEFAULT_IMAGE_TAG,
            single_replica=False,
            on_deployment_create=deployment_handler.on_deployment_create,
            on_get_comparators=deployment_handler.on_get_comparators,
            custom_service=True,
            health_check_probe=select_health_check_probe(instance.spec.runtime),
        )

        requeue_after = await self.deployer.deploy(ctx, definition, instance)
        if requeue_after < 0:
            raise ValueError(
                f"Deployer '{self.deployer.name}' returned negative delay "
                f"{requeue_after}"
            )
        if requeue_after > 0:
            # Any positive deployer delay maps to the fixed interval
            ctx.log.info(
                f"Waiting for all resources to be created, scheduling for "
                f"{self.requeue_after} seconds from now"
            )
            return ReconcileResult(requeue=True, requeue_after=self.requeue_after)
        return ReconcileResult()
