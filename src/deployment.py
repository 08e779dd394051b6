"""
Deployment hooks bound to one KogitoRuntime instance.

The reconciler hands these callbacks to the deployer through the service
definition: one customises the desired deployment, the other supplies the
comparators used to decide whether observed objects drifted.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from flavors import FLAVORS, resolve_flavor
from plugins.base import Comparator, ReconcileContext, matches_desired
from rbac import SERVICE_VIEWER_NAME
from resources import KogitoRuntime, RuntimeType

HTTP_PORT = 8080

_QUANTITY_RE = re.compile(r"^([+-]?[0-9.]+(?:[eE][+-]?[0-9]+)?)([a-zA-Z]*)$")

_QUANTITY_MULTIPLIERS = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal(1000),
    "M": Decimal(1000) ** 2,
    "G": Decimal(1000) ** 3,
    "T": Decimal(1000) ** 4,
    "P": Decimal(1000) ** 5,
    "E": Decimal(1000) ** 6,
    "Ki": Decimal(1024),
    "Mi": Decimal(1024) ** 2,
    "Gi": Decimal(1024) ** 3,
    "Ti": Decimal(1024) ** 4,
    "Pi": Decimal(1024) ** 5,
    "Ei": Decimal(1024) ** 6,
}


def parse_quantity(quantity: Any) -> Decimal:
    """
    Parse a Kubernetes resource quantity ("500m", "0.5", "1Gi", "1e3").

    Raises:
        ValueError: If the value is not a valid quantity
    """
    match = _QUANTITY_RE.match(str(quantity).strip())
    if not match or match.group(2) not in _QUANTITY_MULTIPLIERS:
        raise ValueError(f"Invalid quantity: {quantity!r}")
    try:
        number = Decimal(match.group(1))
    except InvalidOperation:
        raise ValueError(f"Invalid quantity: {quantity!r}")
    return number * _QUANTITY_MULTIPLIERS[match.group(2)]


def _quantities_equal(desired: Any, observed: Any) -> bool:
    try:
        return parse_quantity(desired) == parse_quantity(observed)
    except ValueError:
        return desired == observed


def resources_match(desired: Dict[str, Any], observed: Dict[str, Any]) -> bool:
    """
    Compare container resources by quantity value, not spelling.

    The API server canonicalises quantities ("0.5" is read back as "500m"),
    so every quantity set in desired must equal the observed one numerically.
    """
    for section, quantities in (desired or {}).items():
        observed_section = (observed or {}).get(section) or {}
        for name, value in (quantities or {}).items():
            if name not in observed_section:
                return False
            if not _quantities_equal(value, observed_section[name]):
                return False
    return True


def _container(deployment: Dict[str, Any]) -> Dict[str, Any]:
    return deployment["spec"]["template"]["spec"]["containers"][0]


def compare_deployment(desired: Dict[str, Any], observed: Dict[str, Any]) -> bool:
    """Deployments match when replicas, pod service account and container match."""
    desired_spec = desired.get("spec", {})
    observed_spec = observed.get("spec", {})
    if desired_spec.get("replicas") != observed_spec.get("replicas"):
        return False

    desired_pod = desired_spec.get("template", {}).get("spec", {})
    observed_pod = observed_spec.get("template", {}).get("spec", {})
    if desired_pod.get("serviceAccountName") != observed_pod.get("serviceAccountName"):
        return False

    observed_containers = observed_pod.get("containers") or []
    if not observed_containers:
        return False
    desired_container = dict(desired_pod["containers"][0])
    observed_container = dict(observed_containers[0])
    desired_resources = desired_container.pop("resources", None)
    observed_resources = observed_container.pop("resources", None)

    # Removed resources leave nothing in desired for the subset check to see
    if not desired_resources and observed_resources:
        return False
    if not resources_match(desired_resources, observed_resources):
        return False
    return matches_desired(desired_container, observed_container)


class RuntimeDeployerHandler:
    """Creation and comparison hooks for a KogitoRuntime's deployment."""

    def __init__(self, ctx: ReconcileContext, instance: KogitoRuntime):
        self.ctx = ctx
        self.instance = instance

    def _env(self) -> List[Dict[str, str]]:
        flavor = resolve_flavor(self.instance.spec.runtime) or FLAVORS[
            RuntimeType.QUARKUS
        ]
        env = {flavor.http_port_env: str(HTTP_PORT)}
        for var in self.instance.spec.env:
            env[var.name] = var.value
        # Empty values are omitted, matching what the API server returns
        return [
            {"name": name, "value": value} if value else {"name": name}
            for name, value in env.items()
        ]

    def on_deployment_create(self, deployment: Dict[str, Any]) -> None:
        """Apply the instance's env, resources and service account to the deployment."""
        container = _container(deployment)
        container["env"] = self._env()
        if self.instance.spec.resources:
            container["resources"] = {
                key: dict(value) for key, value in self.instance.spec.resources.items()
            }
        else:
            container.pop("resources", None)
        deployment["spec"]["template"]["spec"]["serviceAccountName"] = (
            SERVICE_VIEWER_NAME
        )
        self.ctx.log.debug(f"Prepared deployment with {len(container['env'])} env vars")

    def on_get_comparators(self) -> Dict[str, Comparator]:
        return {"Deployment": compare_deployment}
