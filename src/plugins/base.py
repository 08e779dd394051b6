"""
Core plugin types and dataclasses.

This module contains shared types passed between the reconciler and
deployer plugins.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from flavors import HealthCheckProbe
from resources import NamespacedName

logger = logging.getLogger(__name__)

# Returns True when the observed object already matches the desired one
Comparator = Callable[[Dict[str, Any], Dict[str, Any]], bool]

DeploymentCreateHook = Callable[[Dict[str, Any]], None]
ComparatorsHook = Callable[[], Dict[str, Comparator]]


def matches_desired(desired: Any, observed: Any) -> bool:
    """
    Check that every field set in ``desired`` has the same value in ``observed``.

    Fields only present in ``observed`` (server-side defaults, status) are
    ignored. Lists must have the same length and match element-wise.
    """
    if isinstance(desired, dict):
        if not isinstance(observed, dict):
            return False
        return all(
            key in observed and matches_desired(value, observed[key])
            for key, value in desired.items()
        )
    if isinstance(desired, list):
        if not isinstance(observed, list) or len(desired) != len(observed):
            return False
        return all(matches_desired(d, o) for d, o in zip(desired, observed))
    return desired == observed


class PassLogger(logging.LoggerAdapter):
    """Logger adapter that prefixes messages with the reconciled identity."""

    def process(self, msg, kwargs):
        return f"[{self.extra['namespace']}/{self.extra['name']}] {msg}", kwargs


@dataclass
class ReconcileContext:
    """
    Context for one reconcile pass.

    Built fresh by the reconciler for every pass and handed explicitly to
    each collaborator; nothing in it outlives the pass.
    """

    clients: Any
    log: logging.LoggerAdapter
    is_openshift: bool = False


@dataclass
class ServiceDefinition:
    """Describes how a deployer should converge one instance."""

    request: NamespacedName
    health_check_probe: HealthCheckProbe = HealthCheckProbe.TCP
    default_image_tag: str = "latest"
    single_replica: bool = False
    on_deployment_create: Optional[DeploymentCreateHook] = None
    on_get_comparators: Optional[ComparatorsHook] = None
    custom_service: bool = False
