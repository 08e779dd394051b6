"""
Runtime flavors - per-runtime behavioral parameters.

Each supported runtime is a named variant carrying its health probe policy
and image defaults. Adding a runtime means adding an entry to FLAVORS.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from resources import RuntimeType


class HealthCheckProbe(Enum):
    """Health check mechanism used for the runtime's containers."""

    TCP = "tcp"
    QUARKUS = "quarkus"


@dataclass(frozen=True)
class RuntimeFlavor:
    """Behavioral parameters bound to one runtime type."""

    runtime: RuntimeType
    health_check_probe: HealthCheckProbe
    image_registry: str
    default_image: str
    http_port_env: str


FLAVORS: Dict[RuntimeType, RuntimeFlavor] = {
    RuntimeType.QUARKUS: RuntimeFlavor(
        runtime=RuntimeType.QUARKUS,
        health_check_probe=HealthCheckProbe.QUARKUS,
        image_registry="quay.io/kiegroup",
        default_image="quay.io/kiegroup/kogito-runtime-jvm",
        http_port_env="QUARKUS_HTTP_PORT",
    ),
    RuntimeType.SPRINGBOOT: RuntimeFlavor(
        runtime=RuntimeType.SPRINGBOOT,
        health_check_probe=HealthCheckProbe.TCP,
        image_registry="quay.io/kiegroup",
        default_image="quay.io/kiegroup/kogito-runtime-springboot",
        http_port_env="SERVER_PORT",
    ),
}

DEFAULT_HEALTH_CHECK_PROBE = HealthCheckProbe.TCP


def resolve_flavor(runtime: Union[RuntimeType, str, None]) -> Optional[RuntimeFlavor]:
    """Look up the flavor for a runtime; None if it is not recognised."""
    if runtime is None:
        return None
    try:
        return FLAVORS.get(RuntimeType(runtime))
    except ValueError:
        return None


def select_health_check_probe(
    runtime: Union[RuntimeType, str, None]
) -> HealthCheckProbe:
    """
    Select the health check probe for a runtime flavor.

    Unrecognised flavors get the generic TCP probe.
    """
    flavor = resolve_flavor(runtime)
    if flavor is None:
        return DEFAULT_HEALTH_CHECK_PROBE
    return flavor.health_check_probe
