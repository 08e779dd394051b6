"""
Desired object builders for the Kubernetes deployer.
"""

from typing import Any, Dict

from flavors import FLAVORS, HealthCheckProbe, RuntimeFlavor, resolve_flavor
from plugins.base import ServiceDefinition
from resources import KogitoRuntime, RuntimeType

HTTP_PORT = 8080
SERVICE_PORT = 80
PROPERTIES_KEY = "application.properties"

QUARKUS_LIVENESS_PATH = "/health/live"
QUARKUS_READINESS_PATH = "/health/ready"


def flavor_for(instance: KogitoRuntime) -> RuntimeFlavor:
    """The instance's flavor; unrecognised runtimes take the quarkus image defaults."""
    return resolve_flavor(instance.spec.runtime) or FLAVORS[RuntimeType.QUARKUS]


def resolve_image(instance: KogitoRuntime, definition: ServiceDefinition) -> str:
    if instance.spec.image:
        return instance.spec.image
    flavor = flavor_for(instance)
    if definition.custom_service:
        return (
            f"{flavor.image_registry}/{instance.metadata.name}"
            f":{definition.default_image_tag}"
        )
    return f"{flavor.default_image}:{definition.default_image_tag}"


def _metadata(instance: KogitoRuntime, name: str) -> Dict[str, Any]:
    return {
        "name": name,
        "namespace": instance.metadata.namespace,
        "labels": {"app": instance.metadata.name},
        "ownerReferences": [instance.owner_reference()],
    }


def build_probes(probe: HealthCheckProbe) -> Dict[str, Dict[str, Any]]:
    if probe is HealthCheckProbe.QUARKUS:
        return {
            "livenessProbe": {
                "httpGet": {"path": QUARKUS_LIVENESS_PATH, "port": HTTP_PORT}
            },
            "readinessProbe": {
                "httpGet": {"path": QUARKUS_READINESS_PATH, "port": HTTP_PORT}
            },
        }
    tcp = {"tcpSocket": {"port": HTTP_PORT}}
    return {"livenessProbe": dict(tcp), "readinessProbe": dict(tcp)}


def properties_config_map_name(instance: KogitoRuntime) -> str:
    return f"{instance.metadata.name}-properties"


def build_config_map(instance: KogitoRuntime) -> Dict[str, Any]:
    lines = [f"{key}={value}" for key, value in sorted(instance.spec.config.items())]
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(instance, properties_config_map_name(instance)),
        "data": {PROPERTIES_KEY: "\n".join(lines)},
    }


def build_deployment(
    instance: KogitoRuntime, definition: ServiceDefinition
) -> Dict[str, Any]:
    name = instance.metadata.name
    if definition.single_replica:
        replicas = 1
    elif instance.spec.replicas is None:
        replicas = 1
    else:
        replicas = instance.spec.replicas

    container = {
        "name": name,
        "image": resolve_image(instance, definition),
        "ports": [{"name": "http", "containerPort": HTTP_PORT, "protocol": "TCP"}],
        "volumeMounts": [
            {"name": "app-properties", "mountPath": "/deployments/config"}
        ],
    }
    container.update(build_probes(definition.health_check_probe))

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(instance, name),
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {
                    "containers": [container],
                    "volumes": [
                        {
                            "name": "app-properties",
                            "configMap": {
                                "name": properties_config_map_name(instance)
                            },
                        }
                    ],
                },
            },
        },
    }


def build_service(instance: KogitoRuntime) -> Dict[str, Any]:
    name = instance.metadata.name
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(instance, name),
        "spec": {
            "selector": {"app": name},
            "ports": [
                {
                    "name": "http",
                    "port": SERVICE_PORT,
                    "targetPort": HTTP_PORT,
                    "protocol": "TCP",
                }
            ],
        },
    }


def build_image_stream(instance: KogitoRuntime, image: str) -> Dict[str, Any]:
    tag = image.rsplit(":", 1)[1] if ":" in image.rsplit("/", 1)[-1] else "latest"
    return {
        "apiVersion": "image.openshift.io/v1",
        "kind": "ImageStream",
        "metadata": _metadata(instance, instance.metadata.name),
        "spec": {
            "lookupPolicy": {"local": True},
            "tags": [
                {
                    "name": tag,
                    "from": {"kind": "DockerImage", "name": image},
                    "importPolicy": {"scheduled": True},
                }
            ],
        },
    }


def build_route(instance: KogitoRuntime) -> Dict[str, Any]:
    name = instance.metadata.name
    return {
        "apiVersion": "route.openshift.io/v1",
        "kind": "Route",
        "metadata": _metadata(instance, name),
        "spec": {
            "to": {"kind": "Service", "name": name},
            "port": {"targetPort": "http"},
        },
    }
