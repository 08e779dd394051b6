"""Pytest configuration and fixtures."""

import copy
import logging
from decimal import Decimal
from functools import partial

import pytest
from kubernetes_asyncio.client import ApiException

from plugins.base import PassLogger, ReconcileContext

CUSTOM_KINDS = {
    "kogitoruntimes": "KogitoRuntime",
    "routes": "Route",
    "imagestreams": "ImageStream",
}


def canonicalize_pod_template(obj):
    """Apply the API server's normalisation of pod templates."""
    template = (obj.get("spec") or {}).get("template") or {}
    for container in (template.get("spec") or {}).get("containers") or []:
        for var in container.get("env") or []:
            if var.get("value") == "":
                del var["value"]
        for section in (container.get("resources") or {}).values():
            cpu = section.get("cpu")
            if isinstance(cpu, str) and "." in cpu and not cpu.endswith("m"):
                section["cpu"] = f"{int(Decimal(cpu) * 1000)}m"
    return obj


class _TypedApi:
    """Resolves ``<verb>_namespaced_<kind>`` methods onto the fake cluster."""

    def __init__(self, cluster, kinds):
        self._cluster = cluster
        self._kinds = kinds

    def __getattr__(self, attr):
        for verb in ("read", "create", "replace"):
            prefix = f"{verb}_namespaced_"
            if attr.startswith(prefix) and attr[len(prefix) :] in self._kinds:
                kind = self._kinds[attr[len(prefix) :]]
                return partial(getattr(self._cluster, f"_{verb}"), kind)
        raise AttributeError(attr)


class _CustomObjectsApi:
    def __init__(self, cluster):
        self._cluster = cluster

    async def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        return await self._cluster._read(CUSTOM_KINDS[plural], name, namespace)

    async def create_namespaced_custom_object(self, group, version, namespace, plural, body):
        return await self._cluster._create(CUSTOM_KINDS[plural], namespace, body)

    async def replace_namespaced_custom_object(
        self, group, version, namespace, plural, name, body
    ):
        return await self._cluster._replace(CUSTOM_KINDS[plural], name, namespace, body)


class FakeCluster:
    """
    In-memory cluster implementing the client calls the operator makes.

    Objects are stored as dicts keyed by (kind, namespace, name); every
    create/replace is recorded in ``writes``.
    """

    def __init__(self, is_openshift=False):
        self.is_openshift = is_openshift
        self.store = {}
        self.writes = []
        self.failures = {}
        self.core = _TypedApi(
            self,
            {
                "service_account": "ServiceAccount",
                "service": "Service",
                "config_map": "ConfigMap",
            },
        )
        self.apps = _TypedApi(self, {"deployment": "Deployment"})
        self.rbac = _TypedApi(self, {"role": "Role", "role_binding": "RoleBinding"})
        self.custom = _CustomObjectsApi(self)

    def to_dict(self, obj):
        return copy.deepcopy(obj)

    def fail(self, verb, kind, status=500):
        self.failures[(verb, kind)] = ApiException(status=status, reason="Injected")

    def _check(self, verb, kind):
        if (verb, kind) in self.failures:
            raise self.failures[(verb, kind)]

    def add(self, obj):
        kind = obj["kind"]
        meta = obj["metadata"]
        self.store[(kind, meta.get("namespace", ""), meta["name"])] = copy.deepcopy(obj)

    def get(self, kind, namespace, name):
        return self.store.get((kind, namespace, name))

    def set_available(self, namespace, name, replicas):
        deployment = self.store[("Deployment", namespace, name)]
        deployment.setdefault("status", {})["availableReplicas"] = replicas

    async def _read(self, kind, name, namespace):
        self._check("read", kind)
        try:
            return copy.deepcopy(self.store[(kind, namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found")

    async def _create(self, kind, namespace, body):
        self._check("create", kind)
        name = body["metadata"]["name"]
        key = (kind, namespace, name)
        if key in self.store:
            raise ApiException(status=409, reason="Conflict")
        obj = canonicalize_pod_template(copy.deepcopy(body))
        obj.setdefault("kind", kind)
        obj["metadata"]["resourceVersion"] = "1"
        self.store[key] = obj
        self.writes.append(("create", kind, name))
        return copy.deepcopy(obj)

    async def _replace(self, kind, name, namespace, body):
        self._check("replace", kind)
        obj = canonicalize_pod_template(copy.deepcopy(body))
        version = int(obj["metadata"].get("resourceVersion", "1"))
        obj["metadata"]["resourceVersion"] = str(version + 1)
        self.store[(kind, namespace, name)] = obj
        self.writes.append(("replace", kind, name))
        return copy.deepcopy(obj)


def make_runtime(namespace="ns1", name="svc-a", runtime="quarkus", **spec):
    """Raw KogitoRuntime object as returned by the API."""
    body = {"runtime": runtime} if runtime is not None else {}
    body.update(spec)
    return {
        "apiVersion": "rhpam.kiegroup.org/v1",
        "kind": "KogitoRuntime",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": f"uid-{name}",
            "resourceVersion": "7",
            "generation": 1,
        },
        "spec": body,
    }


@pytest.fixture
def cluster():
    """Fake Kubernetes cluster."""
    return FakeCluster()


@pytest.fixture
def openshift_cluster():
    """Fake OpenShift cluster."""
    return FakeCluster(is_openshift=True)


@pytest.fixture
def sample_runtime():
    """Sample KogitoRuntime payload for testing."""
    return make_runtime()


@pytest.fixture
def ctx(cluster):
    """Reconcile context bound to the fake cluster."""
    return ReconcileContext(
        clients=cluster,
        log=PassLogger(logging.getLogger("test"), {"name": "svc-a", "namespace": "ns1"}),
        is_openshift=False,
    )
