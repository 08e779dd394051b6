"""
Resource models - the KogitoRuntime custom resource and its identity.

The operator only ever reads KogitoRuntime objects; the models here parse
the raw API payload into typed values for the reconciler.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

GROUP = "rhpam.kiegroup.org"
VERSION = "v1"
PLURAL = "kogitoruntimes"
KIND = "KogitoRuntime"
API_VERSION = f"{GROUP}/{VERSION}"

DEFAULT_RUNTIME = "quarkus"


class InvalidResourceError(ValueError):
    """Raised when a fetched object cannot be decoded into a KogitoRuntime."""


class RuntimeType(str, Enum):
    """Runtime flavors a KogitoRuntime may declare."""

    QUARKUS = "quarkus"
    SPRINGBOOT = "springboot"


@dataclass(frozen=True)
class NamespacedName:
    """Identity of a namespaced object, used as the work queue key."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "NamespacedName":
        metadata = obj.get("metadata") or {}
        return cls(namespace=metadata.get("namespace", ""), name=metadata["name"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EnvVar(_CamelModel):
    name: str
    value: str = ""


class ObjectMeta(_CamelModel):
    name: str
    namespace: str = ""
    uid: str = ""
    resource_version: str = Field("", alias="resourceVersion")
    generation: int = 0
    deletion_timestamp: Optional[str] = Field(None, alias="deletionTimestamp")
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class KogitoRuntimeSpec(_CamelModel):
    """Desired state declared by the user."""

    runtime: str = DEFAULT_RUNTIME
    image: Optional[str] = None
    replicas: Optional[int] = Field(None, ge=0)
    env: List[EnvVar] = Field(default_factory=list)
    resources: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    config: Dict[str, str] = Field(default_factory=dict)


class KogitoRuntime(_CamelModel):
    """A KogitoRuntime custom resource."""

    api_version: str = Field(API_VERSION, alias="apiVersion")
    kind: str = KIND
    metadata: ObjectMeta
    spec: KogitoRuntimeSpec = Field(default_factory=KogitoRuntimeSpec)

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "KogitoRuntime":
        """
        Parse a raw API object.

        Raises:
            InvalidResourceError: If the payload does not match the model
        """
        try:
            return cls.model_validate(obj)
        except ValidationError as e:
            raise InvalidResourceError(f"Invalid {KIND} object: {e}") from e

    @property
    def namespaced_name(self) -> NamespacedName:
        return NamespacedName(self.metadata.namespace, self.metadata.name)

    @property
    def is_being_deleted(self) -> bool:
        return bool(self.metadata.deletion_timestamp)

    @property
    def runtime_type(self) -> Optional[RuntimeType]:
        """The declared runtime flavor, or None if it is not recognised."""
        try:
            return RuntimeType(self.spec.runtime)
        except ValueError:
            return None

    def owner_reference(self) -> Dict[str, Any]:
        """Controller owner reference pointing at this instance."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.metadata.name,
            "uid": self.metadata.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }
