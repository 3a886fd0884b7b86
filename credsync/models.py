"""Data model shared by the translator, the stores and the operator."""

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

DATA_USERNAME = "username"
DATA_PASSWORD = "password"
DATA_SSH_PRIVATE_KEY = "ssh-privatekey"

GLOBAL_SCOPE = "GLOBAL"


class SecretType(enum.Enum):
    OPAQUE = "Opaque"
    BASIC_AUTH = "kubernetes.io/basic-auth"
    SSH = "kubernetes.io/ssh-auth"

    @classmethod
    def parse(cls, tag):
        """Return the member for a type tag, or None for unknown tags."""
        try:
            return cls(tag)
        except ValueError:
            return None


@dataclass(frozen=True)
class ClusterSecret:
    namespace: str
    name: str
    type: str = SecretType.OPAQUE.value
    data: Dict[str, str] = field(default_factory=dict)

    @property
    def secret_type(self) -> Optional[SecretType]:
        return SecretType.parse(self.type)

    @classmethod
    def from_k8s(cls, secret):
        """Snapshot a kubernetes.client.V1Secret."""
        metadata = secret.metadata
        return cls(
            namespace=metadata.namespace,
            name=metadata.name,
            type=secret.type or SecretType.OPAQUE.value,
            data=dict(secret.data or {}),
        )


@dataclass(frozen=True)
class WatchScope:
    """Either every namespace (namespace is None) or exactly one."""

    namespace: Optional[str] = None

    @classmethod
    def all_namespaces(cls):
        return cls()

    @classmethod
    def single(cls, namespace):
        return cls(namespace=namespace)

    @property
    def is_single_namespace(self) -> bool:
        return self.namespace is not None


@dataclass(frozen=True)
class UsernamePasswordCredential:
    id: str
    description: str
    username: str
    password: str
    scope: str = GLOBAL_SCOPE


@dataclass(frozen=True)
class SSHPrivateKeyCredential:
    id: str
    description: str
    username: str
    private_key: str
    scope: str = GLOBAL_SCOPE


Credential = Union[UsernamePasswordCredential, SSHPrivateKeyCredential]


@dataclass(frozen=True)
class ForeignCredential:
    """A stored credential of a kind this module does not create."""

    id: str
    kind: str


@dataclass(frozen=True)
class NotTranslatable:
    reason: str


@dataclass(frozen=True)
class BuildConfigRef:
    namespace: str
    name: str
    source_secret_name: Optional[str] = None

    @classmethod
    def from_resource(cls, resource):
        """Build a reference from an OpenShift BuildConfig resource dict."""
        metadata = resource.get("metadata") or {}
        spec = resource.get("spec") or {}
        source = spec.get("source") or {}
        source_secret = source.get("sourceSecret") or {}
        return cls(
            namespace=metadata.get("namespace"),
            name=metadata.get("name"),
            source_secret_name=source_secret.get("name"),
        )
