"""
Data model of a managed PostgreSQL cluster

The desired state comes from the postgresql custom resource, the observed
state is the set of Kubernetes objects the operator created for it.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class NamespacedName:
    namespace: str
    name: str

    def __str__(self):
        return f"{self.namespace}/{self.name}"


ClusterName = NamespacedName
PodName = NamespacedName


class PostgresStatus(str, Enum):
    CREATING = "Creating"
    UPDATING = "Updating"
    UPDATE_FAILED = "UpdateFailed"
    SYNC_FAILED = "SyncFailed"
    CREATE_FAILED = "CreateFailed"
    RUNNING = "Running"
    INVALID = "Invalid"


class PodEventType(str, Enum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class PodEvent:
    """A low-level lifecycle event of one pod of a cluster"""
    cluster_name: ClusterName
    pod_name: PodName
    event_type: PodEventType
    cur_pod: Any = None
    prev_pod: Any = None
    resource_version: str = ""


@dataclass
class PgUser:
    """A database role: name, cleartext password, flags and memberships"""
    name: str
    password: str = ""
    flags: List[str] = field(default_factory=list)
    member_of: List[str] = field(default_factory=list)


@dataclass
class Volume:
    size: str = ""
    storage_class: str = ""


@dataclass
class ResourceDescription:
    cpu: str = ""
    memory: str = ""


@dataclass
class Resources:
    requests: ResourceDescription = field(default_factory=ResourceDescription)
    limits: ResourceDescription = field(default_factory=ResourceDescription)


@dataclass
class PostgresSpec:
    """Desired state declared in the custom resource"""
    team_id: str = ""
    pg_version: str = ""
    parameters: Dict[str, str] = field(default_factory=dict)
    volume: Volume = field(default_factory=Volume)
    resources: Resources = field(default_factory=Resources)
    allowed_source_ranges: List[str] = field(default_factory=list)
    number_of_instances: int = 1
    users: Dict[str, List[str]] = field(default_factory=dict)
    databases: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, spec: Dict[str, Any]) -> "PostgresSpec":
        postgresql = spec.get("postgresql") or {}
        volume = spec.get("volume") or {}
        resources = spec.get("resources") or {}
        requests = resources.get("requests") or {}
        limits = resources.get("limits") or {}

        return cls(
            team_id=spec.get("teamId", ""),
            pg_version=str(postgresql.get("version", "")),
            parameters={k: str(v) for k, v in (postgresql.get("parameters") or {}).items()},
            volume=Volume(size=volume.get("size", ""), storage_class=volume.get("storageClass", "")),
            resources=Resources(
                requests=ResourceDescription(cpu=requests.get("cpu", ""), memory=requests.get("memory", "")),
                limits=ResourceDescription(cpu=limits.get("cpu", ""), memory=limits.get("memory", "")),
            ),
            allowed_source_ranges=list(spec.get("allowedSourceRanges") or []),
            number_of_instances=int(spec.get("numberOfInstances", 1)),
            users={name: list(flags or []) for name, flags in (spec.get("users") or {}).items()},
            databases=dict(spec.get("databases") or {}),
        )


@dataclass
class ObjectMeta:
    name: str
    namespace: str
    uid: str = ""
    resource_version: str = ""
    self_link: str = ""


@dataclass
class Postgresql:
    """The postgresql custom resource: metadata plus desired spec"""
    metadata: ObjectMeta
    spec: PostgresSpec = field(default_factory=PostgresSpec)
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, body: Dict[str, Any]) -> "Postgresql":
        meta = body.get("metadata") or {}
        status = body.get("status")
        return cls(
            metadata=ObjectMeta(
                name=meta["name"],
                namespace=meta.get("namespace", "default"),
                uid=meta.get("uid", ""),
                resource_version=meta.get("resourceVersion", ""),
                self_link=meta.get("selfLink", ""),
            ),
            spec=PostgresSpec.from_dict(body.get("spec") or {}),
            status=status if isinstance(status, str) else None,
        )


@dataclass
class KubeResources:
    """Kubernetes objects owned by a cluster. Pods and PVCs are handled separately."""
    service: Any = None
    endpoint: Any = None
    secrets: Dict[str, Any] = field(default_factory=dict)
    statefulset: Any = None
