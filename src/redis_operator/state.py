"""State definitions for Redis cluster reconciliation."""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator

ROLE_LABEL = "redis-node-role"
APP_LABEL = "app"

CR_KIND = "RedisOperator"

# The cluster bus listens on port + 10000, which must stay a valid TCP port
CLUSTER_BUS_OFFSET = 10000
MAX_CLIENT_PORT = 65535 - CLUSTER_BUS_OFFSET


class LifecyclePhase(str, Enum):
    """Lifecycle phase of a Redis cluster."""

    NOT_EXISTS = "NotExists"
    INITIALIZING = "Initializing"
    READY = "Ready"
    UNKNOWN = "Unknown"


class NodeRole(str, Enum):
    """Role of a Redis node within the cluster topology."""

    LEADER = "leader"
    FOLLOWER = "follower"


@dataclass(frozen=True)
class ClusterKey:
    """Identity of a single cluster custom resource."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class DesiredTopology:
    """Desired shape of a Redis cluster, read from its custom resource."""

    name: str
    namespace: str
    leader_replicas: int
    followers_per_leader: int
    app_label: str
    image: str = "redis:6.2"
    port: int = 6379

    def __post_init__(self):
        if isinstance(self.leader_replicas, bool) or not isinstance(self.leader_replicas, int):
            raise ValueError(f"leader_replicas must be an integer, got {self.leader_replicas!r}")
        if self.leader_replicas < 1:
            raise ValueError(f"leader_replicas must be >= 1, got {self.leader_replicas}")
        if isinstance(self.followers_per_leader, bool) or not isinstance(
            self.followers_per_leader, int
        ):
            raise ValueError(
                f"followers_per_leader must be an integer, got {self.followers_per_leader!r}"
            )
        if self.followers_per_leader < 0:
            raise ValueError(
                f"followers_per_leader must be >= 0, got {self.followers_per_leader}"
            )
        if not self.app_label:
            raise ValueError("app_label must not be empty")
        if not self.name or not self.namespace:
            raise ValueError("name and namespace are required")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError(f"port must be an integer, got {self.port!r}")
        if not 1 <= self.port <= MAX_CLIENT_PORT:
            raise ValueError(f"port must be between 1 and {MAX_CLIENT_PORT}, got {self.port}")

    @property
    def key(self) -> ClusterKey:
        return ClusterKey(namespace=self.namespace, name=self.name)

    @property
    def expected_followers(self) -> int:
        """Total follower count the cluster should run."""
        return self.leader_replicas * self.followers_per_leader

    def selector(self, role: NodeRole) -> dict[str, str]:
        return {APP_LABEL: self.app_label, ROLE_LABEL: role.value}

    def leader_selector(self) -> dict[str, str]:
        return self.selector(NodeRole.LEADER)

    def follower_selector(self) -> dict[str, str]:
        return self.selector(NodeRole.FOLLOWER)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "namespace": self.namespace,
            "leader_replicas": self.leader_replicas,
            "followers_per_leader": self.followers_per_leader,
            "app_label": self.app_label,
            "image": self.image,
            "port": self.port,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DesiredTopology":
        """Build from a flat mapping (the format used by desired-state files)."""
        kwargs: dict[str, Any] = {
            "name": data["name"],
            "namespace": data.get("namespace", "default"),
            "leader_replicas": data["leader_replicas"],
            "followers_per_leader": data.get("followers_per_leader", 0),
            "app_label": data.get("app_label", data["name"]),
        }
        if data.get("image"):
            kwargs["image"] = data["image"]
        if data.get("port"):
            kwargs["port"] = int(data["port"])
        return cls(**kwargs)

    @classmethod
    def from_custom_resource(cls, obj: dict[str, Any]) -> "DesiredTopology":
        """Build from a RedisOperator custom resource object."""
        metadata = obj.get("metadata", {})
        spec = obj.get("spec", {})
        selector = spec.get("podLabelSelector", {})
        kwargs: dict[str, Any] = {
            "name": metadata["name"],
            "namespace": metadata.get("namespace", "default"),
            "leader_replicas": spec["leaderReplicas"],
            "followers_per_leader": spec.get("leaderFollowers", 0),
            "app_label": selector.get("app", metadata["name"]),
        }
        if spec.get("image"):
            kwargs["image"] = spec["image"]
        if spec.get("port"):
            kwargs["port"] = int(spec["port"])
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> "DesiredTopology":
        """Load desired topology from a YAML file."""
        import yaml

        with open(path) as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping, got {type(data).__name__}")
        if data.get("kind") == CR_KIND:
            return cls.from_custom_resource(data)
        return cls.from_dict(data)


@dataclass(frozen=True)
class WorkloadRecord:
    """A single observed Redis pod."""

    name: str
    role: NodeRole
    phase: str = "Unknown"
    ip: str | None = None
    labels: dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def from_pod(cls, pod: Any, role: NodeRole) -> "WorkloadRecord":
        """Build from a kubernetes V1Pod."""
        status = getattr(pod, "status", None)
        return cls(
            name=pod.metadata.name,
            role=role,
            phase=getattr(status, "phase", None) or "Unknown",
            ip=getattr(status, "pod_ip", None),
            labels=dict(pod.metadata.labels or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "role": self.role.value,
            "phase": self.phase,
            "ip": self.ip,
        }


@dataclass(frozen=True)
class WorkloadSnapshot:
    """Point-in-time list of pods matching one role selector."""

    role: NodeRole
    records: tuple[WorkloadRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[WorkloadRecord]:
        return iter(self.records)

    @property
    def names(self) -> list[str]:
        return [r.name for r in self.records]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "role": self.role.value,
            "count": len(self.records),
            "pods": [r.to_dict() for r in self.records],
        }


class PhaseRegistry:
    """Last-known lifecycle phase per cluster, held in reconciler memory.

    Breaks the zero-leader ambiguity between a cluster that was never
    created and one whose bootstrap is still in flight. Reset on restart.
    """

    def __init__(self):
        self._phases: dict[ClusterKey, LifecyclePhase] = {}
        self._lock = threading.Lock()

    def get(self, key: ClusterKey) -> LifecyclePhase:
        with self._lock:
            return self._phases.get(key, LifecyclePhase.UNKNOWN)

    def set(self, key: ClusterKey, phase: LifecyclePhase) -> None:
        with self._lock:
            self._phases[key] = phase

    def clear(self, key: ClusterKey) -> None:
        with self._lock:
            self._phases.pop(key, None)

    def snapshot(self) -> dict[ClusterKey, LifecyclePhase]:
        with self._lock:
            return dict(self._phases)


@dataclass
class ReconcileResult:
    """Outcome of one reconcile cycle."""

    key: ClusterKey
    phase: LifecyclePhase
    previous_phase: LifecyclePhase
    leaders: int = 0
    followers: int = 0
    bootstrapped: bool = False
    error: str | None = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cluster": str(self.key),
            "phase": self.phase.value,
            "previous_phase": self.previous_phase.value,
            "leaders": self.leaders,
            "followers": self.followers,
            "bootstrapped": self.bootstrapped,
            "error": self.error,
            "timestamp": self.timestamp,
        }
