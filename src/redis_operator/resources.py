"""Resource specs derived from a desired topology.

Every resource the operator creates is a plain Kubernetes manifest wrapped
in a ``ResourceSpec``. Specs are stateless values; derivation is
deterministic for a given topology and index.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from redis_operator.errors import SpecDerivationError
from redis_operator.state import (
    APP_LABEL,
    CLUSTER_BUS_OFFSET,
    ROLE_LABEL,
    DesiredTopology,
    NodeRole,
)

INDEX_LABEL = "redis-node-index"
LEADER_INDEX_LABEL = "redis-leader-index"
MANAGED_BY = "redis-operator"

CONFIG_MOUNT_PATH = "/usr/local/etc/redis"

_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
# Service names must also start with a letter
_DNS_1035_LABEL = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")


class ResourceKind(str, Enum):
    """Kinds of resources the operator creates."""

    NAMESPACE = "Namespace"
    CONFIG_MAP = "ConfigMap"
    SERVICE = "Service"
    HEADLESS_SERVICE = "HeadlessService"
    POD = "Pod"

    @property
    def api_kind(self) -> str:
        """Kubernetes kind of the manifest."""
        if self is ResourceKind.HEADLESS_SERVICE:
            return "Service"
        return self.value


@dataclass(frozen=True)
class ResourceSpec:
    """A declarative resource to create on the platform."""

    kind: ResourceKind
    name: str
    namespace: str | None
    manifest: dict[str, Any] = field(hash=False, compare=False)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind.value} {self.namespace}/{self.name}"
        return f"{self.kind.value} {self.name}"


def _check_name(name: str) -> str:
    if len(name) > 63 or not _DNS_LABEL.match(name):
        raise SpecDerivationError(f"invalid resource name {name!r}: not a DNS-1123 label")
    return name


def _check_service_name(name: str) -> str:
    if len(name) > 63 or not _DNS_1035_LABEL.match(name):
        raise SpecDerivationError(f"invalid service name {name!r}: not a DNS-1035 label")
    return name


def _labels(topology: DesiredTopology, **extra: str) -> dict[str, str]:
    labels = {
        APP_LABEL: topology.app_label,
        "app.kubernetes.io/managed-by": MANAGED_BY,
        "app.kubernetes.io/instance": topology.name,
    }
    labels.update(extra)
    return labels


def _metadata(topology: DesiredTopology, name: str, labels: dict[str, str]) -> dict[str, Any]:
    return {"name": name, "namespace": topology.namespace, "labels": labels}


def config_map_name(topology: DesiredTopology) -> str:
    return f"{topology.name}-settings"


def headless_service_name(topology: DesiredTopology) -> str:
    return f"{topology.name}-headless"


def leader_pod_name(topology: DesiredTopology, index: int) -> str:
    return f"{topology.name}-leader-{index}"


def follower_pod_name(topology: DesiredTopology, leader_index: int, follower_index: int) -> str:
    return f"{topology.name}-follower-{leader_index}-{follower_index}"


def redis_conf(topology: DesiredTopology) -> str:
    """Render the redis.conf shared by every node."""
    return "\n".join(
        [
            f"port {topology.port}",
            "cluster-enabled yes",
            "cluster-config-file nodes.conf",
            "cluster-node-timeout 5000",
            "appendonly yes",
            "protected-mode no",
            "",
        ]
    )


def namespace_spec(topology: DesiredTopology) -> ResourceSpec:
    name = _check_name(topology.namespace)
    manifest = {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name, "labels": {"app.kubernetes.io/managed-by": MANAGED_BY}},
    }
    return ResourceSpec(ResourceKind.NAMESPACE, name, None, manifest)


def config_map_spec(topology: DesiredTopology) -> ResourceSpec:
    name = _check_name(config_map_name(topology))
    manifest = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(topology, name, _labels(topology)),
        "data": {"redis.conf": redis_conf(topology)},
    }
    return ResourceSpec(ResourceKind.CONFIG_MAP, name, topology.namespace, manifest)


def service_spec(topology: DesiredTopology) -> ResourceSpec:
    name = _check_service_name(topology.name)
    manifest = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(topology, name, _labels(topology)),
        "spec": {
            "type": "ClusterIP",
            "selector": {APP_LABEL: topology.app_label},
            "ports": [
                {"name": "redis", "port": topology.port, "targetPort": topology.port},
            ],
        },
    }
    return ResourceSpec(ResourceKind.SERVICE, name, topology.namespace, manifest)


def headless_service_spec(topology: DesiredTopology) -> ResourceSpec:
    name = _check_service_name(headless_service_name(topology))
    manifest = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(topology, name, _labels(topology)),
        "spec": {
            "clusterIP": "None",
            "publishNotReadyAddresses": True,
            "selector": {APP_LABEL: topology.app_label},
            "ports": [
                {"name": "redis", "port": topology.port, "targetPort": topology.port},
                {
                    "name": "cluster-bus",
                    "port": topology.port + CLUSTER_BUS_OFFSET,
                    "targetPort": topology.port + CLUSTER_BUS_OFFSET,
                },
            ],
        },
    }
    return ResourceSpec(ResourceKind.HEADLESS_SERVICE, name, topology.namespace, manifest)


def _pod_manifest(topology: DesiredTopology, name: str, labels: dict[str, str]) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": _metadata(topology, name, labels),
        "spec": {
            "hostname": name,
            "subdomain": headless_service_name(topology),
            "containers": [
                {
                    "name": "redis",
                    "image": topology.image,
                    "command": ["redis-server", f"{CONFIG_MOUNT_PATH}/redis.conf"],
                    "ports": [
                        {"name": "redis", "containerPort": topology.port},
                        {
                            "name": "cluster-bus",
                            "containerPort": topology.port + CLUSTER_BUS_OFFSET,
                        },
                    ],
                    "readinessProbe": {
                        "exec": {"command": ["redis-cli", "-p", str(topology.port), "ping"]},
                        "initialDelaySeconds": 5,
                        "periodSeconds": 5,
                    },
                    "volumeMounts": [{"name": "config", "mountPath": CONFIG_MOUNT_PATH}],
                }
            ],
            "volumes": [
                {"name": "config", "configMap": {"name": config_map_name(topology)}},
            ],
        },
    }


def leader_pod_spec(topology: DesiredTopology, index: int) -> ResourceSpec:
    """Derive the pod spec for leader ``index`` (0-based)."""
    if index < 0 or index >= topology.leader_replicas:
        raise SpecDerivationError(
            f"leader index {index} out of range for {topology.leader_replicas} leaders"
        )
    name = _check_name(leader_pod_name(topology, index))
    labels = _labels(topology, **{ROLE_LABEL: NodeRole.LEADER.value, INDEX_LABEL: str(index)})
    manifest = _pod_manifest(topology, name, labels)
    return ResourceSpec(ResourceKind.POD, name, topology.namespace, manifest)


def follower_pod_spec(
    topology: DesiredTopology, leader_index: int, follower_index: int
) -> ResourceSpec:
    """Derive the pod spec for a follower of leader ``leader_index``."""
    if leader_index < 0 or leader_index >= topology.leader_replicas:
        raise SpecDerivationError(
            f"leader index {leader_index} out of range for {topology.leader_replicas} leaders"
        )
    if follower_index < 0 or follower_index >= topology.followers_per_leader:
        raise SpecDerivationError(
            f"follower index {follower_index} out of range for "
            f"{topology.followers_per_leader} followers per leader"
        )
    name = _check_name(follower_pod_name(topology, leader_index, follower_index))
    labels = _labels(
        topology,
        **{
            ROLE_LABEL: NodeRole.FOLLOWER.value,
            INDEX_LABEL: str(follower_index),
            LEADER_INDEX_LABEL: str(leader_index),
        },
    )
    manifest = _pod_manifest(topology, name, labels)
    return ResourceSpec(ResourceKind.POD, name, topology.namespace, manifest)


def render_manifests(topology: DesiredTopology, include_namespace: bool = False) -> list[dict[str, Any]]:
    """All manifests a bootstrap would create, in creation order."""
    specs = []
    if include_namespace:
        specs.append(namespace_spec(topology))
    specs.extend(
        [
            config_map_spec(topology),
            service_spec(topology),
            headless_service_spec(topology),
        ]
    )
    specs.extend(leader_pod_spec(topology, i) for i in range(topology.leader_replicas))
    return [s.manifest for s in specs]
