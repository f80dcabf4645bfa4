"""
Pytest configuration and fixtures for Redis operator tests
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from redis_operator.errors import ResourceAlreadyExistsError  # noqa: E402
from redis_operator.state import ROLE_LABEL, DesiredTopology  # noqa: E402


def make_pod(name: str, labels: dict, phase: str = "Running", ip: str = "10.0.0.1"):
    """Build an object shaped like a kubernetes V1Pod."""
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name, labels=dict(labels)),
        status=SimpleNamespace(phase=phase, pod_ip=ip),
    )


class FakePlatform:
    """In-memory PlatformClient.

    Pods are kept per role; creates are recorded in order. Names in
    ``existing`` collide on create, names in ``failures`` raise the mapped
    exception.
    """

    def __init__(self):
        self.pods: dict[str, list] = {"leader": [], "follower": []}
        self.created: list = []
        self.attempts: list = []
        self.existing: set[str] = set()
        self.failures: dict[str, Exception] = {}
        self.list_calls: list = []
        self.list_error: Exception | None = None

    def add_pods(self, role: str, count: int, app: str = "redis") -> None:
        start = len(self.pods[role])
        for i in range(start, start + count):
            self.pods[role].append(
                make_pod(f"redis-{role}-{i}", {"app": app, ROLE_LABEL: role})
            )

    async def list_pods(self, namespace: str, labels: dict) -> list:
        self.list_calls.append((namespace, dict(labels)))
        if self.list_error is not None:
            raise self.list_error
        pods = self.pods.get(labels.get(ROLE_LABEL), [])
        return [
            p for p in pods if all(p.metadata.labels.get(k) == v for k, v in labels.items())
        ]

    async def create(self, spec) -> None:
        self.attempts.append(spec)
        if spec.name in self.failures:
            raise self.failures[spec.name]
        if spec.name in self.existing:
            raise ResourceAlreadyExistsError(spec.kind.value, spec.name)
        self.existing.add(spec.name)
        self.created.append(spec)

    @property
    def created_names(self) -> list[str]:
        return [s.name for s in self.created]

    @property
    def attempted_names(self) -> list[str]:
        return [s.name for s in self.attempts]


@pytest.fixture
def platform():
    """Fresh in-memory platform."""
    return FakePlatform()


@pytest.fixture
def topology():
    """Three leaders with one follower each."""
    return DesiredTopology(
        name="redis",
        namespace="default",
        leader_replicas=3,
        followers_per_leader=1,
        app_label="redis",
    )


@pytest.fixture
def custom_resource():
    """Sample RedisOperator custom resource."""
    return {
        "apiVersion": "db.payu.com/v1",
        "kind": "RedisOperator",
        "metadata": {"name": "redis-cluster", "namespace": "redis"},
        "spec": {
            "leaderReplicas": 3,
            "leaderFollowers": 2,
            "podLabelSelector": {"app": "redis-cluster"},
            "image": "redis:7.0",
        },
    }


@pytest.fixture
def kustomize_output():
    """Multi-document YAML as produced by kustomize build."""
    return """apiVersion: v1
kind: Namespace
metadata:
  name: redis-operator-system
---
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: redisoperators.db.payu.com
---
apiVersion: rbac.authorization.k8s.io/v1
kind: Role
metadata:
  name: leader-election-role
---
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: manager-role
---
apiVersion: rbac.authorization.k8s.io/v1
kind: RoleBinding
metadata:
  name: leader-election-rolebinding
---
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: manager-rolebinding
---
apiVersion: apps/v1
kind: Deployment
metadata:
  name: controller-manager
"""


# Markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
