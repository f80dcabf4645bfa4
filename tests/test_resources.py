"""
Tests for resource spec derivation
"""

import pytest

from redis_operator import resources
from redis_operator.errors import SpecDerivationError
from redis_operator.resources import ResourceKind
from redis_operator.state import DesiredTopology


class TestSharedResources:
    """Config map and services."""

    def test_config_map(self, topology):
        spec = resources.config_map_spec(topology)

        assert spec.kind == ResourceKind.CONFIG_MAP
        assert spec.name == "redis-settings"
        assert spec.namespace == "default"
        conf = spec.manifest["data"]["redis.conf"]
        assert "cluster-enabled yes" in conf
        assert "port 6379" in conf

    def test_service(self, topology):
        spec = resources.service_spec(topology)

        assert spec.kind == ResourceKind.SERVICE
        assert spec.manifest["kind"] == "Service"
        assert spec.manifest["spec"]["selector"] == {"app": "redis"}
        assert "clusterIP" not in spec.manifest["spec"]

    def test_headless_service(self, topology):
        spec = resources.headless_service_spec(topology)

        assert spec.kind == ResourceKind.HEADLESS_SERVICE
        assert spec.kind.api_kind == "Service"
        assert spec.name == "redis-headless"
        assert spec.manifest["spec"]["clusterIP"] == "None"
        ports = [p["port"] for p in spec.manifest["spec"]["ports"]]
        assert ports == [6379, 16379]

    def test_namespace(self, topology):
        spec = resources.namespace_spec(topology)

        assert spec.kind == ResourceKind.NAMESPACE
        assert spec.namespace is None
        assert str(spec) == "Namespace default"

    def test_derivation_is_deterministic(self, topology):
        assert resources.config_map_spec(topology).manifest == (
            resources.config_map_spec(topology).manifest
        )

    def test_service_name_must_start_with_letter(self):
        topology = DesiredTopology("1redis", "default", 1, 0, "redis")

        with pytest.raises(SpecDerivationError, match="DNS-1035"):
            resources.service_spec(topology)
        with pytest.raises(SpecDerivationError, match="DNS-1035"):
            resources.headless_service_spec(topology)
        # Other kinds only need DNS-1123
        assert resources.config_map_spec(topology).name == "1redis-settings"
        assert resources.leader_pod_spec(topology, 0).name == "1redis-leader-0"


class TestLeaderPods:
    """Leader pod derivation."""

    def test_leader_pod(self, topology):
        spec = resources.leader_pod_spec(topology, 1)

        assert spec.kind == ResourceKind.POD
        assert spec.name == "redis-leader-1"
        labels = spec.manifest["metadata"]["labels"]
        assert labels["app"] == "redis"
        assert labels["redis-node-role"] == "leader"
        assert labels["redis-node-index"] == "1"

    def test_leader_pod_mounts_settings(self, topology):
        pod = resources.leader_pod_spec(topology, 0).manifest
        volume = pod["spec"]["volumes"][0]

        assert volume["configMap"]["name"] == "redis-settings"
        assert pod["spec"]["subdomain"] == "redis-headless"
        assert pod["spec"]["containers"][0]["image"] == "redis:6.2"

    @pytest.mark.parametrize("index", [-1, 3, 10])
    def test_index_out_of_range(self, topology, index):
        with pytest.raises(SpecDerivationError):
            resources.leader_pod_spec(topology, index)

    def test_invalid_name(self):
        topology = DesiredTopology("Redis_Cluster", "default", 1, 0, "redis")

        with pytest.raises(SpecDerivationError):
            resources.leader_pod_spec(topology, 0)

    def test_name_too_long(self):
        topology = DesiredTopology("r" * 60, "default", 1, 0, "redis")

        with pytest.raises(SpecDerivationError):
            resources.leader_pod_spec(topology, 0)


class TestFollowerPods:
    """Follower pod derivation."""

    def test_follower_pod(self, topology):
        spec = resources.follower_pod_spec(topology, 2, 0)

        labels = spec.manifest["metadata"]["labels"]
        assert spec.name == "redis-follower-2-0"
        assert labels["redis-node-role"] == "follower"
        assert labels["redis-leader-index"] == "2"

    def test_follower_index_out_of_range(self, topology):
        with pytest.raises(SpecDerivationError):
            resources.follower_pod_spec(topology, 0, 1)


class TestRenderManifests:
    """Full manifest rendering."""

    def test_render_order(self, topology):
        manifests = resources.render_manifests(topology)

        names = [m["metadata"]["name"] for m in manifests]
        assert names == [
            "redis-settings",
            "redis",
            "redis-headless",
            "redis-leader-0",
            "redis-leader-1",
            "redis-leader-2",
        ]

    def test_render_with_namespace(self, topology):
        manifests = resources.render_manifests(topology, include_namespace=True)

        assert manifests[0]["kind"] == "Namespace"
        assert len(manifests) == 7
