"""
Tests for the operator API server
"""

import pytest
from fastapi.testclient import TestClient

from redis_operator.errors import PlatformQueryError
from redis_operator.reconciler import ClusterReconciler, ReconcileLoop
from redis_operator.server import create_app


@pytest.fixture
def loop(platform, topology):
    return ReconcileLoop(ClusterReconciler(platform), [topology], interval=1)


@pytest.fixture
def client(loop):
    """Test client without the background loop."""
    return TestClient(create_app(loop, run_loop=False))


class TestProbes:
    """Liveness and readiness."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["phases"] == "/phases"

    def test_live(self, client):
        response = client.get("/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_ready_before_first_cycle(self, client):
        assert client.get("/ready").status_code == 200

    @pytest.mark.asyncio
    async def test_not_ready_when_reconcile_failing(self, platform, loop, client):
        platform.list_error = PlatformQueryError("default", {}, "connection refused")
        await loop.run_once()

        response = client.get("/ready")

        assert response.status_code == 503
        assert "default/redis" in response.json()["detail"]


class TestPhases:
    """Phase endpoints."""

    def test_phases_before_reconcile(self, client):
        data = client.get("/phases").json()

        assert data["total"] == 1
        assert data["clusters"][0]["phase"] == "Unknown"
        assert data["phases"]["Unknown"] == 1

    @pytest.mark.asyncio
    async def test_phases_after_bootstrap(self, loop, client):
        await loop.run_once()

        data = client.get("/phases").json()
        cluster = data["clusters"][0]

        assert cluster["phase"] == "NotExists"
        assert cluster["latched_phase"] == "Initializing"
        assert cluster["bootstrapped"] is True

    @pytest.mark.asyncio
    async def test_phase_filter(self, platform, loop, client):
        platform.add_pods("leader", 3)
        platform.add_pods("follower", 3)
        await loop.run_once()

        assert len(client.get("/phases", params={"phase": "Ready"}).json()["clusters"]) == 1
        assert client.get("/phases", params={"phase": "Unknown"}).json()["clusters"] == []

    def test_single_cluster(self, client):
        response = client.get("/phases/default/redis")

        assert response.status_code == 200
        assert response.json()["cluster"] == "default/redis"

    def test_unmanaged_cluster(self, client):
        assert client.get("/phases/default/missing").status_code == 404

    def test_trigger_reconcile(self, platform, client):
        response = client.post("/phases/default/redis/reconcile")

        assert response.status_code == 200
        assert response.json()["bootstrapped"] is True
        assert len(platform.created) == 6

    def test_trigger_reconcile_error(self, platform, client):
        platform.list_error = PlatformQueryError("default", {}, "connection refused")

        response = client.post("/phases/default/redis/reconcile")

        assert response.status_code == 502


class TestMetricsEndpoint:
    """Prometheus metrics."""

    def test_metrics_format(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        content_type = response.headers.get("content-type", "")
        assert "text/plain" in content_type or "text/openmetrics" in content_type

    def test_metrics_after_reconcile(self, client):
        client.post("/phases/default/redis/reconcile")

        content = client.get("/metrics").text

        assert "redis_operator_cluster_phase" in content
        assert "redis_operator_reconciles_total" in content
        assert "redis_operator_resource_applies_total" in content
        assert 'cluster="default/redis",phase="NotExists"} 1.0' in content
