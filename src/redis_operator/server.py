"""
Operator API Server

FastAPI server exposing liveness, readiness, per-cluster phases and
Prometheus metrics for the operator process.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from redis_operator import metrics
from redis_operator.reconciler import ReconcileLoop
from redis_operator.state import ClusterKey, LifecyclePhase

logger = logging.getLogger(__name__)


# API Models
class ClusterPhase(BaseModel):
    """Last reconcile outcome for one cluster."""
    cluster: str
    phase: LifecyclePhase
    latched_phase: LifecyclePhase
    leaders: int = 0
    followers: int = 0
    bootstrapped: bool = False
    error: Optional[str] = None
    timestamp: Optional[datetime] = None


class PhaseSummary(BaseModel):
    """Phase counts across all managed clusters."""
    total: int
    phases: Dict[str, int]
    clusters: List[ClusterPhase]


def _cluster_phase(loop: ReconcileLoop, key: ClusterKey) -> ClusterPhase:
    reconciler = loop.reconciler
    result = loop.results.get(key)
    phase = reconciler.last_phases().get(key, LifecyclePhase.UNKNOWN)
    return ClusterPhase(
        cluster=str(key),
        phase=phase,
        latched_phase=reconciler.registry.get(key),
        leaders=result.leaders if result else 0,
        followers=result.followers if result else 0,
        bootstrapped=result.bootstrapped if result else False,
        error=result.error if result else None,
        timestamp=datetime.fromisoformat(result.timestamp) if result else None,
    )


def create_app(loop: ReconcileLoop, run_loop: bool = True) -> FastAPI:
    """Build the API app around a reconcile loop.

    With ``run_loop`` the loop runs as a background task for the app's lifetime.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = None
        if run_loop:
            task = asyncio.create_task(loop.run_forever())
            logger.info("Reconcile loop started for %d clusters", len(loop.topologies))
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                logger.info("Reconcile loop stopped")

    app = FastAPI(
        title="Redis Cluster Operator",
        description="Phase and health API for the Redis cluster operator",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.loop = loop

    @app.get("/")
    async def root():
        """API root."""
        return {"message": "Redis Cluster Operator", "docs": "/docs", "phases": "/phases"}

    @app.get("/phases", response_model=PhaseSummary)
    async def get_phases(
        phase: Optional[LifecyclePhase] = Query(None, description="Filter by phase"),
    ):
        """Get the last known phase of every managed cluster."""
        clusters = [_cluster_phase(loop, t.key) for t in loop.topologies]
        counts: Dict[str, int] = {p.value: 0 for p in LifecyclePhase}
        for c in clusters:
            counts[c.phase.value] += 1
        if phase:
            clusters = [c for c in clusters if c.phase == phase]
        return PhaseSummary(total=len(loop.topologies), phases=counts, clusters=clusters)

    @app.get("/phases/{namespace}/{name}", response_model=ClusterPhase)
    async def get_cluster_phase(namespace: str, name: str):
        """Get the phase of one cluster."""
        key = ClusterKey(namespace=namespace, name=name)
        if key not in {t.key for t in loop.topologies}:
            raise HTTPException(status_code=404, detail=f"Cluster not managed: {key}")
        return _cluster_phase(loop, key)

    @app.post("/phases/{namespace}/{name}/reconcile", response_model=ClusterPhase)
    async def trigger_reconcile(namespace: str, name: str):
        """Run one reconcile cycle for a cluster immediately."""
        key = ClusterKey(namespace=namespace, name=name)
        topology = next((t for t in loop.topologies if t.key == key), None)
        if topology is None:
            raise HTTPException(status_code=404, detail=f"Cluster not managed: {key}")
        try:
            result = await loop.reconciler.reconcile(topology, timeout=loop.timeout)
        except asyncio.TimeoutError:
            raise HTTPException(status_code=504, detail=f"Reconcile of {key} timed out")
        except Exception as e:
            raise HTTPException(status_code=502, detail=str(e))
        loop.results[key] = result
        return _cluster_phase(loop, key)

    @app.get("/ready")
    async def readiness():
        """Kubernetes-style readiness probe."""
        failing = [str(k) for k, r in loop.results.items() if not r.ok]
        if failing:
            raise HTTPException(status_code=503, detail=f"Reconcile failing: {', '.join(failing)}")
        return {"status": "ready"}

    @app.get("/live")
    async def liveness():
        """Kubernetes-style liveness probe."""
        return {"status": "alive"}

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics endpoint."""
        payload, content_type = metrics.get_metrics()
        return Response(content=payload, media_type=content_type)

    return app
