"""
Prometheus Metrics for the Redis Cluster Operator

Tracks:
- Current lifecycle phase per cluster
- Resource create outcomes by kind
- Reconcile outcomes and latency
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from redis_operator.state import ClusterKey, LifecyclePhase

# =============================================================================
# Reconcile Metrics
# =============================================================================

# 1 for the cluster's current phase, 0 for every other phase
CLUSTER_PHASE = Gauge(
    "redis_operator_cluster_phase",
    "Current lifecycle phase of a Redis cluster (1 = current)",
    ["cluster", "phase"],
)

RECONCILES_TOTAL = Counter(
    "redis_operator_reconciles_total",
    "Total reconcile cycles",
    ["result"],
)

RECONCILE_LATENCY = Histogram(
    "redis_operator_reconcile_latency_seconds",
    "Reconcile cycle latency in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# =============================================================================
# Resource Metrics
# =============================================================================

# result: created, exists, failed
RESOURCE_APPLIES_TOTAL = Counter(
    "redis_operator_resource_applies_total",
    "Total resource create attempts",
    ["kind", "result"],
)


def record_phase(key: ClusterKey, phase: LifecyclePhase) -> None:
    """Set the phase gauge for a cluster."""
    for candidate in LifecyclePhase:
        CLUSTER_PHASE.labels(cluster=str(key), phase=candidate.value).set(
            1 if candidate == phase else 0
        )


def forget_cluster(key: ClusterKey) -> None:
    """Drop phase series for a deleted cluster."""
    for candidate in LifecyclePhase:
        try:
            CLUSTER_PHASE.remove(str(key), candidate.value)
        except KeyError:
            pass


def record_apply(kind: str, result: str) -> None:
    RESOURCE_APPLIES_TOTAL.labels(kind=kind, result=result).inc()


def record_reconcile(result: str, duration: float) -> None:
    RECONCILES_TOTAL.labels(result=result).inc()
    RECONCILE_LATENCY.observe(duration)


def get_metrics() -> tuple[bytes, str]:
    """Prometheus exposition payload and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST
