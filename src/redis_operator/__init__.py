"""Redis cluster operator: phase classification and cluster bootstrap."""

from redis_operator.bootstrap import BootstrapOrchestrator
from redis_operator.classifier import classify
from redis_operator.reconciler import ClusterReconciler, ReconcileLoop
from redis_operator.state import DesiredTopology, LifecyclePhase, PhaseRegistry

__all__ = [
    "BootstrapOrchestrator",
    "ClusterReconciler",
    "DesiredTopology",
    "LifecyclePhase",
    "PhaseRegistry",
    "ReconcileLoop",
    "classify",
]
__version__ = "0.1.0"
