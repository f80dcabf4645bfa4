"""Redis cluster reconciliation engine."""

import asyncio
import logging
import time

from redis_operator import metrics
from redis_operator.bootstrap import BootstrapOrchestrator
from redis_operator.classifier import classify
from redis_operator.errors import RedisOperatorError
from redis_operator.logging_config import new_reconcile_id
from redis_operator.observer import ResourceObserver
from redis_operator.platform import PlatformClient
from redis_operator.state import (
    ClusterKey,
    DesiredTopology,
    LifecyclePhase,
    PhaseRegistry,
    ReconcileResult,
    WorkloadSnapshot,
)

logger = logging.getLogger(__name__)


class ClusterReconciler:
    """Observes a Redis cluster, classifies its phase and bootstraps it when absent.

    Retries are left to whatever drives ``reconcile`` periodically.
    """

    def __init__(
        self,
        platform: PlatformClient,
        registry: PhaseRegistry | None = None,
        orchestrator: BootstrapOrchestrator | None = None,
        create_namespace: bool = False,
    ):
        """Initialize reconciler."""
        self.platform = platform
        self.registry = registry if registry is not None else PhaseRegistry()
        self.observer = ResourceObserver(platform)
        self.orchestrator = orchestrator or BootstrapOrchestrator(
            platform, self.registry, create_namespace=create_namespace
        )
        self._last_phases: dict[ClusterKey, LifecyclePhase] = {}

    async def observe(self, topology: DesiredTopology) -> tuple[WorkloadSnapshot, WorkloadSnapshot]:
        """Fetch the leader and follower snapshots."""
        leaders = await self.observer.fetch_leaders(topology)
        followers = await self.observer.fetch_followers(topology)
        return leaders, followers

    async def current_phase(self, topology: DesiredTopology) -> ReconcileResult:
        """Classify the cluster without taking any action."""
        leaders, followers = await self.observe(topology)
        previous = self.registry.get(topology.key)
        phase = classify(
            topology.leader_replicas,
            topology.followers_per_leader,
            leaders,
            followers,
            previous,
        )
        self._record_phase(topology.key, phase)
        return ReconcileResult(
            key=topology.key,
            phase=phase,
            previous_phase=previous,
            leaders=len(leaders),
            followers=len(followers),
        )

    async def reconcile(
        self, topology: DesiredTopology, timeout: float | None = None
    ) -> ReconcileResult:
        """Run one reconcile cycle.

        A timeout cancels the in-flight platform call and raises
        ``asyncio.TimeoutError``; the cluster state is then unknown but the
        cycle is safe to re-run.
        """
        new_reconcile_id()
        start = time.monotonic()
        try:
            if timeout is not None:
                result = await asyncio.wait_for(self._reconcile(topology), timeout=timeout)
            else:
                result = await self._reconcile(topology)
        except Exception:
            metrics.record_reconcile("error", time.monotonic() - start)
            raise

        outcome = "bootstrapped" if result.bootstrapped else "ok"
        metrics.record_reconcile(outcome, time.monotonic() - start)
        return result

    async def _reconcile(self, topology: DesiredTopology) -> ReconcileResult:
        result = await self.current_phase(topology)

        if result.phase == LifecyclePhase.NOT_EXISTS:
            logger.info("Cluster %s does not exist, creating it", topology.key)
            await self.orchestrator.bootstrap(topology)
            result.bootstrapped = True
        elif result.phase == LifecyclePhase.UNKNOWN:
            logger.warning(
                "Cluster %s has %d/%d leaders and %d/%d followers",
                topology.key,
                result.leaders,
                topology.leader_replicas,
                result.followers,
                topology.expected_followers,
            )

        return result

    def _record_phase(self, key: ClusterKey, phase: LifecyclePhase) -> None:
        last = self._last_phases.get(key)
        if last != phase:
            logger.info(
                "Cluster %s phase: %s -> %s",
                key,
                last.value if last else "None",
                phase.value,
            )
        self._last_phases[key] = phase
        metrics.record_phase(key, phase)

    def last_phases(self) -> dict[ClusterKey, LifecyclePhase]:
        """Last classified phase per cluster."""
        return dict(self._last_phases)

    def forget(self, key: ClusterKey) -> None:
        """Drop all in-memory state for a deleted cluster."""
        self.registry.clear(key)
        self.orchestrator.forget(key)
        self._last_phases.pop(key, None)
        metrics.forget_cluster(key)
        logger.info("Forgot cluster %s", key)


class ReconcileLoop:
    """Periodically reconciles a fixed set of clusters.

    Errors from one cycle are logged and recorded on the result; the next
    tick re-runs the whole cycle.
    """

    def __init__(
        self,
        reconciler: ClusterReconciler,
        topologies: list[DesiredTopology],
        interval: float = 30.0,
        timeout: float | None = None,
    ):
        self.reconciler = reconciler
        self.topologies = list(topologies)
        self.interval = interval
        self.timeout = timeout
        self.results: dict[ClusterKey, ReconcileResult] = {}

    async def run_once(self) -> list[ReconcileResult]:
        """Reconcile every cluster once, in order."""
        results = []
        for topology in self.topologies:
            try:
                result = await self.reconciler.reconcile(topology, timeout=self.timeout)
            except Exception as e:
                expected = isinstance(e, (RedisOperatorError, asyncio.TimeoutError))
                logger.error(
                    "Reconcile of %s failed: %s", topology.key, e, exc_info=not expected
                )
                previous = self.reconciler.registry.get(topology.key)
                result = ReconcileResult(
                    key=topology.key,
                    phase=self.reconciler.last_phases().get(topology.key, LifecyclePhase.UNKNOWN),
                    previous_phase=previous,
                    error=str(e) or type(e).__name__,
                )
            self.results[topology.key] = result
            results.append(result)
        return results

    async def run_forever(self) -> None:
        """Reconcile on a fixed interval until cancelled."""
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)
