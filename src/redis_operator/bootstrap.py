"""Cluster bootstrap: ordered creation of the resources a new cluster needs."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from redis_operator import resources
from redis_operator.applier import ResourceApplier
from redis_operator.platform import PlatformClient
from redis_operator.resources import ResourceSpec
from redis_operator.state import ClusterKey, DesiredTopology, LifecyclePhase, PhaseRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapStep:
    """One named, idempotent step of a bootstrap.

    ``derive`` builds the spec when the step runs, so a derivation failure
    aborts at this step and never earlier.
    """

    name: str
    derive: Callable[[], ResourceSpec]


class FollowerProvisioner(Protocol):
    """Hook run after all leaders are applied.

    The place to create follower pods and to advance the phase latch past
    ``Initializing``.
    """

    async def provision(
        self, topology: DesiredTopology, applier: ResourceApplier, registry: PhaseRegistry
    ) -> None:
        ...


class NoFollowerProvisioner:
    """Default hook: followers are not created and the phase is not advanced."""

    async def provision(
        self, topology: DesiredTopology, applier: ResourceApplier, registry: PhaseRegistry
    ) -> None:
        if topology.followers_per_leader:
            logger.info(
                "Follower creation not implemented; %d followers for %s left unprovisioned",
                topology.expected_followers,
                topology.key,
            )


class BootstrapOrchestrator:
    """Creates config, services and leader pods for a new cluster."""

    def __init__(
        self,
        platform: PlatformClient,
        registry: PhaseRegistry,
        followers: FollowerProvisioner | None = None,
        create_namespace: bool = False,
    ):
        self.applier = ResourceApplier(platform)
        self.registry = registry
        self.followers = followers or NoFollowerProvisioner()
        self.create_namespace = create_namespace
        self._locks: dict[ClusterKey, asyncio.Lock] = {}

    def steps(self, topology: DesiredTopology) -> list[BootstrapStep]:
        """Ordered bootstrap steps for ``topology``."""
        steps = []
        if self.create_namespace:
            steps.append(BootstrapStep("namespace", lambda: resources.namespace_spec(topology)))
        steps.extend(
            [
                BootstrapStep("config-map", lambda: resources.config_map_spec(topology)),
                BootstrapStep("service", lambda: resources.service_spec(topology)),
                BootstrapStep(
                    "headless-service", lambda: resources.headless_service_spec(topology)
                ),
            ]
        )
        for i in range(topology.leader_replicas):
            steps.append(
                BootstrapStep(f"leader-{i}", lambda i=i: resources.leader_pod_spec(topology, i))
            )
        return steps

    async def run_step(self, step: BootstrapStep) -> bool:
        """Derive and apply a single step. Returns False if it already existed."""
        spec = step.derive()
        logger.info("Bootstrap step %s: applying %s", step.name, spec)
        return await self.applier.apply(spec)

    async def bootstrap(self, topology: DesiredTopology) -> None:
        """Create every resource for ``topology``, stopping at the first fatal error.

        The phase latch is set to ``Initializing`` before any work. Nothing
        is rolled back on failure; a later call completes the remaining
        steps since each step tolerates already-existing resources.
        """
        key = topology.key
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            self.registry.set(key, LifecyclePhase.INITIALIZING)
            logger.info("Bootstrapping cluster %s: phase %s", key, LifecyclePhase.INITIALIZING.value)

            for step in self.steps(topology):
                try:
                    await self.run_step(step)
                except Exception as e:
                    logger.error("Bootstrap of %s aborted at step %s: %s", key, step.name, e)
                    raise

            await self.followers.provision(topology, self.applier, self.registry)
            logger.info("Bootstrap of %s finished creating resources", key)

    def forget(self, key: ClusterKey) -> None:
        """Drop the bootstrap lock held for a deleted cluster."""
        self._locks.pop(key, None)
