"""Observation of live Redis pods."""

import logging

from redis_operator.platform import PlatformClient
from redis_operator.state import DesiredTopology, NodeRole, WorkloadRecord, WorkloadSnapshot

logger = logging.getLogger(__name__)


class ResourceObserver:
    """Fetches point-in-time pod snapshots by role.

    One list call per fetch; no retries. ``PlatformQueryError`` from the
    platform propagates to the caller.
    """

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def fetch(
        self, namespace: str, labels: dict[str, str], role: NodeRole
    ) -> WorkloadSnapshot:
        pods = await self.platform.list_pods(namespace, labels)
        records = tuple(WorkloadRecord.from_pod(pod, role) for pod in pods)
        logger.debug("Observed %d %s pods in %s", len(records), role.value, namespace)
        return WorkloadSnapshot(role=role, records=records)

    async def fetch_leaders(self, topology: DesiredTopology) -> WorkloadSnapshot:
        return await self.fetch(topology.namespace, topology.leader_selector(), NodeRole.LEADER)

    async def fetch_followers(self, topology: DesiredTopology) -> WorkloadSnapshot:
        return await self.fetch(
            topology.namespace, topology.follower_selector(), NodeRole.FOLLOWER
        )
