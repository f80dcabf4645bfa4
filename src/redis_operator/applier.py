"""Idempotent create of a single resource."""

import logging

from redis_operator import metrics
from redis_operator.errors import is_already_exists
from redis_operator.platform import PlatformClient
from redis_operator.resources import ResourceSpec

logger = logging.getLogger(__name__)


class ResourceApplier:
    """Create-if-absent on top of the platform's atomic create.

    A name collision counts as success so a partially completed bootstrap
    can be re-run. Every other error propagates unchanged.
    """

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def apply(self, spec: ResourceSpec) -> bool:
        """Create ``spec``. Returns False if it already existed."""
        try:
            await self.platform.create(spec)
        except Exception as e:
            if not is_already_exists(e):
                metrics.record_apply(spec.kind.value, "failed")
                raise
            logger.info("%s already exists", spec)
            metrics.record_apply(spec.kind.value, "exists")
            return False

        logger.info("Created %s", spec)
        metrics.record_apply(spec.kind.value, "created")
        return True
