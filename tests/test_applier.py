"""
Tests for idempotent resource creation
"""

import pytest

from redis_operator.applier import ResourceApplier
from redis_operator.errors import (
    ResourceAlreadyExistsError,
    ResourceApplyError,
    is_already_exists,
)
from redis_operator.resources import config_map_spec, leader_pod_spec


class TestAlreadyExistsClassification:
    """Tests for is_already_exists."""

    def test_typed_error(self):
        assert is_already_exists(ResourceAlreadyExistsError("Pod", "redis-leader-0"))

    def test_textual_fallback(self):
        """Untyped errors carrying the platform phrase still count."""
        err = RuntimeError('pods "redis-leader-0" already exists')
        assert is_already_exists(err)

    def test_other_errors(self):
        assert not is_already_exists(ResourceApplyError("Pod", "x", "forbidden", status=403))
        assert not is_already_exists(RuntimeError("connection reset"))


class TestResourceApplier:
    """Tests for ResourceApplier.apply."""

    @pytest.mark.asyncio
    async def test_apply_creates(self, platform, topology):
        applier = ResourceApplier(platform)

        created = await applier.apply(config_map_spec(topology))

        assert created is True
        assert platform.created_names == ["redis-settings"]

    @pytest.mark.asyncio
    async def test_apply_twice_is_idempotent(self, platform, topology):
        """Second apply of an identical spec recovers the collision."""
        applier = ResourceApplier(platform)
        spec = leader_pod_spec(topology, 0)

        first = await applier.apply(spec)
        second = await applier.apply(spec)

        assert first is True
        assert second is False
        assert platform.created_names == ["redis-leader-0"]
        assert len(platform.attempts) == 2

    @pytest.mark.asyncio
    async def test_textual_collision_recovered(self, platform, topology):
        """Platform errors that only carry the message text are recovered."""
        spec = config_map_spec(topology)
        platform.failures[spec.name] = RuntimeError('configmaps "redis-settings" already exists')

        assert await ResourceApplier(platform).apply(spec) is False

    @pytest.mark.asyncio
    async def test_other_error_propagates_unchanged(self, platform, topology):
        spec = config_map_spec(topology)
        error = ResourceApplyError("ConfigMap", spec.name, "forbidden", status=403)
        platform.failures[spec.name] = error

        with pytest.raises(ResourceApplyError) as exc_info:
            await ResourceApplier(platform).apply(spec)

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_collision_logged(self, platform, topology, caplog):
        spec = config_map_spec(topology)
        platform.existing.add(spec.name)

        with caplog.at_level("INFO", logger="redis_operator.applier"):
            await ResourceApplier(platform).apply(spec)

        assert "redis-settings already exists" in caplog.text
