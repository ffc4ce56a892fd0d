from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from enrollbot.v1.core.registries import JobExecutorRegistry
from enrollbot.v1.infra.queue.handlers import (
    AddToGroupExecutor,
    CreateGroupExecutor,
    GroupJobDispatcher,
)
from enrollbot.v1.infra.queue.models import JobKind
from enrollbot.v1.infra.queue.registry_init import register_job_executors


@pytest.fixture
def platform():
    platform = MagicMock()
    platform.add_participant = AsyncMock(return_value=None)
    platform.create_group = AsyncMock(return_value={"success": True})
    return platform


@pytest.fixture
def registry(platform):
    return register_job_executors(platform, JobExecutorRegistry())


class TestExecutors:
    @pytest.mark.asyncio
    async def test_add_to_group_success(self, platform, make_job):
        result = await AddToGroupExecutor(platform).execute(make_job())

        assert result.success is True
        platform.add_participant.assert_awaited_once_with(
            "120363000000000001@g.us", "59170000001@c.us"
        )

    @pytest.mark.asyncio
    async def test_add_to_group_rejection_carries_reason(self, platform, make_job):
        platform.add_participant.return_value = {"success": False, "message": "not admin"}

        result = await AddToGroupExecutor(platform).execute(make_job())

        assert result.success is False
        assert result.detail == "not admin"

    @pytest.mark.asyncio
    async def test_create_group_uses_group_ref_as_name(self, platform, make_job):
        job = make_job(kind=JobKind.CREATE_GROUP, group_ref="MAT101 Study Group")

        result = await CreateGroupExecutor(platform).execute(job)

        assert result.success is True
        assert result.detail == "created MAT101 Study Group"
        platform.create_group.assert_awaited_once_with(
            "MAT101 Study Group", ["59170000001@c.us"]
        )

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, platform, make_job):
        platform.add_participant.side_effect = ConnectionError("socket closed")

        with pytest.raises(ConnectionError):
            await AddToGroupExecutor(platform).execute(make_job())


class TestDispatcher:
    def test_registration_covers_every_kind(self, registry):
        assert sorted(registry.list()) == sorted(kind.value for kind in JobKind)
        assert not registry.is_frozen()

    def test_registry_frozen_outside_development(self, platform):
        with patch("enrollbot.v1.infra.queue.registry_init.settings") as settings:
            settings.environment = "production"
            registry = register_job_executors(platform, JobExecutorRegistry())

        assert registry.is_frozen()

    @pytest.mark.asyncio
    async def test_dispatch_by_kind(self, registry, platform, make_job):
        dispatcher = GroupJobDispatcher(registry)

        await dispatcher(make_job(kind=JobKind.CREATE_GROUP, group_ref="New"))
        await dispatcher(make_job())

        platform.create_group.assert_awaited_once()
        platform.add_participant.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unregistered_kind_raises(self, make_job):
        dispatcher = GroupJobDispatcher(JobExecutorRegistry())

        with pytest.raises(KeyError):
            await dispatcher(make_job())
