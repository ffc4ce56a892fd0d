"""
Job executor registration.

Executors need a live platform client, so registration happens at startup
rather than on import.
"""

import logging

from enrollbot.config.settings import settings
from enrollbot.v1.core.registries import JobExecutorRegistry, job_executor_registry
from enrollbot.v1.infra.queue.handlers import (
    AddToGroupExecutor,
    CreateGroupExecutor,
    GroupPlatform,
)
from enrollbot.v1.infra.queue.models import JobKind

logger = logging.getLogger(__name__)


def register_job_executors(
    platform: GroupPlatform, registry: JobExecutorRegistry | None = None
) -> JobExecutorRegistry:
    """Register the group executors for every job kind."""
    registry = registry or job_executor_registry

    logger.info("Registering job executors")

    registry.register(JobKind.ADD_TO_GROUP.value, AddToGroupExecutor(platform))
    registry.register(JobKind.CREATE_GROUP.value, CreateGroupExecutor(platform))

    # No runtime re-registration outside development
    if settings.environment != "development":
        registry.freeze()

    logger.info(
        "Job executors registered", extra={"registered_executors": registry.list()}
    )
    return registry
