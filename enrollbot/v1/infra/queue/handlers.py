"""
Job executors for the two group operations.

Executors implement the JobExecutor protocol and are registered per job kind
in the job executor registry. GroupJobDispatcher is the execute function the
job worker is started with.
"""

import logging
from typing import Any, Protocol

from enrollbot.v1.core.registries import JobExecutorRegistry, job_executor_registry
from enrollbot.v1.infra.queue.schemas import Job, JobExecutionResult

logger = logging.getLogger(__name__)


class GroupPlatform(Protocol):
    """Messaging-platform client boundary used by the executors."""

    async def add_participant(self, group_ref: str, identity: str) -> Any:
        """Add identity to an existing group. May raise on transport failure."""
        ...

    async def create_group(self, name: str, participants: list[str]) -> Any:
        """Create a group with the given initial participants."""
        ...


def _to_result(value: Any) -> JobExecutionResult:
    # Platform clients report either a bare flag, a dict or nothing at all
    if isinstance(value, JobExecutionResult):
        return value
    if value is None:
        return JobExecutionResult(success=True)
    if isinstance(value, bool):
        return JobExecutionResult(success=value)
    if isinstance(value, dict):
        return JobExecutionResult(
            success=bool(value.get("success", False)),
            detail=value.get("detail") or value.get("message"),
        )
    return JobExecutionResult(success=True, detail=str(value))


class AddToGroupExecutor:
    """
    Adds the job's target identity to an existing group.

    Job fields used: group_ref (group reference), target_id (identity).
    """

    def __init__(self, platform: GroupPlatform):
        self.platform = platform

    async def execute(self, job: Job) -> JobExecutionResult:
        result = _to_result(await self.platform.add_participant(job.group_ref, job.target_id))
        if not result.success:
            logger.info(
                "Add to group rejected",
                extra={"job_id": job.job_id, "group_ref": job.group_ref, "detail": result.detail},
            )
        return result


class CreateGroupExecutor:
    """
    Creates a new group named job.group_ref with job.target_id as its first member.
    """

    def __init__(self, platform: GroupPlatform):
        self.platform = platform

    async def execute(self, job: Job) -> JobExecutionResult:
        created = await self.platform.create_group(job.group_ref, [job.target_id])
        logger.info(
            "Group created",
            extra={"job_id": job.job_id, "group_name": job.group_ref},
        )
        result = _to_result(created)
        if result.success and result.detail is None:
            result = JobExecutionResult(success=True, detail=f"created {job.group_ref}")
        return result


class GroupJobDispatcher:
    """Routes each job to the executor registered for its kind."""

    def __init__(self, registry: JobExecutorRegistry | None = None):
        self.registry = registry or job_executor_registry

    async def __call__(self, job: Job) -> JobExecutionResult:
        executor = self.registry.get(job.kind.value)
        return await executor.execute(job)
