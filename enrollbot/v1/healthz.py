from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from enrollbot.config.settings import Settings, SettingsDep
from enrollbot.v1.core.exceptions import QueueUnavailableError, success_envelope
from enrollbot.v1.infra.queue.schemas import QueueStatsResponse, WorkerStatusResponse
from enrollbot.v1.infra.queue.service import QueueRuntime

router = APIRouter()


class HealthResponse(BaseModel):
    """Health response with worker and queue status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    queue: QueueStatsResponse | None = None
    workers: list[WorkerStatusResponse] = []


def get_runtime(request: Request) -> QueueRuntime | None:
    """The queue runtime attached to the app, if any."""
    return getattr(request.app.state, "queue_runtime", None)


@router.get("/healthz", response_model=dict)
async def health_check(
    request: Request,
    settings: Settings = SettingsDep,
    runtime: QueueRuntime | None = Depends(get_runtime),
):
    """Health check with queue depth and worker status.

    Responds 503 with the queue and worker state in the error details when a
    started worker loop is no longer running.
    """
    queue = None
    workers: list[WorkerStatusResponse] = []

    if runtime is not None:
        queue = runtime.get_queue_stats()
        workers = runtime.worker_statuses()

    stopped = [worker.name for worker in workers if not worker.running]
    if stopped:
        raise QueueUnavailableError(
            f"Queue workers not running: {', '.join(stopped)}",
            queue=queue.model_dump(),
            workers=[worker.model_dump() for worker in workers],
            version=settings.version,
            environment=settings.environment,
        )

    health = HealthResponse(
        ok=True,
        version=settings.version,
        environment=settings.environment,
        timestamp=datetime.now(UTC).isoformat(),
        queue=queue,
        workers=workers,
    )
    return success_envelope(request, health.model_dump())


@router.get("/queue/stats", response_model=dict)
async def queue_stats(
    request: Request, runtime: QueueRuntime | None = Depends(get_runtime)
):
    """Current queue depths and document totals."""
    if runtime is None:
        raise QueueUnavailableError("Queue runtime is not attached")

    return success_envelope(request, runtime.get_queue_stats().model_dump())
