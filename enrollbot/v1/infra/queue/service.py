"""
Queue runtime: admission API, worker startup and bounded shutdown.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from enrollbot.config.logging import get_logger
from enrollbot.config.settings import Settings
from enrollbot.v1.infra.queue.models import DocumentId, DocumentProgress
from enrollbot.v1.infra.queue.pacing import Pacer
from enrollbot.v1.infra.queue.progress import (
    DocumentProgressAggregator,
    TerminalCallback,
)
from enrollbot.v1.infra.queue.schemas import (
    Job,
    Notification,
    QueueStatsResponse,
    ShutdownResult,
    WorkerStatusResponse,
)
from enrollbot.v1.infra.queue.store import QueueStore
from enrollbot.v1.infra.queue.supervisor import WorkerSupervisor
from enrollbot.v1.infra.queue.worker import (
    BaseQueueWorker,
    ExecuteFn,
    JobWorker,
    NotificationWorker,
    PersistFn,
    SendFn,
)

logger = get_logger(__name__)


class QueueRuntime:
    """
    One explicit queue instance per process.

    Owns the store, the aggregator and both supervised worker loops. The
    admission side only ever calls init_document / enqueue_* which never block
    and never raise for queue reasons.
    """

    def __init__(
        self,
        settings: Settings,
        store: QueueStore | None = None,
        on_completed: TerminalCallback | None = None,
        on_failed: TerminalCallback | None = None,
        pacer: Pacer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.store = store or QueueStore()
        self.aggregator = DocumentProgressAggregator(
            self.store, settings, on_completed=on_completed, on_failed=on_failed
        )
        self.pacer = pacer or Pacer(sleep=sleep)
        self._sleep = sleep
        self._clock = clock

        self.job_worker: JobWorker | None = None
        self.notification_worker: NotificationWorker | None = None
        self._job_task: asyncio.Task | None = None
        self._notification_task: asyncio.Task | None = None
        self._execute_fn: ExecuteFn | None = None
        self._persist_fn: PersistFn | None = None
        self._send_fn: SendFn | None = None

    # Admission API

    def init_document(
        self, document_id: DocumentId, expected_total: int, owner_id: str | None = None
    ) -> DocumentProgress:
        return self.store.init_document(document_id, expected_total, owner_id=owner_id)

    def enqueue_job(self, job: Job) -> bool:
        return self.store.enqueue_job(job)

    def enqueue_notification(self, notification: Notification) -> bool:
        return self.store.enqueue_notification(notification)

    def cancel_document(self, document_id: DocumentId) -> bool:
        return self.store.cancel_document(document_id)

    def get_queue_stats(self) -> QueueStatsResponse:
        return self.store.get_queue_stats()

    def worker_statuses(self) -> list[WorkerStatusResponse]:
        now = self._clock()
        statuses = []
        for worker in (self.job_worker, self.notification_worker):
            if worker is None:
                continue
            state = worker.state
            statuses.append(
                WorkerStatusResponse(
                    name=state.name,
                    running=state.running,
                    phase=state.phase.value,
                    processed=state.processed,
                    restart_count=state.restart_count,
                    last_success_age_seconds=(
                        round(now - state.last_success_at, 3)
                        if state.last_success_at is not None
                        else None
                    ),
                )
            )
        return statuses

    # Worker lifecycle; must be called from inside the running event loop

    def start_job_worker(
        self, execute_fn: ExecuteFn, persist_fn: PersistFn | None = None
    ) -> asyncio.Task:
        if self._is_active(self._job_task):
            logger.warning("Job worker already running")
            return self._job_task

        self._execute_fn = execute_fn
        self._persist_fn = persist_fn
        self.job_worker = JobWorker(
            self.store,
            self.aggregator,
            self.settings,
            execute_fn,
            persist_fn=persist_fn,
            pacer=self.pacer,
            sleep=self._sleep,
            clock=self._clock,
        )
        self._job_task = self._spawn(self.job_worker)
        return self._job_task

    def start_notification_worker(self, send_fn: SendFn) -> asyncio.Task:
        if self._is_active(self._notification_task):
            logger.warning("Notification worker already running")
            return self._notification_task

        self._send_fn = send_fn
        self.notification_worker = NotificationWorker(
            self.store,
            self.settings,
            send_fn,
            pacer=self.pacer,
            sleep=self._sleep,
            clock=self._clock,
        )
        self._notification_task = self._spawn(self.notification_worker)
        return self._notification_task

    async def stop_workers(self, deadline: float | None = None) -> ShutdownResult:
        """
        Close job intake, let both loops drain, and stop them.

        The job loop drains first; the notification loop drains after it so
        summaries produced by the last jobs still go out. If the deadline
        passes first both loops are cancelled and whatever is still queued is
        logged and lost.
        """
        deadline = self.settings.shutdown_timeout_s if deadline is None else deadline
        logger.info("Stopping workers", deadline_s=deadline)

        self.store.intake_open = False
        # Wall clock: the deadline bounds real process shutdown
        started = time.monotonic()
        poll_s = self.settings.shutdown_poll_interval_ms / 1000

        if self.job_worker is not None:
            self.job_worker.begin_drain()

        while True:
            job_done = not self._is_active(self._job_task)
            if job_done and self.notification_worker is not None:
                self.notification_worker.begin_drain()

            if job_done and not self._is_active(self._notification_task):
                break

            remaining = deadline - (time.monotonic() - started)
            if remaining <= 0:
                break

            logger.info(
                "Waiting for queues to empty",
                jobs_remaining=self.store.job_depth,
                notifications_remaining=self.store.notification_depth,
            )
            await asyncio.sleep(min(poll_s, remaining))

        forced = self._is_active(self._job_task) or self._is_active(
            self._notification_task
        )
        if forced:
            await self._force_stop()

        result = ShutdownResult(
            drained=self.store.job_depth == 0 and self.store.notification_depth == 0,
            jobs_remaining=self.store.job_depth,
            notifications_remaining=self.store.notification_depth,
            elapsed_s=round(time.monotonic() - started, 3),
        )

        if result.drained and not forced:
            logger.info("Workers stopped successfully, queues empty", elapsed_s=result.elapsed_s)
        else:
            logger.warning(
                "Shutdown timeout, forcing stop"
                if forced
                else "Workers stopped with undrained queues",
                jobs_remaining=result.jobs_remaining,
                notifications_remaining=result.notifications_remaining,
                pending_documents=self.store.pending_document_ids(),
            )

        return result

    async def restart_workers(self, deadline: float | None = None) -> ShutdownResult:
        """Drain and stop through stop_workers, then start both loops again."""
        if self._execute_fn is None or self._send_fn is None:
            raise RuntimeError("Workers must be started before they can be restarted")

        logger.info("Restart requested")
        result = await self.stop_workers(deadline)

        self.store.intake_open = True
        self.start_job_worker(self._execute_fn, persist_fn=self._persist_fn)
        self.start_notification_worker(self._send_fn)
        logger.info("Workers restarted", drained=result.drained)
        return result

    async def _force_stop(self) -> None:
        tasks = []
        for worker, task in (
            (self.job_worker, self._job_task),
            (self.notification_worker, self._notification_task),
        ):
            if worker is not None:
                worker.stop()
            if self._is_active(task):
                task.cancel()
                tasks.append(task)

        await asyncio.gather(*tasks, return_exceptions=True)

    def _spawn(self, worker: BaseQueueWorker) -> asyncio.Task:
        worker.state.running = True
        supervisor = WorkerSupervisor(
            worker, self.settings, sleep=self._sleep, clock=self._clock
        )
        return asyncio.create_task(supervisor.run(), name=f"{worker.name}-worker")

    @staticmethod
    def _is_active(task: asyncio.Task | None) -> bool:
        return task is not None and not task.done()
