"""
Sequential job and notification worker loops.

Each loop handles exactly one item at a time so the messaging platform sees
paced, serialized traffic. Suspension points are the empty-queue poll, the
backoff between attempts and the pacing between operations; the running flag
is re-checked after each of them.
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any

from enrollbot.config.logging import get_logger
from enrollbot.config.settings import Settings
from enrollbot.v1.infra.queue.models import DocumentId, WorkerPhase, WorkerRuntimeState
from enrollbot.v1.infra.queue.pacing import Pacer
from enrollbot.v1.infra.queue.progress import DocumentProgressAggregator
from enrollbot.v1.infra.queue.schemas import (
    Job,
    JobExecutionResult,
    JobOutcome,
    Notification,
)
from enrollbot.v1.infra.queue.store import QueueStore

logger = get_logger(__name__)

ExecuteFn = Callable[[Job], Awaitable[Any]]
SendFn = Callable[[Notification], Awaitable[Any]]
PersistFn = Callable[[DocumentId | int | str, bool, int, str | None], Any]


class BaseQueueWorker:
    """Shared lifecycle for the sequential queue loops."""

    name = "worker"

    def __init__(
        self,
        store: QueueStore,
        settings: Settings,
        pacer: Pacer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.settings = settings
        self.pacer = pacer or Pacer(sleep=sleep)
        self._sleep = sleep
        self._clock = clock
        self.state = WorkerRuntimeState(name=self.name)
        self.draining = False

    @property
    def running(self) -> bool:
        return self.state.running

    def stop(self) -> None:
        """Stop dequeuing; an item already dequeued runs to completion."""
        self.state.running = False

    def begin_drain(self) -> None:
        """Keep working until the queue is empty, then exit the loop."""
        self.draining = True

    async def _poll_wait(self) -> None:
        self.state.phase = WorkerPhase.IDLE
        await self._sleep(self.settings.queue_poll_interval_ms / 1000)

    def _mark_processed(self, queue_size: int) -> None:
        state = self.state
        state.processed += 1
        state.last_success_at = self._clock()

        if (
            state.restart_count
            and state.started_at is not None
            and state.last_success_at - state.started_at
            >= self.settings.worker_restart_reset_window_s
        ):
            logger.info(
                "Restart counter reset after sustained uptime",
                worker=self.name,
                previous_restart_count=state.restart_count,
            )
            state.restart_count = 0

        if state.processed % self.settings.log_every_n_jobs == 0:
            logger.info(
                f"{self.name} worker progress",
                processed=state.processed,
                queue_size=queue_size,
            )


class JobWorker(BaseQueueWorker):
    """
    Executes group jobs one at a time with bounded retries.

    For each job: up to job_max_retries + 1 attempts, pacing with the
    after-error range between failed attempts; then the outcome is tracked
    against its document, persisted best-effort, and the loop paces with the
    between-operations range before the next job.

    Failures of the execute function are attempt failures and never leave the
    loop. Anything else escaping run() is a defect and is handled by the
    supervisor as a crash.
    """

    name = "job"

    def __init__(
        self,
        store: QueueStore,
        aggregator: DocumentProgressAggregator,
        settings: Settings,
        execute_fn: ExecuteFn,
        persist_fn: PersistFn | None = None,
        pacer: Pacer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(store, settings, pacer=pacer, sleep=sleep, clock=clock)
        self.aggregator = aggregator
        self.execute_fn = execute_fn
        self.persist_fn = persist_fn

    async def run(self) -> None:
        """Main worker loop that dequeues and processes jobs."""
        logger.info("Job worker started", poll_interval_ms=self.settings.queue_poll_interval_ms)

        try:
            while self.state.running:
                self.state.phase = WorkerPhase.DEQUEUE
                job = self.store.dequeue_job()

                if job is None:
                    if self.draining:
                        self.state.running = False
                        break
                    await self._poll_wait()
                    continue

                await self.process_job(job)
        finally:
            self.state.phase = WorkerPhase.STOPPED
            self.store.jobs_processing = 0

        logger.info("Job worker stopped", processed=self.state.processed)

    async def process_job(self, job: Job) -> JobOutcome:
        """Run one dequeued job through execute, record, persist and pace."""
        job_logger = logger.bind(
            job_id=job.job_id, document_id=job.document_id, kind=job.kind.value
        )
        self.store.jobs_processing = 1

        try:
            if self.store.is_cancelled(job.document_id):
                job_logger.info("Skipping job for cancelled document", label=job.label)
                outcome = JobOutcome(
                    success=False,
                    label=job.label,
                    detail="cancelled",
                    owner_id=job.target_id,
                    attempts=0,
                    cancelled=True,
                )
            else:
                job_logger.debug("Processing job", label=job.label)
                outcome = await self._execute_with_retries(job, job_logger)

            self.state.phase = WorkerPhase.RECORDING
            await self.aggregator.track_completion(job.document_id, outcome)
            await self._persist(job, outcome, job_logger)
            self._mark_processed(self.store.job_depth)
        finally:
            self.store.jobs_processing = 0

        if not outcome.cancelled:
            self.state.phase = WorkerPhase.PACING
            await self.pacer.pause(self.settings.delay_between_operations_ms)

        self.state.phase = WorkerPhase.IDLE
        return outcome

    async def _execute_with_retries(self, job: Job, job_logger: Any) -> JobOutcome:
        max_attempts = self.settings.job_max_retries + 1
        result = JobExecutionResult(success=False, detail="not attempted")

        for attempt in range(1, max_attempts + 1):
            job.attempts = attempt
            self.state.phase = WorkerPhase.EXECUTING

            try:
                result = self._coerce_result(await self.execute_fn(job))
            except Exception as e:
                job_logger.error(
                    "Job execution error",
                    attempt=attempt,
                    error=str(e),
                    error_type=e.__class__.__name__,
                )
                result = JobExecutionResult(
                    success=False, detail=str(e) or e.__class__.__name__
                )

            if result.success:
                break

            if attempt < max_attempts:
                job_logger.warning(
                    "Job failed, retrying",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=result.detail,
                )
                self.state.phase = WorkerPhase.PACING
                await self.pacer.pause(self.settings.delay_after_error_ms)

        if not result.success:
            job_logger.error(
                "Job failed permanently",
                attempts=job.attempts,
                error=result.detail,
                label=job.label,
            )

        return JobOutcome(
            success=result.success,
            label=job.label,
            detail=result.detail,
            owner_id=job.target_id,
            attempts=job.attempts,
        )

    async def _persist(self, job: Job, outcome: JobOutcome, job_logger: Any) -> None:
        """Best-effort status write for jobs tied to a persisted line."""
        if self.persist_fn is None or job.subject_id is None:
            return

        try:
            persisted = self.persist_fn(
                job.subject_id, outcome.success, outcome.attempts, outcome.detail
            )
            if inspect.isawaitable(persisted):
                await persisted
        except Exception as e:
            job_logger.error(
                "Failed to persist job outcome",
                subject_id=job.subject_id,
                error=str(e),
            )

    @staticmethod
    def _coerce_result(value: Any) -> JobExecutionResult:
        if isinstance(value, JobExecutionResult):
            return value
        if isinstance(value, bool):
            return JobExecutionResult(success=value)
        if isinstance(value, dict):
            return JobExecutionResult.model_validate(value)
        raise TypeError(
            f"Job executor returned {type(value).__name__}, expected JobExecutionResult"
        )


class NotificationWorker(BaseQueueWorker):
    """Delivers notifications once each; failures are logged and dropped."""

    name = "notification"

    def __init__(
        self,
        store: QueueStore,
        settings: Settings,
        send_fn: SendFn,
        pacer: Pacer | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(store, settings, pacer=pacer, sleep=sleep, clock=clock)
        self.send_fn = send_fn
        self.failed = 0

    async def run(self) -> None:
        """Main worker loop that dequeues and delivers notifications."""
        logger.info("Notification worker started")

        try:
            while self.state.running:
                self.state.phase = WorkerPhase.DEQUEUE
                notification = self.store.dequeue_notification()

                if notification is None:
                    if self.draining:
                        self.state.running = False
                        break
                    await self._poll_wait()
                    continue

                await self.deliver(notification)
        finally:
            self.state.phase = WorkerPhase.STOPPED

        logger.info("Notification worker stopped", processed=self.state.processed)

    async def deliver(self, notification: Notification) -> bool:
        """Send one notification, then pace."""
        self.state.phase = WorkerPhase.EXECUTING
        delivered = False

        try:
            await self.send_fn(notification)
            delivered = True
            self._mark_processed(self.store.notification_depth)
        except Exception as e:
            self.failed += 1
            logger.warning(
                "Failed to send notification, discarding",
                target_id=notification.target_id,
                error=str(e),
            )

        self.state.phase = WorkerPhase.PACING
        await self.pacer.pause(self.settings.delay_between_notifications_ms)
        self.state.phase = WorkerPhase.IDLE
        return delivered
