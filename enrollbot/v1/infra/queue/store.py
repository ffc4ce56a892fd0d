"""
In-memory queue store: a job FIFO, a notification FIFO and per-document progress.

All mutation happens from the two worker loops except enqueue, which admission
may call at any time. deque append/popleft are atomic, so no lock is taken.
"""

from collections import deque

from enrollbot.config.logging import get_logger
from enrollbot.v1.core.exceptions import ValidationError
from enrollbot.v1.infra.queue.models import (
    DocumentId,
    DocumentProgress,
    DocumentStatus,
)
from enrollbot.v1.infra.queue.schemas import Job, Notification, QueueStatsResponse

logger = get_logger(__name__)


class QueueStore:
    """Dual FIFO queue with document progress tracking."""

    def __init__(self):
        self._jobs: deque[Job] = deque()
        self._notifications: deque[Notification] = deque()
        self._documents: dict[DocumentId, DocumentProgress] = {}
        self._cancelled: set[DocumentId] = set()
        self.intake_open = True
        self.jobs_processing = 0
        self.total_completed = 0
        self.total_failed = 0

    # Admission

    def init_document(
        self, document_id: DocumentId, expected_total: int, owner_id: str | None = None
    ) -> DocumentProgress:
        """Start tracking a document. Re-initializing an id replaces its record."""
        if expected_total < 1:
            raise ValidationError(
                "expected_total must be at least 1",
                document_id=document_id,
                expected_total=expected_total,
            )

        if document_id in self._documents:
            logger.warning(
                "Document re-initialized, previous progress discarded",
                document_id=document_id,
            )

        progress = DocumentProgress(
            document_id=document_id, expected_total=expected_total, owner_id=owner_id
        )
        self._documents[document_id] = progress
        self._cancelled.discard(document_id)
        logger.info(
            "Document initialized in queue",
            document_id=document_id,
            total=expected_total,
        )
        return progress

    def enqueue_job(self, job: Job) -> bool:
        """Append a job to the tail of the job queue. Never raises."""
        if not self.intake_open:
            logger.warning(
                "Job intake closed, job not queued",
                job_id=job.job_id,
                document_id=job.document_id,
                label=job.label,
            )
            return False

        self._jobs.append(job)
        logger.debug(
            "Job added to queue",
            job_id=job.job_id,
            document_id=job.document_id,
            queue_size=len(self._jobs),
        )
        return True

    def enqueue_notification(self, notification: Notification) -> bool:
        """Append a notification to the tail of the notification queue. Never raises."""
        self._notifications.append(notification)
        logger.debug(
            "Notification added to queue",
            target_id=notification.target_id,
            queue_size=len(self._notifications),
        )
        return True

    def cancel_document(self, document_id: DocumentId) -> bool:
        """Mark a document so its remaining queued jobs are not executed."""
        if document_id not in self._documents:
            logger.warning("Cancel requested for unknown document", document_id=document_id)
            return False

        self._cancelled.add(document_id)
        logger.info("Document cancelled", document_id=document_id)
        return True

    # Worker side

    def dequeue_job(self) -> Job | None:
        try:
            return self._jobs.popleft()
        except IndexError:
            return None

    def dequeue_notification(self) -> Notification | None:
        try:
            return self._notifications.popleft()
        except IndexError:
            return None

    def is_cancelled(self, document_id: DocumentId) -> bool:
        return document_id in self._cancelled

    def get_progress(self, document_id: DocumentId) -> DocumentProgress | None:
        return self._documents.get(document_id)

    def has_document(self, document_id: DocumentId) -> bool:
        return document_id in self._documents

    def finalize_document(
        self, document_id: DocumentId, status: DocumentStatus
    ) -> DocumentProgress | None:
        """Remove a finished document and count it towards the totals."""
        progress = self._documents.pop(document_id, None)
        if progress is None:
            return None

        self._cancelled.discard(document_id)
        if status == DocumentStatus.FAILED:
            self.total_failed += 1
        else:
            self.total_completed += 1
        return progress

    # Observability only; never use depth to decide whether to dequeue

    @property
    def job_depth(self) -> int:
        return len(self._jobs)

    @property
    def notification_depth(self) -> int:
        return len(self._notifications)

    def pending_document_ids(self) -> list[DocumentId]:
        """Distinct document ids that still have queued jobs, in queue order."""
        return list(dict.fromkeys(job.document_id for job in list(self._jobs)))

    def get_queue_stats(self) -> QueueStatsResponse:
        return QueueStatsResponse(
            jobs_pending=len(self._jobs),
            jobs_processing=self.jobs_processing,
            notifications_pending=len(self._notifications),
            documents_in_flight=len(self._documents),
            total_completed=self.total_completed,
            total_failed=self.total_failed,
        )
