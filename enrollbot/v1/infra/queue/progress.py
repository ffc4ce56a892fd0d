"""
Per-document completion tracking and terminal classification.
"""

import inspect
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from enrollbot.config.logging import get_logger
from enrollbot.config.settings import Settings
from enrollbot.v1.infra.queue.models import DocumentId, DocumentStatus
from enrollbot.v1.infra.queue.schemas import DocumentResult, JobOutcome
from enrollbot.v1.infra.queue.store import QueueStore

logger = get_logger(__name__)

# Plain functions and coroutine functions are both accepted
TerminalCallback = Callable[[DocumentResult], Any]


class DocumentProgressAggregator:
    """
    Aggregates job outcomes per document and fires one terminal signal.

    Once a document's completed count reaches its expected total it is
    classified as failed when failed_count >= document_fail_threshold and
    completed otherwise. The record is removed before the callback runs, so a
    callback error or a duplicate completion can never fire a second signal.

    A bounded memory of recently finalized ids separates late completions
    (an expected race, logged as a warning) from completions for ids that
    were never initialized (an upstream bug, logged as an error).
    """

    def __init__(
        self,
        store: QueueStore,
        settings: Settings,
        on_completed: TerminalCallback | None = None,
        on_failed: TerminalCallback | None = None,
    ):
        self.store = store
        self.fail_threshold = settings.document_fail_threshold
        self.on_completed = on_completed
        self.on_failed = on_failed
        self._finalized: OrderedDict[DocumentId, DocumentStatus] = OrderedDict()
        self._finalized_limit = settings.finalized_document_memory

    async def track_completion(
        self, document_id: DocumentId, outcome: JobOutcome
    ) -> DocumentResult | None:
        """Record one job outcome. Returns the terminal result when this completes the document."""
        progress = self.store.get_progress(document_id)

        if progress is None:
            if document_id in self._finalized:
                logger.warning(
                    "Late completion for finalized document dropped",
                    document_id=document_id,
                    finalized_as=self._finalized[document_id].value,
                    label=outcome.label,
                )
            else:
                logger.error(
                    "Completion for unknown document dropped",
                    document_id=document_id,
                    label=outcome.label,
                )
            return None

        progress.record(outcome)

        logger.debug(
            "Job completion tracked",
            document_id=document_id,
            completed=progress.completed_count,
            total=progress.expected_total,
            failed_count=progress.failed_count,
        )

        if not progress.is_complete:
            return None

        if progress.failed_count >= self.fail_threshold:
            status = DocumentStatus.FAILED
        else:
            status = DocumentStatus.COMPLETED

        self.store.finalize_document(document_id, status)
        self._remember(document_id, status)

        result = DocumentResult(
            document_id=document_id,
            owner_id=progress.owner_id or outcome.owner_id,
            status=status,
            results=list(progress.results),
            failed_count=progress.failed_count,
        )

        if status == DocumentStatus.FAILED:
            logger.warning(
                "Document marked as failed",
                document_id=document_id,
                failed_count=progress.failed_count,
                total=progress.expected_total,
            )
            await self._emit(self.on_failed, result)
        else:
            logger.info(
                "Document completed successfully",
                document_id=document_id,
                success_count=progress.expected_total - progress.failed_count,
                failed_count=progress.failed_count,
            )
            await self._emit(self.on_completed, result)

        return result

    def was_finalized(self, document_id: DocumentId) -> bool:
        return document_id in self._finalized

    def _remember(self, document_id: DocumentId, status: DocumentStatus) -> None:
        if self._finalized_limit <= 0:
            return
        self._finalized[document_id] = status
        self._finalized.move_to_end(document_id)
        while len(self._finalized) > self._finalized_limit:
            self._finalized.popitem(last=False)

    async def _emit(self, callback: TerminalCallback | None, result: DocumentResult) -> None:
        if callback is None:
            return
        try:
            emitted = callback(result)
            if inspect.isawaitable(emitted):
                await emitted
        except Exception:
            logger.exception(
                "Terminal document callback failed",
                document_id=result.document_id,
                status=result.status.value,
            )
