import pytest

from enrollbot.v1.core.exceptions import ValidationError
from enrollbot.v1.infra.queue.models import DocumentStatus
from enrollbot.v1.infra.queue.schemas import Notification
from enrollbot.v1.infra.queue.store import QueueStore


class TestJobQueue:
    def test_dequeue_empty_returns_none(self, store):
        assert store.dequeue_job() is None
        assert store.dequeue_notification() is None

    def test_jobs_dequeue_in_enqueue_order(self, store, make_job):
        for i in range(5):
            assert store.enqueue_job(make_job(label=f"job-{i}")) is True

        labels = []
        while (job := store.dequeue_job()) is not None:
            labels.append(job.label)

        assert labels == [f"job-{i}" for i in range(5)]

    def test_notifications_dequeue_in_enqueue_order(self, store):
        store.enqueue_notification(Notification(target_id="a", message="first"))
        store.enqueue_notification(Notification(target_id="b", message="second"))

        assert store.dequeue_notification().message == "first"
        assert store.dequeue_notification().message == "second"
        assert store.dequeue_notification() is None

    def test_closed_intake_rejects_jobs_but_not_notifications(self, store, make_job):
        store.intake_open = False

        assert store.enqueue_job(make_job()) is False
        assert store.job_depth == 0
        assert store.enqueue_notification(Notification(target_id="a", message="hi")) is True
        assert store.notification_depth == 1

    def test_pending_document_ids_are_distinct_and_ordered(self, store, make_job):
        store.enqueue_job(make_job(document_id="b"))
        store.enqueue_job(make_job(document_id="a"))
        store.enqueue_job(make_job(document_id="b"))

        assert store.pending_document_ids() == ["b", "a"]


class TestDocuments:
    def test_init_document_rejects_empty_total(self, store):
        with pytest.raises(ValidationError) as exc_info:
            store.init_document("doc-1", 0)

        assert exc_info.value.status_code == 422
        assert exc_info.value.details == {"document_id": "doc-1", "expected_total": 0}
        assert not store.has_document("doc-1")

    def test_reinit_replaces_progress(self, store):
        first = store.init_document("doc-1", 3, owner_id="u1")
        first.completed_count = 2

        second = store.init_document("doc-1", 4, owner_id="u2")

        assert store.get_progress("doc-1") is second
        assert second.completed_count == 0
        assert second.expected_total == 4
        assert second.owner_id == "u2"

    def test_cancel_unknown_document(self, store):
        assert store.cancel_document("missing") is False
        assert store.is_cancelled("missing") is False

    def test_reinit_clears_cancellation(self, store):
        store.init_document("doc-1", 1)
        assert store.cancel_document("doc-1") is True
        assert store.is_cancelled("doc-1")

        store.init_document("doc-1", 1)
        assert not store.is_cancelled("doc-1")

    def test_finalize_counts_totals(self, store):
        store.init_document("ok", 1)
        store.init_document("bad", 1)

        store.finalize_document("ok", DocumentStatus.COMPLETED)
        store.finalize_document("bad", DocumentStatus.FAILED)

        assert not store.has_document("ok")
        assert store.finalize_document("ok", DocumentStatus.COMPLETED) is None
        assert store.total_completed == 1
        assert store.total_failed == 1


def test_queue_stats(make_job):
    store = QueueStore()
    store.init_document("doc-1", 2)
    store.enqueue_job(make_job())
    store.enqueue_job(make_job())
    store.enqueue_notification(Notification(target_id="a", message="hi"))

    stats = store.get_queue_stats()

    assert stats.jobs_pending == 2
    assert stats.jobs_processing == 0
    assert stats.notifications_pending == 1
    assert stats.documents_in_flight == 1
    assert stats.total_completed == 0
    assert stats.total_failed == 0
