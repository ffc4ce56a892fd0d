import pytest

from enrollbot.v1.infra.queue.models import DocumentStatus
from enrollbot.v1.infra.queue.progress import DocumentProgressAggregator
from enrollbot.v1.infra.queue.schemas import JobOutcome


def outcome(success: bool, label: str = "MAT101", **kwargs) -> JobOutcome:
    return JobOutcome(success=success, label=label, **kwargs)


@pytest.fixture
def signals():
    return {"completed": [], "failed": []}


@pytest.fixture
def aggregator(store, fast_settings, signals):
    return DocumentProgressAggregator(
        store,
        fast_settings,
        on_completed=signals["completed"].append,
        on_failed=signals["failed"].append,
    )


@pytest.mark.asyncio
async def test_below_threshold_completes(store, aggregator, signals):
    """Two failures out of five stays under a threshold of three."""
    store.init_document("doc-1", 5, owner_id="591700")

    results = [
        await aggregator.track_completion("doc-1", outcome(success))
        for success in (False, True, False, True, True)
    ]

    assert results[:4] == [None, None, None, None]
    assert results[4].status == DocumentStatus.COMPLETED
    assert results[4].failed_count == 2
    assert len(signals["completed"]) == 1
    assert signals["failed"] == []


@pytest.mark.asyncio
async def test_threshold_reached_fails(store, aggregator, signals):
    store.init_document("doc-1", 5, owner_id="591700")

    for success in (False, False, True, False, True):
        await aggregator.track_completion("doc-1", outcome(success))

    assert signals["completed"] == []
    assert len(signals["failed"]) == 1
    result = signals["failed"][0]
    assert result.failed_count == 3
    assert len(result.successes) == 2
    assert result.owner_id == "591700"


@pytest.mark.asyncio
async def test_record_removed_after_terminal_signal(store, aggregator):
    store.init_document("doc-1", 1)

    await aggregator.track_completion("doc-1", outcome(True))

    assert not store.has_document("doc-1")
    assert aggregator.was_finalized("doc-1")
    assert store.total_completed == 1


@pytest.mark.asyncio
async def test_late_completion_is_dropped(store, aggregator, signals):
    store.init_document("doc-1", 1)
    await aggregator.track_completion("doc-1", outcome(True))

    assert await aggregator.track_completion("doc-1", outcome(False)) is None
    assert len(signals["completed"]) == 1
    assert signals["failed"] == []
    assert not store.has_document("doc-1")


@pytest.mark.asyncio
async def test_unknown_document_is_noop(store, aggregator, signals):
    assert await aggregator.track_completion("never-seen", outcome(True)) is None

    assert not store.has_document("never-seen")
    assert not aggregator.was_finalized("never-seen")
    assert signals == {"completed": [], "failed": []}


@pytest.mark.asyncio
async def test_owner_falls_back_to_outcome(store, aggregator, signals):
    store.init_document("doc-1", 1)

    await aggregator.track_completion("doc-1", outcome(True, owner_id="591711"))

    assert signals["completed"][0].owner_id == "591711"


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited(store, fast_settings):
    fired = []

    async def on_completed(result):
        fired.append(("completed", result.document_id))

    async def on_failed(result):
        fired.append(("failed", result.document_id))

    aggregator = DocumentProgressAggregator(
        store, fast_settings, on_completed=on_completed, on_failed=on_failed
    )
    store.init_document("doc-1", 1)
    store.init_document("doc-2", 3)

    await aggregator.track_completion("doc-1", outcome(True))
    for _ in range(3):
        await aggregator.track_completion("doc-2", outcome(False))

    assert fired == [("completed", "doc-1"), ("failed", "doc-2")]


@pytest.mark.asyncio
async def test_callback_error_does_not_refire(store, fast_settings):
    calls = []

    def exploding(result):
        calls.append(result)
        raise RuntimeError("listener blew up")

    aggregator = DocumentProgressAggregator(store, fast_settings, on_completed=exploding)
    store.init_document("doc-1", 1)

    result = await aggregator.track_completion("doc-1", outcome(True))
    await aggregator.track_completion("doc-1", outcome(True))

    assert result.status == DocumentStatus.COMPLETED
    assert len(calls) == 1
    assert not store.has_document("doc-1")


@pytest.mark.asyncio
async def test_async_callback_error_is_contained(store, fast_settings):
    async def exploding(result):
        raise RuntimeError("listener blew up")

    aggregator = DocumentProgressAggregator(store, fast_settings, on_completed=exploding)
    store.init_document("doc-1", 1)

    result = await aggregator.track_completion("doc-1", outcome(True))

    assert result.status == DocumentStatus.COMPLETED
    assert store.total_completed == 1


@pytest.mark.asyncio
async def test_finalized_memory_is_bounded(store, fast_settings):
    settings = fast_settings.model_copy(update={"finalized_document_memory": 2})
    aggregator = DocumentProgressAggregator(store, settings)

    for doc in ("a", "b", "c"):
        store.init_document(doc, 1)
        await aggregator.track_completion(doc, outcome(True))

    assert not aggregator.was_finalized("a")
    assert aggregator.was_finalized("b")
    assert aggregator.was_finalized("c")
