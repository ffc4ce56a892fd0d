import asyncio

import pytest
from fastapi.testclient import TestClient

from enrollbot.config.settings import Settings
from enrollbot.main import create_app
from enrollbot.v1.infra.queue.schemas import Job
from enrollbot.v1.infra.queue.service import QueueRuntime
from enrollbot.v1.infra.queue.store import QueueStore


class SleepRecorder:
    """Async sleep stand-in that records requested durations and yields once."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_job(document_id="doc-1", label="MAT101 - Group A", **kwargs) -> Job:
    fields = {
        "target_id": "59170000001@c.us",
        "group_ref": "120363000000000001@g.us",
        "document_id": document_id,
        "label": label,
    }
    fields.update(kwargs)
    return Job(**fields)


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with zero pacing and millisecond polling."""
    return Settings(
        queue_poll_interval_ms=5,
        job_max_retries=2,
        document_fail_threshold=3,
        shutdown_timeout_s=2.0,
        shutdown_poll_interval_ms=5,
        worker_restart_delays_ms=[10, 20, 40],
        worker_restart_reset_window_s=60.0,
        delay_initial_response_ms=(0, 0),
        delay_between_operations_ms=(0, 0),
        delay_after_error_ms=(0, 0),
        delay_between_notifications_ms=(0, 0),
    )


@pytest.fixture
def make_job():
    """Factory for jobs with realistic defaults."""
    return build_job


@pytest.fixture
def store() -> QueueStore:
    return QueueStore()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runtime(fast_settings, store) -> QueueRuntime:
    return QueueRuntime(fast_settings, store=store)


@pytest.fixture
def client(runtime) -> TestClient:
    """Status API bound to an idle runtime."""
    return TestClient(create_app(runtime))
