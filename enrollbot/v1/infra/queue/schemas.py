"""
Pydantic schemas for queued work, outcomes and queue statistics.
"""

from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from enrollbot.v1.infra.queue.models import DocumentId, DocumentStatus, JobKind


class Job(BaseModel):
    """
    A single group operation queued for serialized execution.

    Only attempts changes after enqueue; the job worker bumps it locally
    while retrying.
    """

    job_id: str = Field(default_factory=lambda: uuid4().hex, description="Job id")
    kind: JobKind = Field(default=JobKind.ADD_TO_GROUP, description="Operation kind")
    target_id: str = Field(..., description="Identity to add to the group")
    group_ref: str = Field(
        ..., description="Group reference, or the new group name for create_group"
    )
    document_id: DocumentId = Field(..., description="Owning document")
    subject_id: int | str | None = Field(
        default=None, description="Line id used to persist the job outcome"
    )
    label: str = Field(default="", description="Human readable label")
    attempts: int = Field(default=0, ge=0, description="Attempts made so far")


class Notification(BaseModel):
    """An outbound message, delivered at most once."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    target_id: str
    message: str
    channel: Any = Field(default=None, description="Delivery chat/session handle")


class JobExecutionResult(BaseModel):
    """Result of one attempt reported by a job executor."""

    success: bool
    detail: str | None = None


class JobOutcome(BaseModel):
    """Final outcome of one job, recorded against its document."""

    model_config = ConfigDict(frozen=True)

    success: bool
    label: str = ""
    detail: str | None = None
    owner_id: str | None = None
    attempts: int = 0
    cancelled: bool = False


class DocumentResult(BaseModel):
    """Payload of the terminal signal fired once per document."""

    document_id: DocumentId
    owner_id: str | None
    status: DocumentStatus
    results: list[JobOutcome]
    failed_count: int

    @property
    def successes(self) -> list[JobOutcome]:
        return [r for r in self.results if r.success]

    @property
    def failures(self) -> list[JobOutcome]:
        return [r for r in self.results if not r.success]


class QueueStatsResponse(BaseModel):
    """Schema for queue statistics."""

    jobs_pending: int
    jobs_processing: int
    notifications_pending: int
    documents_in_flight: int
    total_completed: int  # documents finalized as completed
    total_failed: int  # documents finalized as failed


class WorkerStatusResponse(BaseModel):
    """Schema for one worker's runtime status."""

    name: str
    running: bool
    phase: str
    processed: int
    restart_count: int
    last_success_age_seconds: float | None = None


class ShutdownResult(BaseModel):
    """Outcome of a bounded drain."""

    drained: bool
    jobs_remaining: int
    notifications_remaining: int
    elapsed_s: float
