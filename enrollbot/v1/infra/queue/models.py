"""
In-memory runtime records for the job and notification queues.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from enrollbot.v1.infra.queue.schemas import JobOutcome

DocumentId = str | int


class JobKind(str, Enum):
    """Kind of group operation a job performs."""

    ADD_TO_GROUP = "add_to_group"
    CREATE_GROUP = "create_group"


class DocumentStatus(str, Enum):
    """Terminal classification of a document."""

    COMPLETED = "completed"
    FAILED = "failed"


class WorkerPhase(str, Enum):
    """Where a worker loop currently is in its iteration."""

    IDLE = "idle"
    DEQUEUE = "dequeue"
    EXECUTING = "executing"
    RECORDING = "recording"
    PACING = "pacing"
    STOPPED = "stopped"


@dataclass
class DocumentProgress:
    """
    Progress of one document through the job queue.

    Created by init_document, mutated only by the job worker, and dropped
    as soon as completed_count reaches expected_total.
    """

    document_id: DocumentId
    expected_total: int
    owner_id: str | None = None
    completed_count: int = 0
    failed_count: int = 0
    results: list["JobOutcome"] = field(default_factory=list)

    def record(self, outcome: "JobOutcome") -> None:
        self.results.append(outcome)
        self.completed_count += 1
        if not outcome.success:
            self.failed_count += 1

    @property
    def is_complete(self) -> bool:
        return self.completed_count >= self.expected_total


@dataclass
class WorkerRuntimeState:
    """Runtime state of one worker loop, owned by the loop and its supervisor."""

    name: str
    running: bool = False
    phase: WorkerPhase = WorkerPhase.STOPPED
    processed: int = 0
    restart_count: int = 0
    started_at: float | None = None
    last_success_at: float | None = None
