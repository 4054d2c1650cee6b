"""Generation job record with a one-way lifecycle state machine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.services.errors import JobStateError


class JobStatus(str, enum.Enum):
    """Job lifecycle statuses."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class JobKind(str, enum.Enum):
    """Which provider flow drives the job."""

    IMAGE = "image"
    VIDEO = "video"


VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.SUCCEEDED, JobStatus.FAILED},
    JobStatus.SUCCEEDED: set(),  # terminal
    JobStatus.FAILED: set(),  # terminal
}

TERMINAL_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED})


@dataclass(frozen=True)
class GenerationRequest:
    """Caller's generation parameters, fixed at submission time."""

    prompt: str
    width: int
    height: int
    duration: int | None = None
    samples: int | None = None


@dataclass
class Job:
    """One tracked generation request.

    Mutate only through the transition methods so the lifecycle invariants
    hold: result and error are mutually exclusive and only set on a terminal
    status, and the provider handle is assigned at most once.
    """

    id: str
    kind: JobKind
    request: GenerationRequest
    created_at: datetime
    deadline: datetime
    status: JobStatus = JobStatus.QUEUED
    started_at: datetime | None = None
    provider_handle: str | None = None
    result_reference: str | None = None
    error: dict[str, Any] | None = None
    last_provider_payload: Any = None
    provider_response: Any = None
    history: list[JobStatus] = field(default_factory=lambda: [JobStatus.QUEUED])

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, target: JobStatus) -> None:
        if target not in VALID_TRANSITIONS[self.status]:
            raise JobStateError(
                f"Job {self.id}: invalid transition {self.status.value} -> {target.value}"
            )
        self.status = target
        self.history.append(target)

    def mark_processing(self, now: datetime) -> None:
        self._transition(JobStatus.PROCESSING)
        self.started_at = now

    def attach_handle(self, handle: str, payload: Any = None) -> None:
        if self.status is not JobStatus.PROCESSING:
            raise JobStateError(f"Job {self.id}: handle attached while {self.status.value}")
        if self.provider_handle is not None and self.provider_handle != handle:
            raise JobStateError(
                f"Job {self.id}: provider handle already set to {self.provider_handle}"
            )
        self.provider_handle = handle
        if payload is not None:
            self.provider_response = payload
            self.last_provider_payload = payload

    def record_payload(self, payload: Any) -> None:
        if self.is_terminal:
            raise JobStateError(f"Job {self.id}: already {self.status.value}")
        self.last_provider_payload = payload

    def succeed(self, reference: str, payload: Any = None) -> None:
        if not reference:
            raise JobStateError(f"Job {self.id}: empty result reference")
        self._transition(JobStatus.SUCCEEDED)
        self.result_reference = reference
        if payload is not None:
            self.provider_response = payload
            self.last_provider_payload = payload

    def fail(self, error: dict[str, Any]) -> None:
        self._transition(JobStatus.FAILED)
        self.error = error
