"""In-memory job registry — the single source of truth for job state.

All operations are synchronous and never await, so on a single event loop
each call is atomic with respect to every other coroutine. ``update`` applies
the mutator to a private copy and swaps it in only when the mutator returns
normally; a reader can never observe a half-applied change.
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple

from app.models.job import GenerationRequest, Job, JobKind, JobStatus
from app.services.errors import JobNotFoundError, JobStateError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobSummary(NamedTuple):
    id: str
    status: JobStatus
    result_reference: str | None
    prompt: str


class JobRegistry:
    """Process-lifetime map from job id to job record."""

    def __init__(self, *, max_poll_seconds: float, clock: Clock = utc_now) -> None:
        self._jobs: dict[str, Job] = {}
        self._issued: set[str] = set()
        self._max_poll = timedelta(seconds=max_poll_seconds)
        self.clock = clock

    def __len__(self) -> int:
        return len(self._jobs)

    def _new_id(self) -> str:
        job_id = str(uuid.uuid4())
        while job_id in self._issued:
            job_id = str(uuid.uuid4())
        self._issued.add(job_id)
        return job_id

    def create(self, kind: JobKind, request: GenerationRequest) -> Job:
        """Allocate a fresh id and store the job in ``queued``."""
        now = self.clock()
        job = Job(
            id=self._new_id(),
            kind=kind,
            request=request,
            created_at=now,
            deadline=now + self._max_poll,
        )
        self._jobs[job.id] = job
        logger.info("Job %s created (kind=%s)", job.id, kind.value)
        return copy.deepcopy(job)

    def get(self, job_id: str) -> Job:
        """Return a snapshot of the job; raises ``JobNotFoundError``."""
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return copy.deepcopy(job)

    def update(self, job_id: str, mutator: Callable[[Job], None]) -> Job:
        """Atomic read-modify-write of a single job. Returns the new snapshot."""
        current = self._jobs.get(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        draft = copy.deepcopy(current)
        mutator(draft)
        self._jobs[job_id] = draft
        return copy.deepcopy(draft)

    def try_update(self, job_id: str, mutator: Callable[[Job], None]) -> Job | None:
        """Like ``update`` but drops transitions the job can no longer take.

        Used for results that arrive after the job already went terminal
        (timed out while a provider call was still outstanding).
        """
        try:
            return self.update(job_id, mutator)
        except JobStateError as e:
            logger.info("Discarding stale update for job %s: %s", job_id, e)
            return None

    def list_summaries(self) -> list[JobSummary]:
        return [
            JobSummary(j.id, j.status, j.result_reference, j.request.prompt)
            for j in self._jobs.values()
        ]

    def processing(self) -> list[Job]:
        """Snapshots of every job currently in ``processing``."""
        return [
            copy.deepcopy(j) for j in self._jobs.values()
            if j.status is JobStatus.PROCESSING
        ]
