"""Poll scheduler — periodic sweep over jobs waiting on the provider.

Single flight: the run loop awaits sweep N before sleeping toward N+1, and a
per-job in-flight set keeps a manual or overlapping sweep from polling the
same job twice. Within a sweep, jobs are polled concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.models.job import Job
from app.services.artifact_store import ArtifactStore
from app.services.errors import ProviderTransportError, UnrecognizedPayloadError
from app.services.job_registry import JobRegistry
from app.services.providers.extraction import ProviderState
from app.services.providers.transport import PollOutcome, ProviderTransport
from app.services.submission import materialize_result

logger = logging.getLogger(__name__)


class PollScheduler:
    """Advances ``processing`` jobs that carry a provider handle."""

    def __init__(
        self,
        *,
        registry: JobRegistry,
        transport: ProviderTransport,
        artifacts: ArtifactStore,
        interval_seconds: float,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.artifacts = artifacts
        self.interval_seconds = interval_seconds
        self._in_flight: set[str] = set()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run_forever(), name="poll-scheduler")
        logger.info("Poll scheduler started (interval=%.2fs)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Poll scheduler stopped")

    async def _run_forever(self) -> None:
        while True:
            try:
                await self.sweep()
            except Exception:
                logger.exception("Poll sweep failed")
            await asyncio.sleep(self.interval_seconds)

    async def sweep(self) -> int:
        """Run one pass. Returns the number of jobs whose status was queried."""
        now = self.registry.clock()
        pollable: list[Job] = []
        for job in self.registry.processing():
            if now >= job.deadline:
                self._expire(job)
                continue
            if job.provider_handle is None or job.id in self._in_flight:
                continue
            # claimed before the first await so an overlapping sweep skips it
            self._in_flight.add(job.id)
            pollable.append(job)

        if pollable:
            try:
                await asyncio.gather(*(self._poll_job(job) for job in pollable))
            finally:
                # polls cancelled before starting never reach their own cleanup
                self._in_flight.difference_update(job.id for job in pollable)
        return len(pollable)

    def _expire(self, job: Job) -> None:
        error = {
            "type": "timeout",
            "message": "Polling timeout",
            "deadline": job.deadline.isoformat(),
        }
        if self.registry.try_update(job.id, lambda j: j.fail(error)):
            logger.warning("Job %s timed out (handle=%s)", job.id, job.provider_handle)

    async def _poll_job(self, job: Job) -> None:
        try:
            outcome = await self.transport.check_status(job.provider_handle)
            await self._apply(job, outcome)
        except ProviderTransportError as e:
            # not terminal; the next sweep retries until the deadline
            logger.warning("Status poll for job %s failed: %s", job.id, e)
        except Exception:
            logger.exception("Status poll for job %s crashed", job.id)
        finally:
            self._in_flight.discard(job.id)

    async def _apply(self, job: Job, outcome: PollOutcome) -> None:
        payload: Any = outcome.payload

        if outcome.state is ProviderState.COMPLETED:
            if outcome.result is None:
                error = UnrecognizedPayloadError(
                    "Provider reported completion but no result was found", payload,
                ).to_detail()
                if self.registry.try_update(job.id, lambda j: j.fail(error)):
                    logger.warning("Job %s completed without an extractable result", job.id)
                return
            if self.registry.get(job.id).is_terminal:
                logger.info("Job %s already finished, discarding polled result", job.id)
                return
            reference = await materialize_result(self.artifacts, job.kind, outcome.result)
            if self.registry.try_update(job.id, lambda j: j.succeed(reference, payload)):
                logger.info("Job %s succeeded: %s", job.id, reference)
            return

        if outcome.state is ProviderState.FAILED:
            error = {
                "type": "provider",
                "message": f"Provider reported status '{outcome.raw_status}'",
                "payload": payload,
            }
            if self.registry.try_update(job.id, lambda j: j.fail(error)):
                logger.warning("Job %s failed at provider: %s", job.id, outcome.raw_status)
            return

        self.registry.try_update(job.id, lambda j: j.record_payload(payload))
        logger.debug("Job %s still processing (status=%s)", job.id, outcome.raw_status)
