"""Wires the registry, transport, materializer, orchestrator and scheduler.

One ``MediaGateway`` lives on ``app.state`` for the process lifetime; the API
layer only talks to it.
"""

from __future__ import annotations

import logging

import httpx

from app.config import Settings
from app.models.job import Job, JobKind
from app.services.artifact_store import ArtifactStore
from app.services.job_registry import Clock, JobRegistry, JobSummary, utc_now
from app.services.poll_scheduler import PollScheduler
from app.services.providers.transport import ProviderTransport
from app.services.submission import SubmissionOrchestrator

logger = logging.getLogger(__name__)


class MediaGateway:
    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings
        self._http_client = http_client or httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT)
        self._own_client = http_client is None

        self.registry = JobRegistry(max_poll_seconds=settings.max_poll_seconds, clock=clock)
        self.artifacts = ArtifactStore(settings.OUT_DIR, http_client=self._http_client)
        self.transport = ProviderTransport(
            api_key=settings.PROVIDER_API_KEY,
            status_url_template=settings.PROVIDER_VIDEO_STATUS_URL,
            success_statuses=settings.success_statuses,
            failure_statuses=settings.failure_statuses,
            http_client=self._http_client,
        )
        self.orchestrator = SubmissionOrchestrator(
            registry=self.registry,
            transport=self.transport,
            artifacts=self.artifacts,
            video_url=settings.PROVIDER_VIDEO_API_URL,
            image_url=settings.PROVIDER_IMAGE_API_URL,
            image_model=settings.PROVIDER_IMAGE_MODEL,
        )
        self.scheduler = PollScheduler(
            registry=self.registry,
            transport=self.transport,
            artifacts=self.artifacts,
            interval_seconds=settings.poll_interval_seconds,
        )

    async def start(self) -> None:
        self.scheduler.start()

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.orchestrator.shutdown()
        if self._own_client:
            await self._http_client.aclose()

    def submit_video(
        self,
        prompt: str | None,
        *,
        duration: int | None = None,
        width: int | None = None,
        height: int | None = None,
    ) -> Job:
        s = self.settings
        return self.orchestrator.submit(
            JobKind.VIDEO,
            prompt=prompt,
            width=width or s.DEFAULT_WIDTH,
            height=height or s.DEFAULT_HEIGHT,
            duration=duration or s.DEFAULT_DURATION_SECONDS,
        )

    def submit_image(
        self,
        prompt: str | None,
        *,
        width: int | None = None,
        height: int | None = None,
        samples: int | None = None,
    ) -> Job:
        s = self.settings
        return self.orchestrator.submit(
            JobKind.IMAGE,
            prompt=prompt,
            width=width or s.DEFAULT_IMAGE_WIDTH,
            height=height or s.DEFAULT_IMAGE_HEIGHT,
            samples=samples or s.DEFAULT_SAMPLES,
        )

    def get_status(self, job_id: str) -> Job:
        """Pure registry read; raises ``JobNotFoundError``."""
        return self.registry.get(job_id)

    def list_jobs(self) -> list[JobSummary]:
        return self.registry.list_summaries()
