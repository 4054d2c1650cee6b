"""Submission orchestrator — creates jobs and drives their first provider call.

``submit`` validates, registers a ``queued`` job, schedules a detached task
and returns immediately. The task moves the job to ``processing`` and either
finishes it (inline result or URL), hands it to the poll scheduler (provider
handle), or fails it (transport or shape error).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.models.job import GenerationRequest, Job, JobKind
from app.services.artifact_store import ArtifactStore
from app.services.errors import (
    ConfigurationError,
    PromptValidationError,
    ProviderTransportError,
    UnrecognizedPayloadError,
)
from app.services.job_registry import JobRegistry
from app.services.providers.extraction import (
    ExtractedResult,
    InlineResult,
    extract_handle,
    extract_result,
)
from app.services.providers.transport import ProviderTransport

logger = logging.getLogger(__name__)

MIN_PROMPT_LENGTH = 3

DEFAULT_MEDIA_TYPES: dict[JobKind, str] = {
    JobKind.IMAGE: "image/png",
    JobKind.VIDEO: "video/mp4",
}


async def materialize_result(
    artifacts: ArtifactStore, kind: JobKind, result: ExtractedResult,
) -> str:
    """Persist an extracted result and return its reference.

    Remote URLs that cannot be downloaded come back unchanged.
    """
    default = DEFAULT_MEDIA_TYPES[kind]
    if isinstance(result, InlineResult):
        return await artifacts.put(
            result.data, result.media_type, default_media_type=default, prefix=kind.value,
        )
    return await artifacts.fetch_and_store(
        result.url, default_media_type=default, prefix=kind.value,
    )


def build_provider_payload(
    kind: JobKind, request: GenerationRequest, model: str = "",
) -> dict[str, Any]:
    """Request body for the provider's submission endpoint."""
    if kind is JobKind.IMAGE:
        payload: dict[str, Any] = {
            "text_prompts": [{"text": request.prompt}],
            "width": request.width,
            "height": request.height,
            "samples": request.samples,
        }
        if model:
            payload["model"] = model
        return payload
    return {
        "prompt": request.prompt,
        "duration": request.duration,
        "width": request.width,
        "height": request.height,
    }


class SubmissionOrchestrator:
    """Validates requests and runs each job's initial provider exchange."""

    def __init__(
        self,
        *,
        registry: JobRegistry,
        transport: ProviderTransport,
        artifacts: ArtifactStore,
        video_url: str,
        image_url: str,
        image_model: str = "",
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.artifacts = artifacts
        self.submit_urls = {JobKind.VIDEO: video_url, JobKind.IMAGE: image_url}
        self.image_model = image_model
        self._tasks: set[asyncio.Task] = set()

    def validate(self, prompt: str | None) -> str:
        """Return the cleaned prompt or raise before anything is registered."""
        cleaned = (prompt or "").strip()
        if len(cleaned) < MIN_PROMPT_LENGTH:
            raise PromptValidationError("Prompt too short")
        if not self.transport.api_key:
            raise ConfigurationError("Server not configured with PROVIDER_API_KEY")
        return cleaned

    def submit(
        self,
        kind: JobKind,
        *,
        prompt: str | None,
        width: int,
        height: int,
        duration: int | None = None,
        samples: int | None = None,
    ) -> Job:
        """Register a job and schedule its submission; never awaits the provider.

        Must be called from inside a running event loop.
        """
        cleaned = self.validate(prompt)
        request = GenerationRequest(
            prompt=cleaned, width=width, height=height, duration=duration, samples=samples,
        )
        job = self.registry.create(kind, request)

        task = asyncio.create_task(self._run(job.id), name=f"submit-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def drain(self) -> None:
        """Wait for every outstanding submission task."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()

    async def _run(self, job_id: str) -> None:
        try:
            job = self.registry.update(
                job_id, lambda j: j.mark_processing(self.registry.clock()),
            )
            logger.info("Job %s processing (kind=%s)", job_id, job.kind.value)
            payload = await self._submit_to_provider(job)
            await self._handle_submission_response(job, payload)
        except (ProviderTransportError, UnrecognizedPayloadError) as e:
            logger.warning("Job %s failed at submission: %s", job_id, e)
            self.registry.try_update(job_id, lambda j: j.fail(e.to_detail()))
        except Exception as e:
            logger.exception("Job %s submission crashed", job_id)
            self.registry.try_update(
                job_id, lambda j: j.fail({"type": "internal", "message": str(e)}),
            )

    async def _submit_to_provider(self, job: Job) -> Any:
        url = self.submit_urls[job.kind]
        payload = build_provider_payload(job.kind, job.request, self.image_model)
        if job.kind is JobKind.IMAGE:
            return await self.transport.submit_with_fallback(url, payload)
        return await self.transport.submit_json(url, payload)

    async def _handle_submission_response(self, job: Job, payload: Any) -> None:
        result = extract_result(payload)
        if result is not None:
            if self.registry.get(job.id).is_terminal:
                logger.info("Job %s already finished, discarding provider result", job.id)
                return
            reference = await materialize_result(self.artifacts, job.kind, result)
            if self.registry.try_update(job.id, lambda j: j.succeed(reference, payload)):
                logger.info("Job %s succeeded immediately: %s", job.id, reference)
            return

        handle = extract_handle(payload)
        if handle is not None:
            if self.registry.try_update(job.id, lambda j: j.attach_handle(handle, payload)):
                logger.info("Job %s awaiting provider task %s", job.id, handle)
            return

        raise UnrecognizedPayloadError("Unexpected provider response", payload)
