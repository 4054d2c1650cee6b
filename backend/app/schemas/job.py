"""Pydantic v2 schemas for generation jobs.

Wire names stay camelCase for the browser client (``jobId``, ``resultUrl``).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.models.job import Job


class GenerateVideoRequest(BaseModel):
    """Schema for submitting a video generation job."""

    prompt: str = ""
    duration: int | None = Field(None, gt=0)
    width: int | None = Field(None, gt=0)
    height: int | None = Field(None, gt=0)


class GenerateImageRequest(BaseModel):
    """Schema for submitting an image generation job."""

    prompt: str = ""
    width: int | None = Field(None, gt=0)
    height: int | None = Field(None, gt=0)
    samples: int | None = Field(None, gt=0)


class JobAccepted(BaseModel):
    model_config = {"populate_by_name": True}

    job_id: str = Field(..., alias="jobId")
    status: str


class JobStatusRead(BaseModel):
    """Schema for reading a job's current state."""

    model_config = {"populate_by_name": True}

    id: str
    kind: str
    status: str
    prompt: str
    result_url: str | None = Field(None, alias="resultUrl")
    error: Any = None
    provider_job_id: str | None = Field(None, alias="providerJobId")
    provider_response_summary: str | None = Field(None, alias="providerResponseSummary")

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusRead":
        summary = None
        if isinstance(job.provider_response, dict):
            raw = job.provider_response.get("id") or job.provider_response.get("job_id")
            summary = str(raw) if raw is not None else None
        return cls(
            id=job.id,
            kind=job.kind.value,
            status=job.status.value,
            prompt=job.request.prompt,
            result_url=job.result_reference,
            error=job.error,
            provider_job_id=job.provider_handle,
            provider_response_summary=summary,
        )


class JobListItem(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    status: str
    prompt: str
    result_url: str | None = Field(None, alias="resultUrl")
