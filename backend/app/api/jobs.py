"""Generation job API endpoints — submit, poll status, list."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.schemas.job import (
    GenerateImageRequest,
    GenerateVideoRequest,
    JobAccepted,
    JobListItem,
    JobStatusRead,
)
from app.services.errors import ConfigurationError, JobNotFoundError, PromptValidationError
from app.services.gateway import MediaGateway

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gateway(request: Request) -> MediaGateway:
    return request.app.state.gateway


def _accepted(submit) -> JobAccepted:
    try:
        job = submit()
    except PromptValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        logger.error("Rejected submission: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return JobAccepted(job_id=job.id, status=job.status.value)


@router.post("/generate-video", response_model=JobAccepted, status_code=202)
async def generate_video(
    req: GenerateVideoRequest, gateway: MediaGateway = Depends(get_gateway)
):
    """Create a video job and return its id immediately."""
    return _accepted(lambda: gateway.submit_video(
        req.prompt, duration=req.duration, width=req.width, height=req.height,
    ))


@router.post("/generate-image", response_model=JobAccepted, status_code=202)
async def generate_image(
    req: GenerateImageRequest, gateway: MediaGateway = Depends(get_gateway)
):
    """Create an image job (JSON with multipart fallback) and return its id."""
    return _accepted(lambda: gateway.submit_image(
        req.prompt, width=req.width, height=req.height, samples=req.samples,
    ))


@router.get("/status/{job_id}", response_model=JobStatusRead)
async def get_status(job_id: str, gateway: MediaGateway = Depends(get_gateway)):
    try:
        job = gateway.get_status(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusRead.from_job(job)


@router.get("/jobs", response_model=list[JobListItem])
async def list_jobs(gateway: MediaGateway = Depends(get_gateway)):
    """List every job (debug)."""
    return [
        JobListItem(
            id=s.id, status=s.status.value, prompt=s.prompt, result_url=s.result_reference,
        )
        for s in gateway.list_jobs()
    ]
