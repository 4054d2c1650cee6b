"""Pydantic v2 schemas package."""

from app.schemas.job import (
    GenerateImageRequest,
    GenerateVideoRequest,
    JobAccepted,
    JobListItem,
    JobStatusRead,
)

__all__ = [
    "GenerateImageRequest",
    "GenerateVideoRequest",
    "JobAccepted",
    "JobListItem",
    "JobStatusRead",
]
