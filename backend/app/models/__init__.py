"""Domain model package."""

from app.models.job import (
    GenerationRequest,
    Job,
    JobKind,
    JobStatus,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
)

__all__ = [
    "GenerationRequest",
    "Job",
    "JobKind",
    "JobStatus",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
]
