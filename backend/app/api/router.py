"""Master API router — mounts all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from app.api.jobs import router as jobs_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(jobs_router, tags=["Generation Jobs"])
