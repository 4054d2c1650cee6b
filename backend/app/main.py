"""MediaRelay — FastAPI application entry point.

Mounts the job API, configures CORS, serves materialized artifacts under
``/out`` and runs the provider poll scheduler for the app's lifetime.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.router import api_router
from app.config import Settings, get_settings
from app.services.gateway import MediaGateway

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build the application; tests pass their own settings and HTTP client."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: start the poll scheduler, stop it on shutdown."""
        logger.info("%s starting up...", settings.APP_NAME)
        logger.info("Video API URL: %s", settings.PROVIDER_VIDEO_API_URL)
        logger.info("Image API URL: %s", settings.PROVIDER_IMAGE_API_URL)
        if not settings.PROVIDER_API_KEY:
            logger.warning("PROVIDER_API_KEY is not set; submissions will be rejected")

        gateway = MediaGateway(settings, http_client=http_client)
        app.state.gateway = gateway
        await gateway.start()

        yield

        await gateway.aclose()
        logger.info("%s shut down", settings.APP_NAME)

    app = FastAPI(
        title="MediaRelay API",
        description="Asynchronous job gateway for third-party image and video generation",
        version="0.1.0",
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.FRONTEND_ORIGIN.split(",") if o.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    os.makedirs(settings.OUT_DIR, exist_ok=True)
    app.mount("/out", StaticFiles(directory=settings.OUT_DIR), name="out")

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"ok": True}

    return app


_settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if _settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=_settings.PORT)
