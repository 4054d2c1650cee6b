"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MediaRelay application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "MediaRelay"
    DEBUG: bool = False
    PORT: int = 4000
    FRONTEND_ORIGIN: str = "*"

    # --- Artifact output ---
    OUT_DIR: str = "out"

    # --- Provider (Stability-compatible endpoints) ---
    PROVIDER_API_KEY: str = ""
    PROVIDER_VIDEO_API_URL: str = "https://api.stability.ai/v2beta/video/generate"
    PROVIDER_VIDEO_STATUS_URL: str = "https://api.stability.ai/v2beta/video/status/{jobId}"
    PROVIDER_IMAGE_API_URL: str = "https://api.stability.ai/v2beta/stable-image/generate/core"
    PROVIDER_IMAGE_MODEL: str = ""
    PROVIDER_TIMEOUT: float = 60.0

    # --- Generation defaults ---
    DEFAULT_WIDTH: int = 1920
    DEFAULT_HEIGHT: int = 1080
    DEFAULT_DURATION_SECONDS: int = 10
    DEFAULT_IMAGE_WIDTH: int = 512
    DEFAULT_IMAGE_HEIGHT: int = 512
    DEFAULT_SAMPLES: int = 1

    # --- Polling ---
    POLL_INTERVAL_MS: int = 3000
    MAX_POLL_MS: int = 300000

    # --- Provider status vocabulary (comma-separated, case-insensitive) ---
    PROVIDER_SUCCESS_STATUSES: str = "succeeded,completed,finished,success,succeed"
    PROVIDER_FAILURE_STATUSES: str = "failed,error,cancelled,canceled,content_filtered"

    @property
    def poll_interval_seconds(self) -> float:
        return self.POLL_INTERVAL_MS / 1000.0

    @property
    def max_poll_seconds(self) -> float:
        return self.MAX_POLL_MS / 1000.0

    @property
    def success_statuses(self) -> frozenset[str]:
        return _split_csv(self.PROVIDER_SUCCESS_STATUSES)

    @property
    def failure_statuses(self) -> frozenset[str]:
        return _split_csv(self.PROVIDER_FAILURE_STATUSES)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def _split_csv(value: str) -> frozenset[str]:
    return frozenset(p.strip().lower() for p in value.split(",") if p.strip())


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
