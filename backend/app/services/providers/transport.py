"""Provider transport — authenticated exchanges with the generation API.

Submission:
  POST JSON → (rejected with a multipart hint?) → POST multipart once

Polling:
  GET status URL → normalize status → extract result on completion
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.services.errors import (
    ProviderFallbackError,
    ProviderHTTPError,
    ProviderTransportError,
)
from app.services.providers.extraction import (
    ExtractedResult,
    InlineResult,
    ProviderState,
    extract_result,
    extract_status,
    normalize_status,
)

logger = logging.getLogger(__name__)

HANDLE_PLACEHOLDER = "{jobId}"

# Lower-cased substrings in a rejection body that suggest the endpoint wants
# multipart/form-data instead of JSON.
FORM_RETRY_MARKERS: tuple[str, ...] = ("multipart", "content-type", "accept", "prompt: required")


@dataclass
class ProviderResponse:
    """Raw provider answer; ``json`` is ``None`` when the body is not JSON."""
    ok: bool
    status_code: int
    text: str
    json: Any = None
    content: bytes = b""
    media_type: str = ""

    @property
    def is_media(self) -> bool:
        return self.media_type.startswith(("image/", "video/"))


@dataclass
class PollOutcome:
    state: ProviderState
    raw_status: str | None
    payload: Any
    result: ExtractedResult | None = None


def should_retry_as_form(status_code: int, text: str) -> bool:
    """Heuristic: does a failed JSON attempt look like an encoding mismatch?"""
    if status_code == 400:
        return True
    lowered = (text or "").lower()
    return any(marker in lowered for marker in FORM_RETRY_MARKERS)


def build_form_fields(payload: dict[str, Any]) -> list[tuple[str, tuple[None, str]]]:
    """Flatten a JSON payload into multipart fields.

    ``text_prompts`` is sent both as a JSON string and as a scalar ``prompt``
    for endpoints that only accept the latter.
    """
    fields: list[tuple[str, tuple[None, str]]] = []
    text_prompts = payload.get("text_prompts")
    if text_prompts:
        fields.append(("text_prompts", (None, json.dumps(text_prompts))))
        first = text_prompts[0] if isinstance(text_prompts, list) else None
        if isinstance(first, dict) and first.get("text"):
            fields.append(("prompt", (None, str(first["text"]))))
        else:
            fields.append(("prompt", (None, json.dumps(text_prompts))))
    elif payload.get("prompt"):
        fields.append(("prompt", (None, str(payload["prompt"]))))

    for key in ("width", "height", "samples", "duration", "model"):
        value = payload.get(key)
        if value:
            fields.append((key, (None, str(value))))
    return fields


class ProviderTransport:
    """Thin async client around the provider's submission and status endpoints."""

    def __init__(
        self,
        *,
        api_key: str,
        status_url_template: str,
        success_statuses: frozenset[str],
        failure_statuses: frozenset[str],
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.status_url_template = status_url_template
        self.success_statuses = success_statuses
        self.failure_statuses = failure_statuses
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._own_client = http_client is None

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    async def _send(self, method: str, url: str, **kwargs: Any) -> ProviderResponse:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderTransportError(f"{method} {url} failed: {e}") from e

        answer = ProviderResponse(
            ok=resp.is_success,
            status_code=resp.status_code,
            text="",
            content=resp.content,
            media_type=resp.headers.get("content-type", "").split(";", 1)[0].strip().lower(),
        )
        if answer.is_media:
            return answer

        answer.text = resp.text
        try:
            answer.json = resp.json()
        except ValueError:
            answer.json = None
        return answer

    async def post_json(self, url: str, payload: dict[str, Any]) -> ProviderResponse:
        return await self._send("POST", url, json=payload, headers=self._auth_headers)

    async def post_form(self, url: str, payload: dict[str, Any]) -> ProviderResponse:
        # httpx sets the multipart boundary header itself
        return await self._send(
            "POST", url, files=build_form_fields(payload), headers=self._auth_headers,
        )

    async def submit_json(self, url: str, payload: dict[str, Any]) -> Any:
        """Single JSON submission. Returns the parsed body (``None`` if not JSON)."""
        resp = await self.post_json(url, payload)
        if not resp.ok:
            raise ProviderHTTPError(resp.status_code, resp.text, context="Provider initial error")
        return resp.json

    async def submit_with_fallback(self, url: str, payload: dict[str, Any]) -> Any:
        """JSON submission with exactly one multipart retry on an encoding rejection."""
        json_attempt = await self.post_json(url, payload)
        if json_attempt.ok:
            return json_attempt.json

        json_error = ProviderHTTPError(
            json_attempt.status_code, json_attempt.text, context="Provider initial error",
        )
        if not should_retry_as_form(json_attempt.status_code, json_attempt.text):
            raise json_error

        logger.info(
            "JSON submission rejected (%d), retrying once as multipart form",
            json_attempt.status_code,
        )
        form_attempt = await self.post_form(url, payload)
        if form_attempt.ok:
            return form_attempt.json

        raise ProviderFallbackError(
            json_error,
            ProviderHTTPError(form_attempt.status_code, form_attempt.text, context="Form retry error"),
        )

    def status_url(self, handle: str) -> str:
        return self.status_url_template.replace(HANDLE_PLACEHOLDER, handle)

    async def check_status(self, handle: str) -> PollOutcome:
        """Query the status endpoint once.

        Raises ``ProviderTransportError`` on network failure or non-success
        status; polling callers treat that as retryable.
        """
        resp = await self._send("GET", self.status_url(handle), headers=self._auth_headers)
        if not resp.ok:
            raise ProviderHTTPError(resp.status_code, resp.text, context="Status poll error")

        if resp.is_media:
            # finished artifact served directly as the status body
            return PollOutcome(
                state=ProviderState.COMPLETED,
                raw_status=None,
                payload={"content_type": resp.media_type, "bytes": len(resp.content)},
                result=InlineResult(data=resp.content, media_type=resp.media_type),
            )

        payload = resp.json if resp.json is not None else resp.text
        raw_status = extract_status(payload)
        state = normalize_status(
            raw_status, success=self.success_statuses, failure=self.failure_statuses,
        )
        result = extract_result(payload) if state is ProviderState.COMPLETED else None
        return PollOutcome(state=state, raw_status=raw_status, payload=payload, result=result)
