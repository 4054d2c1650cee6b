"""Artifact materializer — turns inline base64 or remote URLs into local files.

Every write gets a fresh uuid-based filename under ``OUT_DIR``; nothing is
ever overwritten, so concurrent writers need no locking. References are the
public ``/out/<filename>`` paths served by the static mount.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import os
import re
import uuid
from pathlib import PurePosixPath
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/out"

_DATA_URI_RE = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)

_EXTENSIONS: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
}
_KNOWN_SUFFIXES = frozenset(_EXTENSIONS.values())


def decode_base64_payload(payload: str) -> tuple[bytes, str | None]:
    """Decode a plain or ``data:<mime>;base64,`` payload.

    Returns ``(bytes, media_type)``; raises ``ValueError`` on invalid base64.
    """
    media_type = None
    data = payload.strip()
    match = _DATA_URI_RE.match(data)
    if match:
        media_type, data = match.group(1).lower(), match.group(2)
    data = "".join(data.split())
    try:
        return base64.b64decode(data, validate=True), media_type
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def extension_for(media_type: str | None, default_media_type: str) -> str:
    """Map a media type to a file extension, falling back to the default type."""
    if media_type:
        ext = _EXTENSIONS.get(media_type.split(";", 1)[0].strip().lower())
        if ext:
            return ext
    return _EXTENSIONS.get(default_media_type, "bin")


class ArtifactStore:
    """Append-only artifact storage on the local filesystem."""

    def __init__(
        self,
        out_dir: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        download_timeout: float = 120.0,
    ) -> None:
        self.out_dir = out_dir
        self._http_client = http_client
        self._download_timeout = download_timeout
        os.makedirs(out_dir, exist_ok=True)

    def path_for(self, reference: str) -> str:
        """Filesystem path behind a ``/out/...`` reference."""
        name = reference.rsplit("/", 1)[-1]
        return os.path.join(self.out_dir, name)

    async def put(
        self,
        data: bytes,
        media_type: str | None,
        *,
        default_media_type: str = "image/png",
        prefix: str = "artifact",
    ) -> str:
        """Persist bytes under a fresh name and return the public reference."""
        filename = f"{prefix}-{uuid.uuid4().hex}.{extension_for(media_type, default_media_type)}"
        filepath = os.path.join(self.out_dir, filename)
        await asyncio.to_thread(_write_new_file, filepath, data)
        logger.info("Artifact saved: %s (%d bytes)", filename, len(data))
        return f"{PUBLIC_PREFIX}/{filename}"

    async def store(
        self,
        base64_payload: str,
        *,
        default_media_type: str = "image/png",
        prefix: str = "artifact",
    ) -> str:
        """Decode an inline base64 payload and persist it."""
        data, media_type = decode_base64_payload(base64_payload)
        return await self.put(
            data, media_type, default_media_type=default_media_type, prefix=prefix,
        )

    async def fetch_and_store(
        self,
        remote_url: str,
        *,
        default_media_type: str = "image/png",
        prefix: str = "artifact",
    ) -> str:
        """Download ``remote_url`` and persist it.

        Any network error, malformed URL or non-success status degrades to returning
        ``remote_url`` unchanged; the passthrough link is still usable.
        """
        client = self._http_client or httpx.AsyncClient(timeout=self._download_timeout)
        own_client = self._http_client is None
        try:
            response = await client.get(remote_url, follow_redirects=True)
            if response.status_code >= 400:
                logger.warning(
                    "Download of %s failed with status %d, passing URL through",
                    remote_url, response.status_code,
                )
                return remote_url
            data = response.content
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning("Download of %s failed (%s), passing URL through", remote_url, e)
            return remote_url
        finally:
            if own_client:
                await client.aclose()

        media_type = response.headers.get("content-type")
        if not media_type or extension_for(media_type, "") == "bin":
            media_type = _media_type_from_url(remote_url)
        return await self.put(
            data, media_type, default_media_type=default_media_type, prefix=prefix,
        )


def _media_type_from_url(url: str) -> str | None:
    suffix = PurePosixPath(urlparse(url).path).suffix.lstrip(".").lower()
    if suffix not in _KNOWN_SUFFIXES:
        return None
    for media_type, ext in _EXTENSIONS.items():
        if ext == suffix:
            return media_type
    return None


def _write_new_file(filepath: str, data: bytes) -> None:
    # "xb" refuses to clobber an existing artifact
    with open(filepath, "xb") as f:
        f.write(data)
