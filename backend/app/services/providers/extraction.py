"""Heuristic field scanning for loosely-specified provider responses.

Providers place results in different shapes depending on vendor and model:
inline base64 at the top level, the first element of an ``artifacts`` /
``output`` / ``data`` array, or nested under ``result`` / ``data`` /
``output`` objects. The rules below are tried in priority order (all
inline-base64 rules before any URL rule) and the first match wins.

Everything here is pure: no I/O, no logging side effects beyond debug.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from app.services.artifact_store import decode_base64_payload

logger = logging.getLogger(__name__)

# A path is a sequence of dict keys (str) and list indexes (int).
Path = tuple[Any, ...]


@dataclass(frozen=True)
class InlineResult:
    """Decoded inline payload."""
    data: bytes
    media_type: str | None = None
    source: Path = ()


@dataclass(frozen=True)
class UrlResult:
    """Remote artifact location."""
    url: str
    source: Path = ()


ExtractedResult = InlineResult | UrlResult


class ProviderState(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PROCESSING = "processing"


def _with_containers(keys: Iterable[str]) -> list[Path]:
    """Expand leaf keys across the container shapes seen in the wild."""
    containers: list[Path] = [
        (),
        ("artifacts", 0),
        ("output", 0),
        ("data", 0),
        ("result",),
        ("data",),
        ("output",),
        ("result", "output", 0),
    ]
    return [c + (k,) for c in containers for k in keys]


BASE64_RULES: tuple[Path, ...] = tuple(_with_containers(
    ("video_base64", "image_base64", "base64", "b64_json")
)) + (
    # bare "image" / "video" keys hold base64 on some APIs; URLs fail to decode
    ("image",),
    ("video",),
)

URL_RULES: tuple[Path, ...] = tuple(_with_containers(
    ("video_url", "image_url", "output_url", "url")
))

HANDLE_RULES: tuple[Path, ...] = (
    ("id",),
    ("job_id",),
    ("task_id",),
    ("data", "id"),
    ("data", "task_id"),
    ("output", "task_id"),
    ("result", "id"),
)

STATUS_RULES: tuple[Path, ...] = (
    ("status",),
    ("state",),
    ("task_status",),
    ("result", "status"),
    ("data", "status"),
    ("data", "task_status"),
    ("output", "task_status"),
    ("finish_reason",),
)


def dig(payload: Any, path: Path) -> Any:
    """Follow ``path`` into nested dicts/lists; ``None`` when any step is missing."""
    node = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or len(node) <= step:
                return None
            node = node[step]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(step)
        if node is None:
            return None
    return node


def _first_string(payload: Any, rules: Sequence[Path]) -> tuple[Path, str] | None:
    for path in rules:
        value = dig(payload, path)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return path, str(value)
    return None


def extract_result(payload: Any) -> ExtractedResult | None:
    """Return the first inline payload, else the first URL, else ``None``."""
    for path in BASE64_RULES:
        value = dig(payload, path)
        if not isinstance(value, str) or not value:
            continue
        try:
            data, media_type = decode_base64_payload(value)
        except ValueError:
            logger.debug("Ignoring undecodable base64 at %s", path)
            continue
        return InlineResult(data=data, media_type=media_type, source=path)

    for path in URL_RULES:
        value = dig(payload, path)
        if isinstance(value, str) and value:
            return UrlResult(url=value, source=path)
    return None


def extract_handle(payload: Any) -> str | None:
    """Provider task identifier to poll later, if the response carries one."""
    found = _first_string(payload, HANDLE_RULES)
    return found[1] if found else None


def extract_status(payload: Any) -> str | None:
    found = _first_string(payload, STATUS_RULES)
    return found[1] if found else None


def normalize_status(
    raw_status: str | None,
    *,
    success: frozenset[str],
    failure: frozenset[str],
) -> ProviderState:
    """Collapse a provider status word into completed / failed / processing.

    Unknown or missing statuses count as still processing.
    """
    if not raw_status:
        return ProviderState.PROCESSING
    word = raw_status.strip().lower()
    if word in success:
        return ProviderState.COMPLETED
    if word in failure:
        return ProviderState.FAILED
    return ProviderState.PROCESSING
