import base64
import os

import httpx
import pytest

from app.services.artifact_store import ArtifactStore, decode_base64_payload, extension_for


def _read(store, reference):
    with open(store.path_for(reference), "rb") as f:
        return f.read()


@pytest.fixture
def store(tmp_path, http_client):
    return ArtifactStore(str(tmp_path / "out"), http_client=http_client)


async def test_store_twice_never_overwrites(store):
    payload = base64.b64encode(b"same bytes").decode()

    first = await store.store(payload)
    second = await store.store(payload)

    assert first != second
    assert first.startswith("/out/") and second.startswith("/out/")
    assert _read(store, first) == _read(store, second) == b"same bytes"


async def test_store_uses_embedded_media_type(store):
    ref = await store.store("data:image/jpeg;base64,QUJD")
    assert ref.endswith(".jpg")


async def test_store_falls_back_to_default_type(store):
    assert (await store.store("QUJD")).endswith(".png")
    assert (await store.store("QUJD", default_media_type="video/mp4")).endswith(".mp4")
    assert (await store.store("data:application/x-unknown;base64,QUJD")).endswith(".png")


async def test_store_rejects_invalid_base64(store):
    with pytest.raises(ValueError):
        await store.store("%%%")


async def test_fetch_and_store_downloads(store, provider):
    provider.on("GET", "https://cdn.test/v", lambda req: httpx.Response(
        200, content=b"\x00video", headers={"content-type": "video/mp4"},
    ))

    ref = await store.fetch_and_store("https://cdn.test/v")

    assert ref.startswith("/out/") and ref.endswith(".mp4")
    assert _read(store, ref) == b"\x00video"


async def test_fetch_and_store_guesses_type_from_url(store, provider):
    provider.on("GET", "https://cdn.test/clip.webm", (200, b"webm"))
    ref = await store.fetch_and_store("https://cdn.test/clip.webm", default_media_type="video/mp4")
    assert ref.endswith(".webm")


async def test_fetch_and_store_passes_url_through_on_bad_status(store, provider):
    provider.on("GET", "https://cdn.test/gone.png", (404, "missing"))
    assert await store.fetch_and_store("https://cdn.test/gone.png") == "https://cdn.test/gone.png"
    assert os.listdir(store.out_dir) == []


async def test_fetch_and_store_passes_url_through_on_network_error(store, provider):
    provider.on("GET", "https://cdn.test/x.png", httpx.ConnectError("unreachable"))
    assert await store.fetch_and_store("https://cdn.test/x.png") == "https://cdn.test/x.png"


def test_decode_base64_payload_strips_whitespace():
    assert decode_base64_payload("QU\nJD ") == (b"ABC", None)


def test_extension_for():
    assert extension_for("image/webp", "image/png") == "webp"
    assert extension_for("video/mp4; codecs=avc1", "image/png") == "mp4"
    assert extension_for(None, "video/mp4") == "mp4"


@pytest.mark.parametrize("url", ["https://[::1/x", "https://a\x00b/x", "not a url"])
async def test_fetch_and_store_passes_malformed_url_through(store, url):
    assert await store.fetch_and_store(url) == url
