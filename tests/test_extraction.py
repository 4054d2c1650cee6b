import pytest

from app.services.providers.extraction import (
    InlineResult,
    ProviderState,
    UrlResult,
    extract_handle,
    extract_result,
    extract_status,
    normalize_status,
)

SUCCESS = frozenset({"succeeded", "completed", "finished"})
FAILURE = frozenset({"failed", "error"})


def test_artifacts_base64_is_decoded():
    result = extract_result({"artifacts": [{"base64": "QUJD"}]})
    assert isinstance(result, InlineResult)
    assert result.data == b"ABC"
    assert result.media_type is None


def test_output_array_url():
    result = extract_result({"output": [{"url": "https://x/y.png"}]})
    assert result == UrlResult(url="https://x/y.png", source=("output", 0, "url"))


def test_no_result_found():
    assert extract_result({"message": "ok", "output": []}) is None
    assert extract_result(None) is None
    assert extract_result("plain text") is None


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"video_base64": "QUJD"}, b"ABC"),
        ({"image_base64": "QUJD"}, b"ABC"),
        ({"data": [{"b64_json": "QUJD"}]}, b"ABC"),
        ({"output": [{"base64": "QUJD"}]}, b"ABC"),
        ({"result": {"base64": "QUJD"}}, b"ABC"),
    ],
)
def test_inline_payload_locations(payload, expected):
    assert extract_result(payload).data == expected


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"video_url": "https://x/a.mp4"}, "https://x/a.mp4"),
        ({"output_url": "https://x/b.mp4"}, "https://x/b.mp4"),
        ({"result": {"video_url": "https://x/c.mp4"}}, "https://x/c.mp4"),
        ({"data": [{"url": "https://x/d.png"}]}, "https://x/d.png"),
        ({"output": {"video_url": "https://x/e.mp4"}}, "https://x/e.mp4"),
    ],
)
def test_url_locations(payload, expected):
    assert extract_result(payload).url == expected


def test_inline_payload_wins_over_url():
    payload = {
        "video_url": "https://x/a.mp4",
        "output": [{"base64": "QUJD"}],
    }
    assert isinstance(extract_result(payload), InlineResult)


def test_data_uri_carries_media_type():
    result = extract_result({"image_base64": "data:image/jpeg;base64,QUJD"})
    assert result.data == b"ABC"
    assert result.media_type == "image/jpeg"


def test_undecodable_base64_falls_through_to_url():
    payload = {"base64": "not base64!!", "url": "https://x/y.png"}
    assert extract_result(payload) == UrlResult(url="https://x/y.png", source=("url",))


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"id": "abc"}, "abc"),
        ({"job_id": "j-1"}, "j-1"),
        ({"task_id": "abc123"}, "abc123"),
        ({"data": {"id": "nested"}}, "nested"),
        ({"output": {"task_id": "dash"}}, "dash"),
        ({"message": "accepted"}, None),
    ],
)
def test_extract_handle(payload, expected):
    assert extract_handle(payload) == expected


def test_extract_status_synonym_fields():
    assert extract_status({"status": "completed"}) == "completed"
    assert extract_status({"state": "finished"}) == "finished"
    assert extract_status({"result": {"status": "succeeded"}}) == "succeeded"
    assert extract_status({"progress": 40}) is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("succeeded", ProviderState.COMPLETED),
        ("COMPLETED", ProviderState.COMPLETED),
        ("finished", ProviderState.COMPLETED),
        ("error", ProviderState.FAILED),
        ("in-progress", ProviderState.PROCESSING),
        (None, ProviderState.PROCESSING),
    ],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw, success=SUCCESS, failure=FAILURE) is expected


def test_bare_image_key_holds_base64():
    result = extract_result({"image": "QUJD", "finish_reason": "SUCCESS"})
    assert isinstance(result, InlineResult)
    assert result.data == b"ABC"


def test_bare_image_key_with_url_is_not_a_result():
    assert extract_result({"image": "https://cdn.test/a.png"}) is None
