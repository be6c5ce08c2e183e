import json

import httpx
import pytest

from formula_ocr.client.transport import (
    GeminiTransport,
    build_endpoint,
    canonical_models_base,
    describe_request,
    mask_url,
)
from formula_ocr.core.exceptions import (
    CancellationError,
    ConfigError,
    HttpStatusError,
    TransportError,
)
from formula_ocr.core.types import BackendConfig

pytestmark = pytest.mark.unit


def _config(**overrides) -> BackendConfig:
    base = {
        "api_key": "k",
        "base_url": "https://example.test/v1beta/models",
        "model_name": "gemini-2.5-flash",
    }
    return BackendConfig(**{**base, **overrides})


def _transport(handler, **overrides) -> GeminiTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiTransport(_config(**overrides), client=client)


@pytest.mark.parametrize(
    ("base", "expected"),
    [
        ("https://host", "https://host/v1beta/models"),
        ("https://host/", "https://host/v1beta/models"),
        ("https://host/v1beta", "https://host/v1beta/models"),
        ("https://host/v1/", "https://host/v1/models"),
        ("https://host/v1beta/models/", "https://host/v1beta/models"),
        ("https://proxy/api/models", "https://proxy/api/models"),
    ],
)
def test_canonical_models_base(base, expected):
    assert canonical_models_base(base) == expected


def test_endpoint_includes_key_only_when_set():
    assert build_endpoint(_config()) == (
        "https://example.test/v1beta/models/gemini-2.5-flash:generateContent?key=k"
    )
    assert build_endpoint(_config(api_key="")) == (
        "https://example.test/v1beta/models/gemini-2.5-flash:generateContent"
    )


def test_mask_url_drops_query():
    assert mask_url("https://h/m:generateContent?key=secret") == (
        "https://h/m:generateContent"
    )


def test_describe_request_hides_payloads():
    body = {
        "contents": [
            {"parts": [{"text": "abc"}, {"inlineData": {"mimeType": "image/png", "data": "xxxx"}}]}
        ],
        "generationConfig": {"temperature": 0.2, "maxOutputTokens": 10},
    }
    summary = describe_request(body)
    assert "text(3 chars)" in summary
    assert "image(4 bytes)" in summary
    assert "abc" not in summary


@pytest.mark.parametrize(
    "overrides",
    [
        {"request_timeout_seconds": 0},
        {"max_retries": -1},
        {"max_output_tokens": 0},
        {"model_name": " "},
    ],
)
def test_backend_config_rejects_invalid_values(overrides):
    with pytest.raises(ConfigError):
        _config(**overrides)


@pytest.mark.asyncio
async def test_send_posts_json_and_returns_text():
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text='{"candidates": []}')

    transport = _transport(handler)
    text = await transport.send({"contents": []})

    assert text == '{"candidates": []}'
    assert seen["body"] == {"contents": []}
    assert str(seen["url"]).endswith(":generateContent?key=k")


@pytest.mark.asyncio
async def test_non_success_status_raises_http_status_error():
    transport = _transport(lambda request: httpx.Response(503, text="overloaded"))

    with pytest.raises(HttpStatusError) as exc_info:
        await transport.send({})

    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "overloaded"
    assert "status 503" in str(exc_info.value)


@pytest.mark.asyncio
async def test_status_499_raises_cancellation():
    transport = _transport(lambda request: httpx.Response(499, text="context canceled"))

    with pytest.raises(CancellationError):
        await transport.send({})


@pytest.mark.asyncio
async def test_connection_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="Failed to send request"):
        await _transport(handler).send({})


@pytest.mark.asyncio
async def test_timeout_raises_transport_error_mentioning_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransportError, match="timed out"):
        await _transport(handler).send({})


@pytest.mark.asyncio
async def test_undecodable_response_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip stream", request=request)

    with pytest.raises(TransportError, match="bad gzip stream"):
        await _transport(handler).send({})


@pytest.mark.asyncio
async def test_malformed_base_url_raises_config_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request should be sent")

    transport = _transport(handler, base_url="https://example.test:99999/v1beta")

    with pytest.raises(ConfigError, match="Invalid Gemini API URL"):
        await transport.send({})
