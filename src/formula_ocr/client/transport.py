"""HTTP transport for the Gemini ``generateContent`` endpoint.

The transport sends exactly one request per ``send`` call and turns every
failure into a typed error. Retrying is layered on top by
``formula_ocr.client.retry.RetryingTransport``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from formula_ocr.core.exceptions import (
    CancellationError,
    ConfigError,
    HttpStatusError,
    TransportError,
)

if TYPE_CHECKING:
    from formula_ocr.core.types import BackendConfig

log = logging.getLogger(__name__)

CANCELLED_STATUS = 499
_BODY_SNIPPET_CHARS = 4000


@runtime_checkable
class Transport(Protocol):
    """Sends one JSON request body and returns the raw response text."""

    async def send(self, request_body: dict[str, Any]) -> str: ...


def canonical_models_base(base_url: str) -> str:
    """Normalize a configured base URL so it always ends in a models path.

    ``https://host`` becomes ``https://host/v1beta/models``; a base that
    already names an API version gets ``/models`` appended; a base that
    already contains ``/models`` is kept as-is.
    """
    base = base_url.rstrip("/")
    if "/models" in base:
        return base
    if "/v1beta" in base or "/v1" in base:
        return f"{base}/models"
    return f"{base}/v1beta/models"


def build_endpoint(config: BackendConfig) -> str:
    """Return the full ``generateContent`` URL, key included when set."""
    url = f"{canonical_models_base(config.base_url)}/{config.model_name}:generateContent"
    if config.api_key:
        url += f"?key={config.api_key}"
    return url


def mask_url(url: str) -> str:
    """Drop the query string so the API key never reaches the logs."""
    return url.split("?", 1)[0]


def describe_request(request_body: dict[str, Any]) -> str:
    """Summarize parts and generation settings without leaking payloads."""
    parts_desc: list[str] = []
    for content in request_body.get("contents", ()):
        for part in content.get("parts", ()):
            if "text" in part:
                parts_desc.append(f"text({len(part['text'])} chars)")
            elif "inlineData" in part:
                parts_desc.append(f"image({len(part['inlineData'].get('data', ''))} bytes)")
    gen = request_body.get("generationConfig", {})
    return (
        f"parts=[{', '.join(parts_desc)}] "
        f"maxOutputTokens={gen.get('maxOutputTokens')} "
        f"temperature={gen.get('temperature')}"
    )


class GeminiTransport:
    """Single-shot async transport backed by ``httpx.AsyncClient``.

    Immutable after construction and safe to share between concurrently
    running stage tasks. A client may be injected (tests pass one wired to
    ``httpx.MockTransport``); otherwise a short-lived client is opened per
    request with the configured timeout.
    """

    __slots__ = ("_client", "_config", "_url")

    def __init__(
        self, config: BackendConfig, *, client: httpx.AsyncClient | None = None
    ) -> None:
        self._config = config
        self._url = build_endpoint(config)
        self._client = client

    @property
    def config(self) -> BackendConfig:
        return self._config

    @property
    def url(self) -> str:
        return self._url

    async def send(self, request_body: dict[str, Any]) -> str:
        """POST the body and return the response text.

        Raises:
            CancellationError: Status 499.
            HttpStatusError: Any other non-2xx status.
            TransportError: Connection failures, timeouts and undecodable bodies.
            ConfigError: The configured base URL is not a valid URL.
        """
        masked = mask_url(self._url)
        log.debug("Request -> url=%s %s", masked, describe_request(request_body))

        try:
            if self._client is not None:
                response = await self._client.post(self._url, json=request_body)
            else:
                async with httpx.AsyncClient(
                    timeout=self._config.request_timeout_seconds
                ) as client:
                    response = await client.post(self._url, json=request_body)
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Failed to send request to Gemini API: request timed out ({e})"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to send request to Gemini API: {e}") from e
        except httpx.InvalidURL as e:
            raise ConfigError(f"Invalid Gemini API URL {masked}: {e}") from e

        text = response.text
        log.debug(
            "Response <- url=%s status=%d len=%d bodySnippet=%s",
            masked,
            response.status_code,
            len(text),
            text[:_BODY_SNIPPET_CHARS],
        )

        if response.status_code == CANCELLED_STATUS:
            raise CancellationError(
                f"API request failed with status {CANCELLED_STATUS}: {text}"
            )
        if not response.is_success:
            raise HttpStatusError(response.status_code, text)
        return text
