"""Recognition backends.

A backend exposes the five capabilities the orchestrator and front door
rely on. ``GeminiBackend`` is the single concrete provider; it builds
``generateContent`` request bodies from ``StageRequest`` values, sends them
through a ``Transport`` (normally a ``RetryingTransport``) and parses the
candidate text with the strategies in ``formula_ocr.response.parsing``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from formula_ocr.client.retry import RetryingTransport, SleepFn
from formula_ocr.client.transport import GeminiTransport, Transport
from formula_ocr.core.types import StageRequest
from formula_ocr.prompts.defaults import structured_verification_prompt
from formula_ocr.response.parsing import (
    clean_response,
    extract_candidate_text,
    parse_analysis,
    parse_latex,
    parse_verification,
    parse_verification_result,
)

if TYPE_CHECKING:
    import httpx

    from formula_ocr.core.models import Analysis, Verification, VerificationResult
    from formula_ocr.core.types import BackendConfig

log = logging.getLogger(__name__)

EXTRACTION_TEMPERATURE = 0.2
ANALYSIS_TEMPERATURE = 0.5
VERIFICATION_TEMPERATURE = 0.2
RAW_TEMPERATURE = 0.7


@runtime_checkable
class RecognitionBackend(Protocol):
    """Capabilities of a generative recognition provider."""

    async def extract_latex(self, prompt: str, image_base64: str) -> str: ...

    async def generate_analysis(
        self, prompt: str, image_base64: str, default_title: str
    ) -> tuple[str, Analysis]: ...

    async def verify(
        self, prompt: str, latex: str, image_base64: str | None = None
    ) -> VerificationResult: ...

    async def verify_structured(
        self, latex: str, image_base64: str, language: str
    ) -> Verification: ...

    async def generate_raw(self, prompt: str) -> str: ...


class GeminiBackend:
    """``RecognitionBackend`` speaking the Gemini REST wire format."""

    __slots__ = ("_max_output_tokens", "_transport")

    def __init__(self, transport: Transport, *, max_output_tokens: int) -> None:
        self._transport = transport
        self._max_output_tokens = max_output_tokens

    def build_request_body(self, request: StageRequest) -> dict[str, Any]:
        """Translate a stage request into a ``generateContent`` body."""
        parts: list[dict[str, Any]] = [{"text": request.text}]
        if request.image_base64 is not None:
            parts.append(
                {
                    "inlineData": {
                        "mimeType": request.mime_type,
                        "data": request.image_base64,
                    }
                }
            )
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": self._max_output_tokens,
            },
        }

    async def _call(self, request: StageRequest) -> str:
        raw = await self._transport.send(self.build_request_body(request))
        return extract_candidate_text(raw)

    async def extract_latex(self, prompt: str, image_base64: str) -> str:
        text = await self._call(
            StageRequest(
                prompt=prompt,
                image_base64=image_base64,
                temperature=EXTRACTION_TEMPERATURE,
            )
        )
        return parse_latex(clean_response(text))

    async def generate_analysis(
        self, prompt: str, image_base64: str, default_title: str
    ) -> tuple[str, Analysis]:
        text = await self._call(
            StageRequest(
                prompt=prompt,
                image_base64=image_base64,
                temperature=ANALYSIS_TEMPERATURE,
            )
        )
        return parse_analysis(clean_response(text), default_title)

    async def verify(
        self, prompt: str, latex: str, image_base64: str | None = None
    ) -> VerificationResult:
        """Ask for the score+report form; the image is optional."""
        text = await self._call(
            StageRequest(
                prompt=prompt,
                image_base64=image_base64,
                prior_text=latex,
                temperature=VERIFICATION_TEMPERATURE,
            )
        )
        return parse_verification_result(clean_response(text))

    async def verify_structured(
        self, latex: str, image_base64: str, language: str
    ) -> Verification:
        """Ask for the structured form with the built-in strict-verifier prompt."""
        text = await self._call(
            StageRequest(
                prompt=structured_verification_prompt(latex, language),
                image_base64=image_base64,
                temperature=VERIFICATION_TEMPERATURE,
            )
        )
        return parse_verification(clean_response(text))

    async def generate_raw(self, prompt: str) -> str:
        """Send a text-only prompt and return the model's text unparsed."""
        return await self._call(
            StageRequest(prompt=prompt, temperature=RAW_TEMPERATURE)
        )


def create_backend(
    config: BackendConfig,
    *,
    client: httpx.AsyncClient | None = None,
    sleep: SleepFn | None = None,
) -> GeminiBackend:
    """Wire a ``GeminiBackend`` over a retrying HTTP transport."""
    transport = RetryingTransport(
        GeminiTransport(config, client=client),
        max_retries=config.max_retries,
        sleep=sleep,
    )
    log.debug(
        "Created Gemini backend model=%s max_retries=%d",
        config.model_name,
        config.max_retries,
    )
    return GeminiBackend(transport, max_output_tokens=config.max_output_tokens)
