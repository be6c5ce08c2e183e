"""Parsing strategies for backend responses.

The backend wraps the model's answer in a candidates envelope; the answer
itself is a JSON document, sometimes fenced in Markdown and sometimes
slightly malformed. Parsing is strict by default. The extraction stage gets
one lenient recovery path, a string scan for the ``"latex"`` value, because
a stray bracket after an otherwise valid string is a common model defect.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from formula_ocr.core.exceptions import ParseError
from formula_ocr.core.models import (
    Analysis,
    AnalysisPayload,
    LatexPayload,
    Verification,
    VerificationResult,
)

log = logging.getLogger(__name__)

_LATEX_KEY = '"latex"'


def clean_response(text: str) -> str:
    """Strip Markdown code-fence markers and surrounding whitespace."""
    return text.replace("```json", "").replace("```", "").strip()


def extract_candidate_text(raw_text: str) -> str:
    """Return the first candidate's first text part from a backend envelope.

    Raises:
        ParseError: If the envelope is not JSON or carries no text; the
            message includes the reported finish reason when available.
    """
    try:
        envelope = json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse Gemini API response JSON: {raw_text}") from e

    text = _first_text(envelope)
    if text is None:
        raise ParseError(
            f"Gemini returned no text (finishReason: {_finish_reason(envelope)}). "
            f"Raw: {raw_text}"
        )
    return text


def _first_text(envelope: Any) -> str | None:
    if not isinstance(envelope, dict):
        return None
    candidates = envelope.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts:
        return None
    part = parts[0]
    text = part.get("text") if isinstance(part, dict) else None
    return text if isinstance(text, str) else None


def _finish_reason(envelope: Any) -> str:
    try:
        reason = envelope["candidates"][0]["finishReason"]
    except (KeyError, IndexError, TypeError):
        return "unknown"
    return reason if isinstance(reason, str) else "unknown"


def parse_strict[M: BaseModel](text: str, model: type[M]) -> M:
    """Validate cleaned JSON text against a stage schema.

    Raises:
        ParseError: Including the offending text when validation fails.
    """
    try:
        return model.model_validate_json(text)
    except ValidationError as e:
        raise ParseError(
            f"Failed to parse {model.__name__} content: {text}"
        ) from e


def relaxed_extract_latex(text: str) -> str | None:
    """Recover the ``"latex"`` string value from almost-valid JSON.

    Finds the key, the colon after it and the first quote after the colon,
    then scans to the first unescaped closing quote. A backslash escapes
    exactly the next character. The quoted span is decoded as a JSON string.
    Anything after the closing quote is ignored.

    Returns:
        The decoded value, or None if no complete, decodable string is found.
    """
    key_at = text.find(_LATEX_KEY)
    if key_at == -1:
        return None
    colon = text.find(":", key_at + len(_LATEX_KEY))
    if colon == -1:
        return None
    qstart = text.find('"', colon + 1)
    if qstart == -1:
        return None

    escaped = False
    for i in range(qstart + 1, len(text)):
        ch = text[i]
        if ch == '"' and not escaped:
            try:
                decoded = json.loads(text[qstart : i + 1])
            except json.JSONDecodeError:
                return None
            return decoded if isinstance(decoded, str) else None
        escaped = ch == "\\" and not escaped
    return None


def parse_latex(text: str) -> str:
    """Parse an extraction payload, falling back to the lenient scan."""
    try:
        return parse_strict(text, LatexPayload).latex
    except ParseError:
        recovered = relaxed_extract_latex(text)
        if recovered is not None:
            log.debug("Recovered latex via relaxed extraction")
            return recovered
        raise ParseError(f"Failed to parse latex-only content: {text}") from None


def parse_analysis(text: str, default_title: str) -> tuple[str, Analysis]:
    """Parse an analysis payload into ``(title, analysis)``.

    A model that answers the extraction schema instead (``"latex"`` present,
    ``"analysis"`` absent) yields the default title and an empty analysis.
    """
    if _LATEX_KEY in text and '"analysis"' not in text:
        log.debug("Analysis stage answered with a latex payload; using defaults")
        return default_title, Analysis.empty()
    payload = parse_strict(text, AnalysisPayload)
    return payload.title, payload.analysis


def parse_verification_result(text: str) -> VerificationResult:
    """Parse the score+report verification form."""
    return parse_strict(text, VerificationResult)


def parse_verification(text: str) -> Verification:
    """Parse the structured verification form."""
    return parse_strict(text, Verification)
