"""Scenario-first convenience helpers for common operations.

These functions wire configuration, backend, history and image storage into
a ``RecognitionOrchestrator`` (or call the backend directly) so callers can
run a recognition, re-run a single stage or check connectivity in one call.
Pass an explicit backend or history cache to share them across calls.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from formula_ocr import scoring
from formula_ocr.client.backend import create_backend
from formula_ocr.config import resolve_config
from formula_ocr.history import HistoryCache, ImageStore, JSONHistoryStore
from formula_ocr.pipeline.orchestrator import (
    RecognitionOrchestrator,
    VerificationMode,
    default_title_for_lang,
)
from formula_ocr.sources import Base64ImageSource

if TYPE_CHECKING:
    import httpx

    from formula_ocr.client.backend import RecognitionBackend
    from formula_ocr.config import FormulaSettings
    from formula_ocr.core.models import (
        Analysis,
        HistoryRecord,
        Verification,
        VerificationResult,
    )
    from formula_ocr.pipeline.progress import ProgressSink
    from formula_ocr.sources import ImageSource
    from formula_ocr.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)


def open_history(settings: FormulaSettings | None = None) -> HistoryCache:
    """Return a history cache over ``<data_dir>/history.json``.

    Construct it once and pass it to every call that touches history.
    """
    final = settings or resolve_config()
    return HistoryCache(JSONHistoryStore(final.history_path))


def _backend_for(
    settings: FormulaSettings,
    backend: RecognitionBackend | None,
    client: httpx.AsyncClient | None,
) -> RecognitionBackend:
    if backend is not None:
        return backend
    return create_backend(settings.to_backend_config(), client=client)


def create_orchestrator(
    settings: FormulaSettings | None = None,
    *,
    backend: RecognitionBackend | None = None,
    history: HistoryCache | None = None,
    progress: ProgressSink | None = None,
    telemetry: TelemetryContextProtocol | None = None,
    verification_mode: VerificationMode = "report",
    client: httpx.AsyncClient | None = None,
) -> RecognitionOrchestrator:
    """Build an orchestrator from settings.

    Images are saved under ``<data_dir>/pictures``. When ``history`` is
    omitted a cache over the configured history file is created.
    """
    final = settings or resolve_config()
    return RecognitionOrchestrator(
        _backend_for(final, backend, client),
        final.build_prompt_set(),
        history=history if history is not None else open_history(final),
        images=ImageStore(final.pictures_dir),
        progress=progress,
        language=final.language,
        model_name=final.model,
        telemetry=telemetry,
        verification_mode=verification_mode,
    )


async def recognize(
    source: ImageSource | str,
    *,
    settings: FormulaSettings | None = None,
    backend: RecognitionBackend | None = None,
    history: HistoryCache | None = None,
    progress: ProgressSink | None = None,
    verification_mode: VerificationMode = "report",
) -> HistoryRecord:
    """Recognize one formula image and append it to history.

    Args:
        source: An ``ImageSource``, or a base64 string (a ``data:`` URL is
            accepted too).
        settings: Resolved settings; ``resolve_config()`` when omitted.
        backend: Backend override, e.g. a stub in tests.
        history: Shared history cache.
        progress: Sink receiving the three stage events.
        verification_mode: ``"report"`` or ``"structured"``.

    Example:
        ```python
        from formula_ocr import FileImageSource, recognize

        record = await recognize(FileImageSource.from_path("euler.png"))
        print(record.latex, record.confidence_score)
        ```
    """
    image_source = Base64ImageSource(source) if isinstance(source, str) else source
    orchestrator = create_orchestrator(
        settings,
        backend=backend,
        history=history,
        progress=progress,
        verification_mode=verification_mode,
    )
    return await orchestrator.recognize(image_source)


async def test_connection(
    *,
    settings: FormulaSettings | None = None,
    backend: RecognitionBackend | None = None,
) -> str:
    """Send a one-word prompt; return ``"ok"`` when the backend answers.

    Backend errors propagate unchanged.
    """
    final = settings or resolve_config()
    await _backend_for(final, backend, None).generate_raw("ping")
    return "ok"


# Keep pytest from collecting the helper above as a test.
test_connection.__test__ = False  # type: ignore[attr-defined]


async def retry_analysis(
    image_base64: str,
    *,
    settings: FormulaSettings | None = None,
    backend: RecognitionBackend | None = None,
) -> tuple[str, Analysis]:
    """Re-run only the analysis stage. Errors propagate, nothing is degraded."""
    final = settings or resolve_config()
    prompts = final.build_prompt_set()
    prompts.require_complete()
    payload = await Base64ImageSource(image_base64).load()
    return await _backend_for(final, backend, None).generate_analysis(
        prompts.analysis, payload, default_title_for_lang(final.language)
    )


async def retry_verification(
    latex: str,
    image_base64: str,
    *,
    settings: FormulaSettings | None = None,
    backend: RecognitionBackend | None = None,
) -> tuple[VerificationResult, Verification | None]:
    """Re-run verification, preferring the structured form.

    A structured verdict is scored locally. If that call fails the score and
    report form is tried, and if that fails too the result is score 0 with
    the "verification failed" report. This function never raises for
    backend failures.
    """
    final = settings or resolve_config()
    prompts = final.build_prompt_set()
    prompts.require_complete()
    payload = await Base64ImageSource(image_base64).load()
    client = _backend_for(final, backend, None)
    try:
        verification = await client.verify_structured(latex, payload, final.language)
    except Exception as e:
        log.warning("Structured verification failed, using report form: %s", e)
    else:
        return scoring.score(verification, language=final.language), verification

    try:
        result = await client.verify(prompts.verification, latex, payload)
    except Exception as e:
        log.warning("Verification failed: %s", e)
        return scoring.verification_failed(final.language), None
    return result, None


async def confidence_for_latex(
    latex: str,
    *,
    settings: FormulaSettings | None = None,
    backend: RecognitionBackend | None = None,
) -> int:
    """Score a LaTeX string without an image (text-only verification)."""
    final = settings or resolve_config()
    prompts = final.build_prompt_set()
    prompts.require_complete()
    result = await _backend_for(final, backend, None).verify(
        prompts.verification, latex
    )
    return result.confidence_score
