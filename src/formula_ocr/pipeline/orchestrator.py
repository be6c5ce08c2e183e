"""Three-stage recognition of one formula image.

Extraction and analysis start together as soon as the image is loaded.
Verification needs the extracted LaTeX, so it starts when extraction
finishes and runs while the orchestrator waits on analysis. Progress events
go out in the fixed order latex, analysis, confidence no matter which
backend call returns first.

Failure policy per stage:
- extraction: fatal. The analysis task is cancelled and the error
  propagates unchanged.
- analysis: degraded to a localized default title and an empty analysis
  whose summary says the analysis is unavailable.
- verification: degraded to score 0 and the "verification failed" report.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING, Any, Literal
import uuid

from formula_ocr import scoring
from formula_ocr.core.models import Analysis, HistoryRecord
from formula_ocr.core.types import Failure, ProgressEvent, Success
from formula_ocr.prompts.defaults import is_chinese
from formula_ocr.sources import decode_payload
from formula_ocr.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from formula_ocr.client.backend import RecognitionBackend
    from formula_ocr.core.models import Verification, VerificationResult
    from formula_ocr.core.types import PromptSet, Result, Stage
    from formula_ocr.history.cache import HistoryCache
    from formula_ocr.history.images import ImageStore
    from formula_ocr.pipeline.progress import ProgressSink
    from formula_ocr.sources import ImageSource
    from formula_ocr.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)

VerificationMode = Literal["report", "structured"]

IMAGE_STEM_FORMAT = "%Y%m%d_%H%M%S"


def default_title_for_lang(language: str) -> str:
    return "未命名公式" if is_chinese(language) else "Untitled formula"


def default_summary_for_lang(language: str) -> str:
    if is_chinese(language):
        return "分析暂不可用，请稍后重试。"
    return "Analysis is temporarily unavailable. Please try again."


def degraded_analysis(language: str) -> tuple[str, Analysis]:
    """Title and analysis used when the analysis stage fails."""
    return (
        default_title_for_lang(language),
        Analysis.empty(default_summary_for_lang(language)),
    )


def image_stem(created: datetime, recognition_id: str) -> str:
    """``<YYYYmmdd_HHMMSS>_<id>``, the saved image's file name without suffix."""
    return f"{created.strftime(IMAGE_STEM_FORMAT)}_{recognition_id}"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(UTC)


async def _settle[T](task: Awaitable[T]) -> Result[T, Exception]:
    try:
        return Success(await task)
    except Exception as e:
        return Failure(e)


class RecognitionOrchestrator:
    """Runs extraction, analysis and verification for one image at a time.

    The orchestrator holds no per-recognition state, so one instance can
    serve concurrent ``recognize`` calls. History and image storage are
    optional; without them the record is returned but not persisted and
    ``original_image`` keeps the base64 payload.
    """

    def __init__(
        self,
        backend: RecognitionBackend,
        prompts: PromptSet,
        history: HistoryCache | None = None,
        images: ImageStore | None = None,
        progress: ProgressSink | None = None,
        language: str = "en",
        model_name: str | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        *,
        verification_mode: VerificationMode = "report",
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if verification_mode not in ("report", "structured"):
            raise ValueError(
                f"verification_mode must be 'report' or 'structured', got {verification_mode!r}"
            )
        self._backend = backend
        self._prompts = prompts
        self._history = history
        self._images = images
        self._progress = progress
        self._language = language
        self._model_name = model_name
        self._telemetry = telemetry or TelemetryContext()
        self._verification_mode = verification_mode
        self._id_factory = id_factory
        self._clock = clock

    @property
    def prompts(self) -> PromptSet:
        return self._prompts

    @property
    def language(self) -> str:
        return self._language

    async def recognize(self, source: ImageSource) -> HistoryRecord:
        """Recognize the formula in ``source`` and record the result.

        Raises:
            ConfigError: If any stage prompt is empty (before any backend call).
            ImageSourceError: If the source cannot produce a valid payload.
            FormulaOCRError: Any extraction-stage failure, unchanged.
        """
        self._prompts.require_complete()
        payload = await source.load()
        image_bytes = decode_payload(payload)

        recognition_id = self._id_factory()
        created = self._clock()
        created_at = created.isoformat()
        log.info("Recognition %s started (%d image bytes)", recognition_id, len(image_bytes))

        extraction_task = asyncio.create_task(
            self._timed(
                "latex", self._backend.extract_latex(self._prompts.extraction, payload)
            )
        )
        analysis_task = asyncio.create_task(
            self._timed(
                "analysis",
                self._backend.generate_analysis(
                    self._prompts.analysis,
                    payload,
                    default_title_for_lang(self._language),
                ),
            )
        )

        stage_tasks = [extraction_task, analysis_task]
        try:
            try:
                latex = await extraction_task
            except Exception:
                log.warning("Recognition %s failed at extraction", recognition_id)
                raise

            self._emit(
                recognition_id,
                "latex",
                {
                    "latex": latex,
                    "created_at": created_at,
                    "original_image": f"data:image/png;base64,{payload}",
                    "model_name": self._model_name,
                },
            )

            verification_task = asyncio.create_task(
                self._timed("confidence", self._verify(latex, payload))
            )
            stage_tasks.append(verification_task)

            match await _settle(analysis_task):
                case Success(value=(title, analysis)):
                    pass
                case Failure(error=error):
                    log.warning(
                        "Analysis stage failed for %s, using defaults: %s",
                        recognition_id,
                        error,
                    )
                    self._telemetry.count("recognition.degraded", stage="analysis")
                    title, analysis = degraded_analysis(self._language)

            self._emit(
                recognition_id,
                "analysis",
                {
                    "title": title,
                    "analysis": analysis.model_dump(mode="json", by_alias=True),
                },
            )

            match await _settle(verification_task):
                case Success(value=(result, verification)):
                    pass
                case Failure(error=error):
                    log.warning(
                        "Verification stage failed for %s: %s", recognition_id, error
                    )
                    self._telemetry.count("recognition.degraded", stage="confidence")
                    result = scoring.verification_failed(self._language)
                    verification = None

            self._emit(
                recognition_id,
                "confidence",
                {
                    "confidence_score": result.confidence_score,
                    "verification_report": result.verification_report,
                    "verification": (
                        verification.model_dump(mode="json")
                        if verification is not None
                        else None
                    ),
                },
            )
        finally:
            # Stage tasks never outlive the recognition, including when the
            # caller is cancelled.
            pending = [t for t in stage_tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        original_image = payload
        if self._images is not None:
            path = await asyncio.to_thread(
                self._images.save_png, image_stem(created, recognition_id), image_bytes
            )
            original_image = str(path)

        record = HistoryRecord(
            id=recognition_id,
            latex=latex,
            title=title,
            analysis=analysis,
            is_favorite=False,
            created_at=created_at,
            confidence_score=result.confidence_score,
            original_image=original_image,
            model_name=self._model_name,
            verification=verification,
            verification_report=result.verification_report,
        )
        if self._history is not None:
            await asyncio.to_thread(self._history.append, record)
        log.info(
            "Recognition %s finished (confidence=%d)",
            recognition_id,
            record.confidence_score,
        )
        return record

    async def _verify(
        self, latex: str, payload: str
    ) -> tuple[VerificationResult, Verification | None]:
        if self._verification_mode == "structured":
            try:
                verification = await self._backend.verify_structured(
                    latex, payload, self._language
                )
            except Exception as e:
                log.warning(
                    "Structured verification failed, using report form: %s", e
                )
            else:
                return scoring.score(verification, language=self._language), verification
        result = await self._backend.verify(self._prompts.verification, latex, payload)
        return result, None

    async def _timed[T](self, stage: Stage, call: Awaitable[T]) -> T:
        with self._telemetry(f"recognition.{stage}"):
            return await call

    def _emit(self, recognition_id: str, stage: Stage, payload: dict[str, Any]) -> None:
        if self._progress is None:
            return
        event = ProgressEvent(
            recognition_id=recognition_id,
            stage=stage,
            payload=payload,
            prompt_version=self._prompts.version,
        )
        try:
            self._progress.emit(event)
        except Exception as e:
            log.error(
                "Progress sink '%s' failed: %s",
                type(self._progress).__name__,
                e,
                exc_info=True,
            )
