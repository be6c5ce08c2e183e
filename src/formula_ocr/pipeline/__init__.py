"""Recognition orchestration and progress reporting."""

from .orchestrator import (
    RecognitionOrchestrator,
    VerificationMode,
    default_summary_for_lang,
    default_title_for_lang,
    degraded_analysis,
    image_stem,
)
from .progress import CollectingProgressSink, LoggingProgressSink, ProgressSink

__all__ = [
    "CollectingProgressSink",
    "LoggingProgressSink",
    "ProgressSink",
    "RecognitionOrchestrator",
    "VerificationMode",
    "default_summary_for_lang",
    "default_title_for_lang",
    "degraded_analysis",
    "image_stem",
]
