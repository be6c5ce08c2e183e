"""Formula image recognition over a generative image-to-text backend."""

import importlib.metadata
import logging

from formula_ocr.client.backend import GeminiBackend, RecognitionBackend, create_backend
from formula_ocr.config import FormulaSettings, resolve_config
from formula_ocr.core.exceptions import (
    BackendError,
    CancellationError,
    ConfigError,
    FormulaOCRError,
    HistoryError,
    HttpStatusError,
    ImageSourceError,
    ParseError,
    TransportError,
)
from formula_ocr.core.models import (
    Analysis,
    HistoryRecord,
    Verification,
    VerificationResult,
)
from formula_ocr.core.types import (
    BackendConfig,
    Failure,
    ProgressEvent,
    PromptSet,
    Result,
    Success,
)
from formula_ocr.frontdoor import (
    confidence_for_latex,
    create_orchestrator,
    open_history,
    recognize,
    retry_analysis,
    retry_verification,
    test_connection,
)
from formula_ocr.history import HistoryCache, ImageStore, JSONHistoryStore
from formula_ocr.pipeline import (
    CollectingProgressSink,
    LoggingProgressSink,
    ProgressSink,
    RecognitionOrchestrator,
)
from formula_ocr.scoring import score
from formula_ocr.sources import (
    Base64ImageSource,
    BytesImageSource,
    FileImageSource,
    ImageSource,
)
from formula_ocr.telemetry import TelemetryContext, TelemetryReporter

# Version handling
try:
    __version__ = importlib.metadata.version("formula-ocr")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
# This prevents 'No handler found' errors if the consuming app has no logging configured.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Front door
    "recognize",
    "retry_analysis",
    "retry_verification",
    "confidence_for_latex",
    "test_connection",
    "create_orchestrator",
    "open_history",
    # Orchestration
    "RecognitionOrchestrator",
    "ProgressSink",
    "CollectingProgressSink",
    "LoggingProgressSink",
    "ProgressEvent",
    # Backend
    "RecognitionBackend",
    "GeminiBackend",
    "create_backend",
    "BackendConfig",
    # Configuration
    "FormulaSettings",
    "resolve_config",
    "PromptSet",
    # Image sources
    "ImageSource",
    "Base64ImageSource",
    "BytesImageSource",
    "FileImageSource",
    # History
    "HistoryCache",
    "JSONHistoryStore",
    "ImageStore",
    # Data models
    "HistoryRecord",
    "Analysis",
    "Verification",
    "VerificationResult",
    "score",
    "Result",
    "Success",
    "Failure",
    # Telemetry (extension points)
    "TelemetryContext",
    "TelemetryReporter",
    # Exceptions
    "FormulaOCRError",
    "BackendError",
    "TransportError",
    "HttpStatusError",
    "CancellationError",
    "ParseError",
    "ConfigError",
    "HistoryError",
    "ImageSourceError",
]
