"""Backend client: transport, retry policy and the recognition backend."""

from .backend import GeminiBackend, RecognitionBackend, create_backend
from .retry import RetryingTransport, backoff_delay, is_cancellation, is_retryable
from .transport import GeminiTransport, Transport, build_endpoint

__all__ = [
    "GeminiBackend",
    "GeminiTransport",
    "RecognitionBackend",
    "RetryingTransport",
    "Transport",
    "backoff_delay",
    "build_endpoint",
    "create_backend",
    "is_cancellation",
    "is_retryable",
]
