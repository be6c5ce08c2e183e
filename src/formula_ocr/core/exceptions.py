"""Exception hierarchy for the recognition pipeline."""


class FormulaOCRError(Exception):
    """Base exception for all formula recognition errors."""


class BackendError(FormulaOCRError):
    """Raised when a call to the generative backend fails."""


class TransportError(BackendError):
    """Raised on connection failures, timeouts and other transport problems."""


class HttpStatusError(BackendError):
    """Raised when the backend answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"API request failed with status {status_code}: {body}")


class CancellationError(BackendError):
    """Raised when the request was cancelled upstream. Never retried."""


class ParseError(FormulaOCRError):
    """Raised when a backend payload does not match the expected shape."""


class ConfigError(FormulaOCRError):
    """Raised for invalid or incomplete configuration."""


class HistoryError(FormulaOCRError):
    """Raised when the history store cannot be read, written or updated."""


class ImageSourceError(FormulaOCRError):
    """Raised when an image source cannot produce a usable payload."""
