"""Retry policy and the retrying transport decorator.

Retryability is decided from the error's status and text only, so the
same policy applies to typed errors raised by ``GeminiTransport`` and to
foreign exceptions raised by injected transports. Cancellation always wins
over any retryable pattern it may also match.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any

from formula_ocr.client.transport import CANCELLED_STATUS, Transport
from formula_ocr.core.exceptions import CancellationError

log = logging.getLogger(__name__)

RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

_TRANSPORT_PATTERNS: tuple[str, ...] = (
    "failed to send request",
    "timeout",
    "timed out",
    "connection reset",
    "temporarily unavailable",
)

_JITTER_STEP_MS = 137

type SleepFn = Callable[[float], Awaitable[Any]]


def _status_of(error: Exception) -> int | None:
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_cancellation(error: Exception) -> bool:
    """True for status 499 or a "context canceled" message."""
    text = str(error).lower()
    return (
        isinstance(error, CancellationError)
        or _status_of(error) == CANCELLED_STATUS
        or f"status {CANCELLED_STATUS}" in text
        or "context canceled" in text
    )


def is_retryable(error: Exception) -> bool:
    """Classify an error as transient (retry) or final (raise)."""
    if is_cancellation(error):
        return False
    status = _status_of(error)
    if status in RETRYABLE_STATUSES:
        return True
    text = str(error).lower()
    if any(f"status {code}" in text for code in RETRYABLE_STATUSES):
        return True
    return any(pattern in text for pattern in _TRANSPORT_PATTERNS)


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before retry ``attempt`` (1-indexed).

    ``2 ** attempt`` seconds plus ``(attempt * 137) % 1000`` milliseconds.
    Deterministic for a given attempt.
    """
    if attempt < 1:
        raise ValueError("attempt is 1-indexed")
    jitter_ms = (attempt * _JITTER_STEP_MS) % 1000
    return float(2**attempt) + jitter_ms / 1000


class RetryingTransport:
    """Wrap a ``Transport`` and retry transient failures with backoff.

    Exhausting ``max_retries`` or hitting a non-retryable error re-raises
    the last error unchanged.
    """

    __slots__ = ("_inner", "_max_retries", "_sleep")

    def __init__(
        self,
        inner: Transport,
        *,
        max_retries: int,
        sleep: SleepFn | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._inner = inner
        self._max_retries = max_retries
        self._sleep: SleepFn = sleep or asyncio.sleep

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def send(self, request_body: dict[str, Any]) -> str:
        attempts = 0
        while True:
            try:
                return await self._inner.send(request_body)
            except Exception as e:
                if not is_retryable(e) or attempts >= self._max_retries:
                    raise
                attempts += 1
                delay = backoff_delay(attempts)
                log.info(
                    "Retry #%d, reason='%s', waiting %.3fs", attempts, e, delay
                )
                await self._sleep(delay)
