"""Progress sinks receiving stage-completion events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from formula_ocr.core.types import ProgressEvent

log = logging.getLogger(__name__)


@runtime_checkable
class ProgressSink(Protocol):
    """Receives ``ProgressEvent``s in latex, analysis, confidence order."""

    def emit(self, event: ProgressEvent) -> None: ...


class CollectingProgressSink:
    """Keeps every event in memory, in arrival order."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def stages(self, recognition_id: str | None = None) -> list[str]:
        return [
            e.stage
            for e in self.events
            if recognition_id is None or e.recognition_id == recognition_id
        ]


class LoggingProgressSink:
    """Logs one line per event; payloads are left out."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def emit(self, event: ProgressEvent) -> None:
        log.log(
            self._level,
            "Recognition %s stage=%s prompt_version=%s",
            event.recognition_id,
            event.stage,
            event.prompt_version,
        )
