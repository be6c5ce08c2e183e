import logging

import pytest

from formula_ocr.core.types import ProgressEvent
from formula_ocr.pipeline import CollectingProgressSink, LoggingProgressSink, ProgressSink

pytestmark = pytest.mark.unit


def _event(stage: str, recognition_id: str = "rec-1") -> ProgressEvent:
    return ProgressEvent(
        recognition_id=recognition_id,
        stage=stage,
        payload={"latex": r"\secret"},
        prompt_version="full",
    )


def test_logging_sink_logs_one_line_per_event(caplog):
    sink = LoggingProgressSink()

    with caplog.at_level(logging.INFO, logger="formula_ocr.pipeline.progress"):
        sink.emit(_event("latex"))
        sink.emit(_event("analysis"))

    assert [r.getMessage() for r in caplog.records] == [
        "Recognition rec-1 stage=latex prompt_version=full",
        "Recognition rec-1 stage=analysis prompt_version=full",
    ]
    assert all(r.levelno == logging.INFO for r in caplog.records)
    assert r"\secret" not in caplog.text


def test_logging_sink_uses_configured_level(caplog):
    sink = LoggingProgressSink(level=logging.DEBUG)

    with caplog.at_level(logging.INFO, logger="formula_ocr.pipeline.progress"):
        sink.emit(_event("confidence"))
    assert caplog.records == []

    with caplog.at_level(logging.DEBUG, logger="formula_ocr.pipeline.progress"):
        sink.emit(_event("confidence"))
    (record,) = caplog.records
    assert record.levelno == logging.DEBUG


def test_collecting_sink_filters_by_recognition():
    sink = CollectingProgressSink()
    sink.emit(_event("latex", "a"))
    sink.emit(_event("latex", "b"))
    sink.emit(_event("analysis", "a"))

    assert sink.stages("a") == ["latex", "analysis"]
    assert sink.stages() == ["latex", "latex", "analysis"]


def test_sinks_satisfy_protocol():
    assert isinstance(LoggingProgressSink(), ProgressSink)
    assert isinstance(CollectingProgressSink(), ProgressSink)
