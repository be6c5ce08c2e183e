"""
Global test configuration: environment isolation and backend doubles.
"""

import asyncio
from contextlib import suppress
import logging
import os
from typing import Any

import pytest

from formula_ocr.config import FormulaSettings, resolve_config
from formula_ocr.core.models import (
    Analysis,
    TermInfo,
    VariableInfo,
    Verification,
    VerificationResult,
)


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-in escape hatch: mark a test with @pytest.mark.allow_dotenv
    to permit .env loading for that specific test.
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_formula_env(request, monkeypatch):
    """Ensure a clean FORMULA_OCR_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("FORMULA_OCR_"):
            monkeypatch.delenv(key, raising=False)
    # Avoid DEBUG toggles enabling telemetry
    monkeypatch.delenv("DEBUG", raising=False)


# --- Logging Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Sets the log level for noisy external libraries to WARNING."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# --- Test Environment Markers ---
def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "allow_dotenv: Permit .env loading for this test",
        "allow_env_pollution: Keep FORMULA_OCR_* variables from the real environment",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- Core Fixtures ---


@pytest.fixture
def mock_api_key():
    """Provide a consistent, fake API key for tests."""
    return "test_api_key_12345"


@pytest.fixture
def settings(tmp_path, mock_api_key) -> FormulaSettings:
    """Settings with a fake key and data stored under tmp_path."""
    return resolve_config({"api_key": mock_api_key, "data_dir": tmp_path / "data"})


SAMPLE_ANALYSIS = Analysis(
    summary="Mass-energy equivalence.",
    variables=[
        VariableInfo(symbol="E", description="energy", unit="J"),
        VariableInfo(symbol="m", description="mass", unit="kg"),
    ],
    terms=[TermInfo(name="mc^2", description="rest energy")],
)


class StubBackend:
    """In-memory ``RecognitionBackend`` with per-call delays and failures.

    ``calls`` records call starts and ``completed`` records successful
    returns, so tests can assert on wall-clock ordering.
    """

    def __init__(
        self,
        *,
        latex: str = "E = mc^2",
        title: str = "Mass-energy equivalence",
        analysis: Analysis = SAMPLE_ANALYSIS,
        verification: VerificationResult | None = None,
        structured: Verification | None = None,
        raw: str = "pong",
        delays: dict[str, float] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.latex = latex
        self.title = title
        self.analysis = analysis
        self.verification = verification or VerificationResult(
            confidence_score=92, verification_report="Looks right."
        )
        self.structured = structured
        self.raw = raw
        self.delays = delays or {}
        self.errors = errors or {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.completed: list[str] = []

    async def _run(self, name: str, args: tuple[Any, ...], value: Any) -> Any:
        self.calls.append((name, args))
        await asyncio.sleep(self.delays.get(name, 0))
        if name in self.errors:
            raise self.errors[name]
        self.completed.append(name)
        return value

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]

    async def extract_latex(self, prompt, image_base64):
        return await self._run("extract_latex", (prompt, image_base64), self.latex)

    async def generate_analysis(self, prompt, image_base64, default_title):
        return await self._run(
            "generate_analysis",
            (prompt, image_base64, default_title),
            (self.title, self.analysis),
        )

    async def verify(self, prompt, latex, image_base64=None):
        return await self._run(
            "verify", (prompt, latex, image_base64), self.verification
        )

    async def verify_structured(self, latex, image_base64, language):
        if self.structured is None and "verify_structured" not in self.errors:
            self.errors["verify_structured"] = RuntimeError("no structured verdict")
        return await self._run(
            "verify_structured", (latex, image_base64, language), self.structured
        )

    async def generate_raw(self, prompt):
        return await self._run("generate_raw", (prompt,), self.raw)


@pytest.fixture
def make_backend():
    """Factory for ``StubBackend`` instances."""
    return StubBackend


# 1x1 transparent PNG
PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture
def png_base64() -> str:
    return PNG_BASE64
