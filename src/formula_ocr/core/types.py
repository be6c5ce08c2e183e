"""Core immutable data types that flow through a recognition.

Each stage receives a frozen request and produces either a value or an
error. The ``Result`` type lets the orchestrator treat stage outcomes as
data and apply its per-stage failure policy in one place.
"""

from __future__ import annotations

import dataclasses
from types import MappingProxyType
import typing

from formula_ocr.core.exceptions import ConfigError

# --- Minimal guard helpers ---

T = typing.TypeVar("T")


def _freeze_mapping(
    m: dict[str, T] | typing.Mapping[str, T] | None,
) -> typing.Mapping[str, T]:
    """Return an immutable mapping view (empty when None)."""
    if isinstance(m, MappingProxyType):
        return m
    return MappingProxyType(dict(m or {}))


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


# --- Result Monad ---

TSuccess = typing.TypeVar("TSuccess")
TFailure = typing.TypeVar("TFailure", bound=Exception)


@dataclasses.dataclass(frozen=True, slots=True)
class Success[TSuccess]:
    """A successful stage outcome."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure[TFailure]:
    """A failed stage outcome, containing the error."""

    error: TFailure


Result = Success[TSuccess] | Failure[TFailure]

# --- Vocabulary ---

Stage = typing.Literal["latex", "analysis", "confidence"]
PromptVersion = typing.Literal["default", "custom", "full"]

STAGE_ORDER: tuple[Stage, ...] = ("latex", "analysis", "confidence")

# --- Runtime configuration ---


@dataclasses.dataclass(frozen=True, slots=True)
class BackendConfig:
    """Everything the transport needs to reach the generative backend."""

    api_key: str
    base_url: str
    model_name: str
    request_timeout_seconds: float = 120
    max_retries: int = 2
    max_output_tokens: int = 240_000

    def __post_init__(self) -> None:
        """Validate numeric invariants."""
        _require(
            condition=self.request_timeout_seconds > 0,
            message="must be > 0",
            field_name="request_timeout_seconds",
            exc=ConfigError,
        )
        _require(
            condition=isinstance(self.max_retries, int) and self.max_retries >= 0,
            message="must be an int >= 0",
            field_name="max_retries",
            exc=ConfigError,
        )
        _require(
            condition=self.max_output_tokens > 0,
            message="must be > 0",
            field_name="max_output_tokens",
            exc=ConfigError,
        )
        _require(
            condition=bool(self.model_name.strip()),
            message="cannot be empty",
            field_name="model_name",
            exc=ConfigError,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class PromptSet:
    """The three stage prompts of a recognition, fully assembled.

    Prompts are used verbatim. An empty prompt is a configuration error and
    is never replaced by a built-in default at run time.
    """

    extraction: str
    analysis: str
    verification: str
    version: PromptVersion = "full"

    def require_complete(self) -> None:
        """Raise ``ConfigError`` naming the first empty prompt."""
        if not self.extraction.strip():
            raise ConfigError(
                "LaTeX prompt is not set. Fill it in or restore the default prompts."
            )
        if not self.analysis.strip():
            raise ConfigError(
                "Analysis prompt is not set. Fill it in or restore the default prompts."
            )
        if not self.verification.strip():
            raise ConfigError(
                "Verification prompt is not set. Fill it in or restore the default prompts."
            )


@dataclasses.dataclass(frozen=True, slots=True)
class StageRequest:
    """One backend call: prompt, optional image, optional prior-stage text."""

    prompt: str
    image_base64: str | None = None
    prior_text: str | None = None
    temperature: float = 0.2
    mime_type: str = "image/png"

    def __post_init__(self) -> None:
        """Validate invariants for a well-formed request."""
        _require(
            condition=isinstance(self.prompt, str) and self.prompt.strip() != "",
            message="must be a non-empty str",
            field_name="prompt",
            exc=ConfigError,
        )
        _require(
            condition=0.0 <= self.temperature <= 2.0,
            message="must be within [0, 2]",
            field_name="temperature",
        )

    @property
    def text(self) -> str:
        """The text part sent to the backend."""
        if self.prior_text is None:
            return self.prompt
        return f"{self.prompt}\n\nLaTeX to evaluate: {self.prior_text}"


@dataclasses.dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Stage-completion notification for one recognition id."""

    recognition_id: str
    stage: Stage
    payload: typing.Mapping[str, typing.Any]
    prompt_version: PromptVersion

    def __post_init__(self) -> None:
        """Freeze the payload and check the stage name."""
        _require(
            condition=self.stage in STAGE_ORDER,
            message=f"must be one of {list(STAGE_ORDER)}, got {self.stage!r}",
            field_name="stage",
        )
        object.__setattr__(self, "payload", _freeze_mapping(self.payload))
