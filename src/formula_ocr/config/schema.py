"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces
configuration values from the environment and programmatic overrides into
the correct types with proper defaults.
"""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from formula_ocr.core.types import BackendConfig, PromptSet
from formula_ocr.prompts.assembler import build_prompt_set
from formula_ocr.prompts.defaults import (
    BASE_ANALYSIS_PROMPT,
    BASE_LATEX_PROMPT,
    BASE_VERIFICATION_PROMPT,
)

DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def _default_data_dir() -> Path:
    return Path.home() / ".formula_ocr"


class FormulaSettings(BaseSettings):
    """Pydantic settings schema for the recognition pipeline.

    Integrates with environment variables using the FORMULA_OCR_ prefix,
    e.g. ``FORMULA_OCR_API_KEY`` or ``FORMULA_OCR_MAX_RETRIES``.
    """

    model_config = SettingsConfigDict(
        env_prefix="FORMULA_OCR_",
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Backend ---

    api_key: str = Field(default="", description="Gemini API key")

    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="API base URL; normalized to end in a models path",
        min_length=1,
    )

    model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model identifier",
        min_length=1,
    )

    request_timeout_seconds: float = Field(
        default=120,
        description="Per-request timeout in seconds",
        gt=0,
    )

    max_retries: int = Field(
        default=2,
        description="Retries for transient backend failures",
        ge=0,
    )

    max_output_tokens: int = Field(
        default=240_000,
        description="Upper bound on generated tokens per call",
        ge=1,
    )

    # --- Output ---

    language: str = Field(
        default="en",
        description="Output language: 'zh-CN' for Simplified Chinese, otherwise English",
        min_length=1,
    )

    latex_format: str = Field(
        default="double_dollar",
        description="Delimiters requested for extracted LaTeX",
    )

    # --- Prompts ---

    latex_prompt: str = Field(default=BASE_LATEX_PROMPT)
    analysis_prompt: str = Field(default=BASE_ANALYSIS_PROMPT)
    verification_prompt: str = Field(default=BASE_VERIFICATION_PROMPT)
    custom_prompt: str = Field(default="")

    # --- Storage ---

    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Directory holding history.json and saved pictures",
    )

    @field_validator("latex_format", mode="before")
    @classmethod
    def normalize_latex_format(cls, v: Any) -> Any:
        """Accept any casing for the format name."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def to_backend_config(self) -> BackendConfig:
        """Derive the transport configuration."""
        return BackendConfig(
            api_key=self.api_key,
            base_url=self.api_base_url,
            model_name=self.model,
            request_timeout_seconds=self.request_timeout_seconds,
            max_retries=self.max_retries,
            max_output_tokens=self.max_output_tokens,
        )

    def build_prompt_set(self) -> PromptSet:
        """Assemble the stage prompts with format and language rules."""
        return build_prompt_set(self)

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history.json"

    @property
    def pictures_dir(self) -> Path:
        return self.data_dir / "pictures"
