"""Configuration management for the recognition pipeline.

Configuration is resolved once and then flows explicitly into the objects
that need it. Precedence: programmatic > environment (.env file when
requested) > defaults.
"""

from pathlib import Path
from typing import Any

from pydantic import ValidationError

from formula_ocr.core.exceptions import ConfigError

from .schema import DEFAULT_API_BASE_URL, FormulaSettings


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    env_file: str | Path | None = None,
) -> FormulaSettings:
    """Resolve settings from all sources with proper precedence.

    Args:
        programmatic: Overrides with the highest precedence. Unknown keys
            are ignored.
        env_file: Optional .env file to read ``FORMULA_OCR_*`` values from.

    Raises:
        ConfigError: If validation fails.
    """
    overrides = dict(programmatic or {})
    try:
        return FormulaSettings(_env_file=env_file, **overrides)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


__all__ = [
    "DEFAULT_API_BASE_URL",
    "FormulaSettings",
    "resolve_config",
]
