"""Prompt texts and assembly for the recognition stages."""

from .assembler import (
    PromptParts,
    build_prompt_set,
    determine_prompt_version,
    prompt_parts,
)
from .defaults import (
    LATEX_FORMATS,
    PromptType,
    base_prompt,
    format_rule_for_latex,
    full_prompt,
    language_constraint,
    structured_verification_prompt,
)

__all__ = [
    "LATEX_FORMATS",
    "PromptParts",
    "PromptType",
    "base_prompt",
    "build_prompt_set",
    "determine_prompt_version",
    "format_rule_for_latex",
    "full_prompt",
    "language_constraint",
    "prompt_parts",
    "structured_verification_prompt",
]
