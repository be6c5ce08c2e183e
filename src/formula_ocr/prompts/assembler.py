"""Assemble the runtime ``PromptSet`` from configured prompt texts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from formula_ocr.core.types import PromptSet, PromptVersion
from formula_ocr.prompts.defaults import (
    PromptType,
    base_prompt,
    format_rule_for_latex,
    language_constraint,
)

if TYPE_CHECKING:
    from formula_ocr.config import FormulaSettings


def determine_prompt_version(latex_prompt: str, custom_prompt: str) -> PromptVersion:
    """Tag which kind of prompt a recognition ran with.

    A configured LaTeX prompt means the full built-in chain is in use;
    otherwise a non-empty custom prompt marks a custom run.
    """
    if latex_prompt:
        return "full"
    if custom_prompt:
        return "custom"
    return "default"


def _with_suffix(prompt: str, suffix: str) -> str:
    # An empty prompt stays empty so PromptSet.require_complete() reports it.
    if not prompt.strip():
        return prompt
    return f"{prompt}{suffix}"


def build_prompt_set(settings: FormulaSettings) -> PromptSet:
    """Append format and language rules to the configured stage prompts."""
    language = settings.language
    return PromptSet(
        extraction=_with_suffix(
            settings.latex_prompt, format_rule_for_latex(settings.latex_format)
        ),
        analysis=_with_suffix(
            settings.analysis_prompt,
            f"\n\n{language_constraint(PromptType.ANALYSIS, language)}",
        ),
        verification=_with_suffix(
            settings.verification_prompt,
            f"\n\n{language_constraint(PromptType.VERIFICATION, language)}",
        ),
        version=determine_prompt_version(
            settings.latex_prompt, settings.custom_prompt
        ),
    )


@dataclass(frozen=True, slots=True)
class PromptParts:
    """One stage prompt split into its components, for settings screens."""

    base: str
    format_rule: str | None
    language: str
    full: str


def prompt_parts(language: str, latex_format: str) -> dict[str, PromptParts]:
    """Return base, rule and full text for each stage.

    The LaTeX prompt carries a format rule but no language sentence; the
    other two carry a language sentence and no format rule.
    """
    latex_base = base_prompt(PromptType.LATEX)
    latex_rule = format_rule_for_latex(latex_format)
    parts = {
        "latex": PromptParts(
            base=latex_base,
            format_rule=latex_rule,
            language="",
            full=f"{latex_base}{latex_rule}",
        )
    }
    for prompt_type in (PromptType.ANALYSIS, PromptType.VERIFICATION):
        base = base_prompt(prompt_type)
        lang = language_constraint(prompt_type, language)
        parts[prompt_type.value] = PromptParts(
            base=base, format_rule=None, language=lang, full=f"{base}\n\n{lang}"
        )
    return parts
