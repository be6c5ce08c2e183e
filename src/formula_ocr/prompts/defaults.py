"""Built-in prompt texts, language constraints and LaTeX format rules."""

from __future__ import annotations

from enum import Enum


class PromptType(str, Enum):
    """The three recognition stages that carry a prompt."""

    LATEX = "latex"
    ANALYSIS = "analysis"
    VERIFICATION = "verification"


CHINESE = "zh-CN"


def is_chinese(language: str) -> bool:
    return language == CHINESE


BASE_LATEX_PROMPT = """You are an expert in LaTeX OCR. Task: Given an image of a mathematical formula, EXTRACT THE LaTeX EXACTLY as shown in the image.

Never correct math, never infer intent, never simplify/normalize. Strictly preserve spacing/notation, symbol forms, order of terms, matrix layout, and the distinction between scalars vs vectors/tensors (e.g., boldface, overarrow, blackboard vs italic, uppercase/lowercase, indices). Do not convert a scalar to a vector/tensor or vice versa.

Brackets: Pay extreme attention to bracket KINDS and COUNTS. Use the exact types that appear and do not add/remove/misuse them: parentheses (), square brackets [], curly braces {}, and angle brackets ⟨⟩ when present. Ensure LaTeX grouping braces {} are balanced and minimal (no extra {}).

Command integrity: NEVER drop the leading backslash of LaTeX commands/environments. Always output commands with their backslashes, e.g., \\begin{bmatrix} ... \\end{bmatrix}, \\frac{...}{...}, \\partial, \\alpha. Do not output truncated tokens like "egin", "frac", etc.

Noise handling: Ignore any non-formula artifacts captured in the screenshot (e.g., Word paragraph marks ↵, tab arrows ↹, UI chrome, page/section labels, figure captions, or reference tags like [1]). Transcribe ONLY the actual formula content. Do NOT add references, citations, or links.

Output only a strict JSON object: {"latex": "..."}. No Markdown, no comments, no extra text. Ensure JSON validity: escape every backslash in LaTeX for JSON (e.g., \\\\frac)."""

BASE_ANALYSIS_PROMPT = """You are an expert in mathematics, physics, and technical writing. Based on the provided formula image (DO NOT change the formula), produce a structured analysis JSON with the following fields only: {"title": "...", "analysis": {"summary": "...", "variables": [{"symbol": "...", "description": "...", "unit": "?"}], "terms": [{"name": "...", "description": "..."}], "suggestions": [{"type": "error|warning|info", "message": "..."}]}}.

Instructions:
1) Variables: enumerate every symbol that appears (parameters, fields, operators like ∇ optional). For each, give a concise meaning and typical SI unit if applicable. If unit is unknown, use "?".
2) Terms: identify each distinct term/expression/sub-expression in the equation(s) (e.g., derivatives, integrals, summations, products, norms, matrix/vector operations, source terms). Provide a one-sentence physical/mathematical meaning for each.
3) Suggestions (three levels):
   - error: Hard mistakes such as dimensional inconsistency, impossible identities, wrong operators, missing brackets causing invalid grammar, or evident OCR mistakes leading to invalid math.
   - warning: Unusual or risky presentation that can hinder readability or typesetting (e.g., extremely long expressions likely to overflow, unconventional notation like uu instead of u^2 though intentionally preserved, ambiguous symbols).
   - info: General improvement advice (naming clarity, add definitions, add context equations or equivalent forms).
4) Scalar vs tensor: Pay special attention to the distinction between scalars and vectors/tensors (e.g., bold/arrow notation, indices). Preserve this distinction in variable descriptions and term explanations; do not convert between them.
5) References: Do NOT add references/citations/links anywhere (e.g., [1], (Smith, 2020)).
6) Output must be a strict JSON object with the exact schema above. No Markdown, no code fences, no extra commentary."""

BASE_VERIFICATION_PROMPT = """You are a meticulous verification expert. Your task is to carefully compare the provided LaTeX code against the original mathematical formula image and provide both a confidence score and a detailed verification report.

Task: Analyze how accurately the LaTeX code represents the original image by examining:
1) Symbol accuracy: Are all symbols correctly identified and transcribed?
2) Structure fidelity: Do exponents, subscripts, fractions, and groupings match exactly?
3) Operator precision: Are mathematical operators (+, -, ×, ÷, =, etc.) correctly placed?
4) Layout consistency: Does the overall mathematical structure and spacing match?
5) Completeness: Are there any missing or extra elements?
6) Scalar vs tensor distinction: Treat mismatches between scalars and vectors/tensors (e.g., bold/arrow notation, indexing/ordering conveying tensor rank) as meaning-changing errors.

Output a strict JSON object with this exact schema:
{
  "confidence_score": 0-100,
  "verification_report": "A concise but thorough report detailing any discrepancies found between the LaTeX and the original image. If perfect match, state 'LaTeX accurately represents the original formula.' If issues found, describe specific problems like 'Missing subscript in variable x', 'Incorrect operator placement', or 'Vector/tensor vs scalar mismatch', etc."
}

Be precise and objective in your assessment. No Markdown formatting, no code fences, no extra commentary."""

STRUCTURED_VERIFICATION_TEMPLATE = """You are a strict verifier. Compare the provided LaTeX with the image. Do NOT fix the LaTeX; only point out mismatches. Return a strict JSON: {{
  "status": "error|warning|ok",
  "issues": [{{"category": "missing_term|extra_term|symbol_mismatch|notation_mismatch|layout_mismatch|other", "message": "..."}}],
  "coverage": {{"symbols_matched": n, "symbols_total": n, "terms_matched": n, "terms_total": n}}
}}.
Rules:
- status=error if ANY mismatch that changes math meaning (missing/extra term, wrong symbol, wrong power/subscript, different operator).
- status=warning for layout/formatting-only differences (line breaks, spacing) that do not change math.
- status=ok only if visually and semantically equivalent.
- Be concise but precise.
{lang_note}
LaTeX to verify:
{latex}"""

_BASE_PROMPTS: dict[PromptType, str] = {
    PromptType.LATEX: BASE_LATEX_PROMPT,
    PromptType.ANALYSIS: BASE_ANALYSIS_PROMPT,
    PromptType.VERIFICATION: BASE_VERIFICATION_PROMPT,
}

_LANGUAGE_CONSTRAINTS: dict[PromptType, tuple[str, str]] = {
    # (Chinese, English)
    PromptType.LATEX: (
        "Important: Use Simplified Chinese for any error messages or explanations if needed. Keep JSON keys in English.",
        "Important: Use English for any error messages or explanations if needed. Keep JSON keys in English.",
    ),
    PromptType.ANALYSIS: (
        "Important: Use Simplified Chinese for the values of 'title', 'analysis.summary', 'analysis.variables[*].description', 'analysis.terms[*].description', and 'analysis.suggestions[*].message'. Keep JSON keys in English.",
        "Important: Use English for the values of 'title', 'analysis.summary', 'analysis.variables[*].description', 'analysis.terms[*].description', and 'analysis.suggestions[*].message'. Keep JSON keys in English.",
    ),
    PromptType.VERIFICATION: (
        "Important: Use Simplified Chinese for the 'verification_report' content. Keep JSON keys in English.",
        "Important: Use English for the 'verification_report' content. Keep JSON keys in English.",
    ),
}

_FORMAT_RULES: dict[str, str] = {
    "raw": "\n\nFormatting rule: Return the bare LaTeX body ONLY inside the JSON value without any math delimiters (no $...$, no $$...$$, no \\[...\\], no \\begin{equation}...\\end{equation}). Place the exact LaTeX string in the 'latex' field.",
    "single_dollar": '\n\nFormatting rule: Wrap the entire LaTeX with $...$ (inline math). The JSON must be {"latex": "$<content>$"}.',
    "double_dollar": '\n\nFormatting rule: Wrap the entire LaTeX with $$...$$ (display math). The JSON must be {"latex": "$$<content>$$"}.',
    "equation": '\n\nFormatting rule: Wrap the entire LaTeX with \\begin{equation} ... \\end{equation}. The JSON must be {"latex": "\\begin{equation}<content>\\end{equation}"}.',
    "bracket": '\n\nFormatting rule: Wrap the entire LaTeX with \\[ ... \\] (display math). The JSON must be {"latex": "\\[<content>\\]"}.',
}

_FALLBACK_FORMAT_RULE = "\n\nFormatting rule: Return the bare LaTeX body ONLY without any math delimiters and put it into the 'latex' field."

_JSON_VALIDITY_RULE = " IMPORTANT: The response MUST be a valid JSON object. Escape every backslash in LaTeX for JSON (e.g., \\\\frac). No Markdown fences."

LATEX_FORMATS: tuple[str, ...] = tuple(_FORMAT_RULES)


def base_prompt(prompt_type: PromptType) -> str:
    """Return the built-in prompt without any language constraint."""
    return _BASE_PROMPTS[prompt_type]


def language_constraint(prompt_type: PromptType, language: str) -> str:
    """Return the output-language sentence for a stage."""
    chinese, english = _LANGUAGE_CONSTRAINTS[prompt_type]
    return chinese if is_chinese(language) else english


def full_prompt(prompt_type: PromptType, language: str) -> str:
    """Base prompt followed by its language constraint."""
    return f"{base_prompt(prompt_type)}\n\n{language_constraint(prompt_type, language)}"


def format_rule_for_latex(latex_format: str) -> str:
    """Return the rule appended to the extraction prompt for a LaTeX format.

    Unknown formats get the bare-body rule.
    """
    rule = _FORMAT_RULES.get(latex_format, _FALLBACK_FORMAT_RULE)
    return f"{rule}{_JSON_VALIDITY_RULE}"


def structured_verification_prompt(latex: str, language: str) -> str:
    """Prompt for the structured (status/issues/coverage) verification form."""
    if is_chinese(language):
        lang_note = "Output language: Simplified Chinese for 'issues[*].message'. Keys remain English."
    else:
        lang_note = "Output language: English for 'issues[*].message'. Keys remain English."
    return STRUCTURED_VERIFICATION_TEMPLATE.format(lang_note=lang_note, latex=latex)
