"""Confidence scoring for structured verification verdicts.

Converts a ``Verification`` (status, issues, optional coverage) into a
``VerificationResult``: a 0-100 score and a short report listing the
issues. Coverage, when reported, is authoritative; otherwise the score is a
status-based heuristic that loses points per issue and never goes below 0.
"""

from __future__ import annotations

import math

from formula_ocr.core.models import Verification, VerificationResult
from formula_ocr.prompts.defaults import is_chinese

MAX_REPORTED_ISSUES = 10

_SYMBOL_WEIGHT = 0.75
_TERM_WEIGHT = 0.25

_MESSAGES: dict[str, tuple[str, str]] = {
    # key: (Chinese, English)
    "exact": (
        "LaTeX 完全匹配原始公式。",
        "LaTeX matches the original formula exactly.",
    ),
    "header": ("发现以下差异：", "The following differences were found:"),
    "omitted": ("(其余 {n} 条问题已省略)", "({n} more issues omitted)"),
    "warning": (
        "存在版式/排版差异，但不影响数学含义。",
        "There are layout/typesetting differences that do not change the math.",
    ),
    "mismatch": (
        "存在与原图不一致的内容，请检查符号、上下标与项是否匹配。",
        "Some content does not match the original image; check symbols, sub/superscripts and terms.",
    ),
    "failed": ("验证失败", "verification failed"),
}


def _msg(key: str, language: str) -> str:
    chinese, english = _MESSAGES[key]
    return chinese if is_chinese(language) else english


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _ratio_score(matched: int, total: int) -> int:
    if total == 0:
        return 100
    return _round_half_up(100 * matched / total)


def verification_failed(language: str = "en") -> VerificationResult:
    """The degraded result used when the verification stage fails."""
    return VerificationResult(
        confidence_score=0, verification_report=_msg("failed", language)
    )


def compute_score(verification: Verification) -> int:
    """Score a verdict from coverage, or from status and issue count."""
    coverage = verification.coverage
    if coverage is not None:
        symbol_score = _ratio_score(coverage.symbols_matched, coverage.symbols_total)
        term_score = _ratio_score(coverage.terms_matched, coverage.terms_total)
        combined = _round_half_up(
            _SYMBOL_WEIGHT * symbol_score + _TERM_WEIGHT * term_score
        )
        return max(0, min(100, combined))

    issue_count = len(verification.issues)
    if verification.status == "ok":
        return 100
    if verification.status == "warning":
        return max(0, 80 - min(2 * issue_count, 20))
    return max(0, 60 - min(5 * issue_count, 50))


def build_report(verification: Verification, language: str = "en") -> str:
    """Render the verdict as text, listing at most ten issues."""
    issues = verification.issues
    if verification.status == "ok" and not issues:
        return _msg("exact", language)

    lines = [
        f"- [{issue.category}] {issue.message}"
        for issue in issues[:MAX_REPORTED_ISSUES]
    ]
    if len(issues) > MAX_REPORTED_ISSUES:
        lines.append(
            _msg("omitted", language).format(n=len(issues) - MAX_REPORTED_ISSUES)
        )
    if not lines:
        key = "warning" if verification.status == "warning" else "mismatch"
        return _msg(key, language)
    return _msg("header", language) + "\n" + "\n".join(lines)


def score(
    verification: Verification | None,
    fallback: VerificationResult | None = None,
    *,
    language: str = "en",
) -> VerificationResult:
    """Turn a structured verdict into a score and report.

    Args:
        verification: The parsed verdict, or None when unavailable.
        fallback: Result to use when ``verification`` is None; defaults to
            the "verification failed" result.
        language: ``"zh-CN"`` for Chinese report text, otherwise English.
    """
    if verification is None:
        return fallback if fallback is not None else verification_failed(language)
    return VerificationResult(
        confidence_score=compute_score(verification),
        verification_report=build_report(verification, language),
    )
