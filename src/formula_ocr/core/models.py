"""Pydantic models for stage payloads and persisted history records.

These models double as the strict schemas the response parser validates
backend output against, and as the on-disk shape of the history file.
Enumerated string fields (suggestion type, verification status, issue
category) are kept as plain strings: the backend's answer is reproduced
as-is and interpreted downstream by the scorer.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class VariableInfo(BaseModel):
    """A symbol appearing in the formula."""

    symbol: str
    description: str
    unit: str | None = None


class TermInfo(BaseModel):
    """A distinct term or sub-expression of the formula."""

    name: str
    description: str


class Suggestion(BaseModel):
    """An improvement note. ``severity`` is one of error, warning or info."""

    model_config = ConfigDict(populate_by_name=True)

    severity: str = Field(alias="type")
    message: str


class Analysis(BaseModel):
    """Structured explanation of a formula."""

    summary: str
    variables: list[VariableInfo] = Field(default_factory=list)
    terms: list[TermInfo] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)

    @classmethod
    def empty(cls, summary: str = "") -> Analysis:
        return cls(summary=summary)


class VerificationIssue(BaseModel):
    """A mismatch between the extracted LaTeX and the source image."""

    category: str
    message: str


class VerificationCoverage(BaseModel):
    """Backend-reported matched/total counts for symbols and terms."""

    symbols_matched: int = Field(ge=0)
    symbols_total: int = Field(ge=0)
    terms_matched: int = Field(ge=0)
    terms_total: int = Field(ge=0)


class Verification(BaseModel):
    """Structured verification verdict: status, issues and optional coverage."""

    status: str
    issues: list[VerificationIssue] = Field(default_factory=list)
    coverage: VerificationCoverage | None = None


class VerificationResult(BaseModel):
    """Confidence score in [0, 100] and a human-readable report."""

    confidence_score: int = Field(ge=0, le=100)
    verification_report: str


class LatexPayload(BaseModel):
    """Extraction stage payload: ``{"latex": "..."}``."""

    latex: str


class AnalysisPayload(BaseModel):
    """Analysis stage payload: ``{"title": "...", "analysis": {...}}``."""

    title: str
    analysis: Analysis


class HistoryRecord(BaseModel):
    """A finished recognition as stored in the history file.

    Records are immutable; title and favorite changes go through
    ``model_copy(update=...)`` in the history cache.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )

    id: str
    latex: str
    title: str
    analysis: Analysis
    is_favorite: bool = False
    created_at: str
    confidence_score: int = Field(ge=0, le=100)
    original_image: str
    model_name: str | None = None
    verification: Verification | None = None
    verification_report: str | None = None

    def to_json_dict(self) -> dict[str, object]:
        """Return the camelCase JSON mapping used on disk."""
        return self.model_dump(mode="json", by_alias=True)
