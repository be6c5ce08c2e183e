"""Parsing of backend responses into stage payloads."""

from .parsing import (
    clean_response,
    extract_candidate_text,
    parse_analysis,
    parse_latex,
    parse_strict,
    parse_verification,
    parse_verification_result,
    relaxed_extract_latex,
)

__all__ = [
    "clean_response",
    "extract_candidate_text",
    "parse_analysis",
    "parse_latex",
    "parse_strict",
    "parse_verification",
    "parse_verification_result",
    "relaxed_extract_latex",
]
