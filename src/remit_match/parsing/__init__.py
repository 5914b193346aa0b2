"""
Payment note parsing.

Provides:
- Line splitting with line-ending normalization
- Ordered prefix classification (BO, ORDER, TRID, ...)
- Search text and metadata extraction per line
"""

from .line_classifier import (
    LINE_PATTERNS,
    SEARCHABLE_TYPES,
    classify_line,
    extract_metadata,
    extract_search_text,
    parse_payment_notes,
    should_match_line,
    split_lines,
)

__all__ = [
    "LINE_PATTERNS",
    "SEARCHABLE_TYPES",
    "classify_line",
    "extract_metadata",
    "extract_search_text",
    "parse_payment_notes",
    "should_match_line",
    "split_lines",
]
