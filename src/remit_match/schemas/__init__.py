"""
Value objects shared across the pipeline.

Everything the pipeline produces is one of these immutable types;
persistence and reviewer selection live outside this package.
"""

from .evidence import (
    SOURCE_CONFIDENCE,
    AccountingSummary,
    CompanyExtraction,
    EmailEvidence,
    ExtractionSource,
)
from .match import BestMatch, LineMatch, MatchCandidate, StrategyKind
from .payment_notes import LineType, ParsedLine

__all__ = [
    # Payment notes
    "LineType",
    "ParsedLine",
    # Matching
    "StrategyKind",
    "MatchCandidate",
    "LineMatch",
    "BestMatch",
    # Fallback evidence
    "ExtractionSource",
    "SOURCE_CONFIDENCE",
    "CompanyExtraction",
    "EmailEvidence",
    "AccountingSummary",
]
