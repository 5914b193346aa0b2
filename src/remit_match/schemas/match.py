"""
Historical match candidates.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .payment_notes import ParsedLine


class StrategyKind(str, Enum):
    """Search backend that produced a candidate."""

    FUZZY_TEXT = "FUZZY_TEXT"
    VECTOR_SEMANTIC = "VECTOR_SEMANTIC"
    EXTERNAL_EMBEDDING = "EXTERNAL_EMBEDDING"


@dataclass(frozen=True)
class MatchCandidate:
    """
    A proposed historical match for one payment note line.

    confidence is normalized to 0-100 so candidates from heterogeneous
    strategies are comparable. posting_fields carries the denormalized
    posting data of the historical record (GL account, cost centre, ...).
    """

    external_id: Any
    display_text: str
    confidence: float
    strategy: StrategyKind
    posting_fields: Mapping[str, Any] = field(default_factory=dict, hash=False)
    raw_score: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "posting_fields", MappingProxyType(dict(self.posting_fields)))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "external_id": self.external_id,
            "display_text": self.display_text,
            "confidence": self.confidence,
            "strategy": self.strategy.value,
            "posting_fields": dict(self.posting_fields),
            "raw_score": self.raw_score,
        }


@dataclass(frozen=True)
class LineMatch:
    """Ranked candidates for a single parsed line."""

    line: ParsedLine
    candidates: tuple[MatchCandidate, ...] = ()
    top_n: int = 3

    @property
    def top_candidates(self) -> tuple[MatchCandidate, ...]:
        """Candidates handed to the reviewer (rank 1..top_n)."""
        return self.candidates[: self.top_n]

    @property
    def best(self) -> Optional[MatchCandidate]:
        """Rank-1 candidate, if any."""
        return self.candidates[0] if self.candidates else None

    @property
    def matched(self) -> bool:
        return bool(self.candidates)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "line": self.line.to_dict(),
            "matched": self.matched,
            "candidates": [
                dict(c.to_dict(), rank=rank)
                for rank, c in enumerate(self.top_candidates, start=1)
            ],
        }


@dataclass(frozen=True)
class BestMatch:
    """Statement-level rollup: the strongest rank-1 candidate across lines."""

    line_number: int
    line_text: str
    candidate: MatchCandidate

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "line_number": self.line_number,
            "line_text": self.line_text,
            "candidate": self.candidate.to_dict(),
        }
