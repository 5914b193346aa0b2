"""
Search strategies over the historical posting corpus.

Each strategy wraps one external search capability (fuzzy text engine,
vector index, external embedding provider) and normalizes its native score
to a 0-100 confidence so that candidates from different backends can be
merged and ranked together.

The backends themselves live outside this package; they are reached through
the narrow CorpusBackend interface.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..schemas.match import MatchCandidate, StrategyKind

logger = logging.getLogger(__name__)

# Affine map from a [0, 1] backend score to confidence
CONFIDENCE_FLOOR = 60.0
CONFIDENCE_SPAN = 35.0

DEFAULT_MAX_CANDIDATES = 10

# Record keys that are not posting fields
_RESERVED_KEYS = frozenset({"id", "display_text", "score", "similarity"})


def score_to_confidence(score: float | None) -> float:
    """
    Map a backend score in [0, 1] to confidence in [60, 95].

    Rounded half-up to one decimal place. Missing scores count as 0 and
    out-of-range scores are clamped.
    """
    s = min(max(float(score or 0.0), 0.0), 1.0)
    value = Decimal(str(CONFIDENCE_FLOOR + CONFIDENCE_SPAN * s))
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class CorpusBackend(ABC):
    """
    Search capability over the historical corpus.

    Implementations return at most ``limit`` records, best first. Each record
    is a dict with ``id``, ``display_text``, the backend's native score
    (``score`` or ``similarity``) and any posting fields of the historical
    record (posting_key, gl_account, company_code, cost_centre, ...).
    """

    @abstractmethod
    def search(self, text: str, limit: int) -> list[dict[str, Any]]:
        """Return raw records for the query text."""
        pass


class SearchStrategy(ABC):
    """
    Base class for all search strategies.

    A strategy failing (backend error, timeout) raises; isolating failures
    from sibling strategies is the orchestrator's job.
    """

    # Record key holding the backend's native score
    score_field: str = "similarity"

    def __init__(self, backend: CorpusBackend, max_candidates: int = DEFAULT_MAX_CANDIDATES):
        self.backend = backend
        self.max_candidates = max_candidates

    @property
    @abstractmethod
    def kind(self) -> StrategyKind:
        """Strategy identifier for provenance and tie-breaking."""
        pass

    @property
    def name(self) -> str:
        return self.kind.value

    def search(self, text: str) -> list[MatchCandidate]:
        """
        Query the backend and normalize its records.

        Args:
            text: Search text of one payment note line

        Returns:
            Up to max_candidates candidates in backend order
        """
        records = self.backend.search(text, self.max_candidates)
        candidates = [self._to_candidate(record) for record in records[: self.max_candidates]]
        logger.debug("%s returned %d candidates", self.name, len(candidates))
        return candidates

    def _to_candidate(self, record: dict[str, Any]) -> MatchCandidate:
        raw_score = float(record.get(self.score_field) or 0.0)
        posting_fields = {
            key: value for key, value in record.items() if key not in _RESERVED_KEYS
        }
        return MatchCandidate(
            external_id=record["id"],
            display_text=record.get("display_text") or "",
            confidence=score_to_confidence(raw_score),
            strategy=self.kind,
            posting_fields=posting_fields,
            raw_score=raw_score,
        )


class FuzzyTextStrategy(SearchStrategy):
    """Fuzzy full-text search; backend relevance score in [0, 1]."""

    score_field = "score"

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.FUZZY_TEXT


class VectorSimilarityStrategy(SearchStrategy):
    """Cosine similarity against the corpus' own embedding model."""

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.VECTOR_SEMANTIC


class ExternalEmbeddingStrategy(SearchStrategy):
    """Cosine similarity against embeddings from an external provider."""

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.EXTERNAL_EMBEDDING


STRATEGY_CLASSES: dict[StrategyKind, type[SearchStrategy]] = {
    StrategyKind.FUZZY_TEXT: FuzzyTextStrategy,
    StrategyKind.VECTOR_SEMANTIC: VectorSimilarityStrategy,
    StrategyKind.EXTERNAL_EMBEDDING: ExternalEmbeddingStrategy,
}


def build_strategies(
    backends: dict[StrategyKind, CorpusBackend],
    enabled: list[StrategyKind],
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> list[SearchStrategy]:
    """
    Instantiate enabled strategies in the given order.

    Enabled strategies without a backend are skipped with a warning.
    """
    strategies: list[SearchStrategy] = []
    for kind in enabled:
        backend = backends.get(kind)
        if backend is None:
            logger.warning("Strategy %s enabled but no backend configured, skipping", kind.value)
            continue
        strategies.append(STRATEGY_CLASSES[kind](backend, max_candidates=max_candidates))
    return strategies
